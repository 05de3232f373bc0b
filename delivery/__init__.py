"""PayPal-verified delivery link service."""
