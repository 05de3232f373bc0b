"""Services package."""

from delivery.services.credentials import CredentialDecodeResult, decode_service_account
from delivery.services.delivery_service import DeliveryService
from delivery.services.paypal_service import PayPalService
from delivery.services.request_parser import parse_verification_request
from delivery.services.sheets_service import SheetsService

__all__ = [
    "CredentialDecodeResult",
    "decode_service_account",
    "DeliveryService",
    "PayPalService",
    "parse_verification_request",
    "SheetsService",
]
