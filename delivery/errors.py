"""
Error taxonomy for the verification flow.

Every stage raises a DeliveryError subclass; the API layer renders it as
{"error": ..., "reason": ..., **details} with the class's status code.
"""

from typing import Any, Dict, Optional


class DeliveryError(Exception):
    """Base class for all failures that end a verification request."""
    
    status_code: int = 500
    reason: str = "internal_error"
    
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
    
    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "reason": self.reason}
        body.update(self.details)
        return body


class ValidationError(DeliveryError):
    status_code = 400
    reason = "validation_error"


class ConfigurationError(DeliveryError):
    """A required server-side setting is missing."""
    
    status_code = 500
    reason = "configuration_error"
    
    def __init__(self, variable: str):
        super().__init__(
            f"Server misconfigured: missing {variable}",
            details={"missing": variable},
        )


class UpstreamAuthError(DeliveryError):
    status_code = 500
    reason = "upstream_auth_error"


class UpstreamDataError(DeliveryError):
    status_code = 500
    reason = "upstream_data_error"


class PaymentIncomplete(DeliveryError):
    status_code = 400
    reason = "payment_incomplete"


class TamperingSuspected(DeliveryError):
    status_code = 400
    reason = "tampering_suspected"


class CredentialError(DeliveryError):
    status_code = 500
    reason = "credential_error"


class NotFoundError(DeliveryError):
    status_code = 404
    reason = "not_found"


class UpdateError(DeliveryError):
    status_code = 500
    reason = "update_error"


class InternalError(DeliveryError):
    status_code = 500
    reason = "internal_error"
