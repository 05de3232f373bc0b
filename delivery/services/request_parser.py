"""
Request Parser - pulls the order reference and PayPal order id out of the body.
"""

import json
import logging
from typing import Any, Optional

from delivery.errors import ValidationError
from delivery.schemas import VerificationRequest

logger = logging.getLogger(__name__)

# Checkout pages in the wild send the reference under any of these names
REFERENCE_FIELDS = ("orderRef", "ref", "orderReference")
ORDER_ID_FIELDS = ("orderId",)


def _first_present(payload: dict, names: tuple) -> Optional[Any]:
    for name in names:
        value = payload.get(name)
        if value not in (None, ""):
            return value
    return None


def parse_verification_request(body: bytes) -> VerificationRequest:
    """
    Parse the raw request body into a VerificationRequest.
    
    Raises ValidationError when the body is not a JSON object or either
    identifier is missing or empty. Values are coerced to strings and not
    otherwise checked.
    """
    try:
        payload = json.loads(body or b"{}")
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")
    
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    
    order_reference = _first_present(payload, REFERENCE_FIELDS)
    order_id = _first_present(payload, ORDER_ID_FIELDS)
    
    missing = []
    if order_reference is None:
        missing.append("orderRef")
    if order_id is None:
        missing.append("orderId")
    if missing:
        raise ValidationError(
            f"Missing {' and '.join(missing)}",
            details={"missing": missing},
        )
    
    return VerificationRequest(
        order_reference=str(order_reference),
        order_id=str(order_id),
    )
