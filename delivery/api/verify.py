"""
PayPal verification endpoint.

The checkout page POSTs {orderRef, orderId} after PayPal approval and gets
back the download links for that order.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from delivery.api.deps import get_delivery_service
from delivery.services.delivery_service import DeliveryService
from delivery.services.request_parser import parse_verification_request

router = APIRouter()
logger = logging.getLogger(__name__)


async def verify_paypal(
    request: Request,
    service: DeliveryService = Depends(get_delivery_service),
) -> JSONResponse:
    """
    Verify a PayPal order and return its delivery links.
    
    Failures are raised as DeliveryError and rendered by the app's
    exception handlers.
    """
    body = await request.body()
    verification = parse_verification_request(body)
    
    logger.info(f"Verifying PayPal order {verification.order_id}")
    result = await service.verify_and_deliver(verification)
    
    return JSONResponse(status_code=200, content=result.model_dump(by_alias=True))


# Netlify-style path kept for front-ends built against the function URL
router.add_api_route("/verify-paypal", verify_paypal, methods=["POST"])
router.add_api_route("/.netlify/functions/verify-paypal", verify_paypal, methods=["POST"])
