from fastapi import Depends

from delivery.config import Settings, get_settings
from delivery.services.delivery_service import DeliveryService


async def get_delivery_service(
    settings: Settings = Depends(get_settings),
) -> DeliveryService:
    """
    Fresh service per request; it holds nothing between invocations.
    Tests override this dependency to inject fake PayPal / Sheets clients.
    """
    return DeliveryService(settings)
