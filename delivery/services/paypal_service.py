"""
PayPal Service - client-credentials token exchange and order lookup.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from delivery.errors import (
    PaymentIncomplete,
    TamperingSuspected,
    UpstreamAuthError,
    UpstreamDataError,
)
from delivery.schemas import PaymentOrder

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"


def _path_segment(value: str) -> str:
    """Encode a client-supplied id so it stays a single path segment."""
    return quote(value, safe="").replace(".", "%2E")


class PayPalService:
    """Verifies PayPal v2 checkout orders."""
    
    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
    
    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
    
    async def obtain_access_token(self, client_id: str, client_secret: str) -> str:
        """
        Exchange the client credentials for a bearer token.
        
        A response without `access_token` means PayPal rejected the
        credentials, which is an operator problem, so it surfaces as a 500.
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/v1/oauth2/token",
                    auth=(client_id, client_secret),
                    data={"grant_type": "client_credentials"},
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise UpstreamAuthError(f"PayPal token request failed: {e}") from e
        
        try:
            data = response.json()
        except ValueError:
            data = {}
        
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            logger.error(f"PayPal token exchange rejected: HTTP {response.status_code}")
            raise UpstreamAuthError(
                "Could not obtain PayPal access token",
                details={"upstreamStatus": response.status_code},
            )
        return token
    
    async def fetch_order(self, order_id: str, token: str) -> PaymentOrder:
        """Fetch a checkout order by id."""
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/v2/checkout/orders/{_path_segment(order_id)}",
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            raise UpstreamDataError(f"PayPal order request failed: {e}") from e
        
        # An unknown or foreign order id is the caller's problem
        if 400 <= response.status_code < 500:
            logger.warning(f"PayPal order {order_id} lookup returned HTTP {response.status_code}")
            raise UpstreamDataError(
                "PayPal order could not be retrieved",
                details={"orderId": order_id, "upstreamStatus": response.status_code},
                status_code=400,
            )
        
        try:
            data = response.json()
            order = PaymentOrder.from_paypal(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Malformed PayPal order response for {order_id}: {e}")
            raise UpstreamDataError(
                "Malformed PayPal order response",
                details={"orderId": order_id, "upstreamStatus": response.status_code},
            ) from e
        
        return order
    
    @staticmethod
    def verify_completion(order: PaymentOrder) -> bool:
        """True if the order, or any one of its captures, is COMPLETED."""
        if order.status == COMPLETED:
            return True
        return any(capture.status == COMPLETED for capture in order.captures)
    
    @staticmethod
    def verify_correlation(order: PaymentOrder, expected_ref: str) -> bool:
        """True if the order's custom_id is exactly the client's reference."""
        return order.correlation_field is not None and order.correlation_field == expected_ref
    
    async def verify_payment(
        self,
        client_id: str,
        client_secret: str,
        order_id: str,
        order_reference: str,
    ) -> PaymentOrder:
        """
        Run the whole payment check.
        
        Completion is checked first; the correlation check only runs on a
        completed order, and the two failures raise different errors.
        """
        token = await self.obtain_access_token(client_id, client_secret)
        order = await self.fetch_order(order_id, token)
        
        if not self.verify_completion(order):
            logger.info(f"PayPal order {order_id} not completed (status={order.status})")
            raise PaymentIncomplete(
                "Payment not completed yet.",
                details={"orderId": order_id, "status": order.status},
            )
        
        if not self.verify_correlation(order, order_reference):
            logger.warning(
                f"PayPal order {order_id} custom_id does not match the supplied reference"
            )
            raise TamperingSuspected(
                "Order reference does not match the PayPal order",
                details={"orderId": order_id},
            )
        
        logger.info(f"PayPal order {order_id} verified")
        return order
