"""
Delivery Service - runs the verification flow end to end.

Received -> Parsed -> PaymentVerified -> RecordLocated -> [RecordUpdated] -> Responded

Each stage either returns or raises a DeliveryError; the first failure
ends the request.
"""

import logging
from typing import Optional, Union

from delivery.config import Settings
from delivery.errors import UpdateError
from delivery.schemas import (
    DeliveryRecord,
    LegacyLinksResponse,
    LinksResponse,
    VerificationRequest,
)
from delivery.services.paypal_service import PayPalService
from delivery.services.sheets_service import SheetsService

logger = logging.getLogger(__name__)


class DeliveryService:
    """Verifies a PayPal order and releases its delivery links."""
    
    def __init__(
        self,
        settings: Settings,
        paypal: Optional[PayPalService] = None,
        sheets: Optional[SheetsService] = None,
    ):
        self.settings = settings
        self.paypal = paypal
        self.sheets = sheets
    
    def _paypal_service(self) -> PayPalService:
        if self.paypal is None:
            self.paypal = PayPalService(
                base_url=self.settings.paypal_base_url,
                timeout=self.settings.http_timeout_seconds,
            )
        return self.paypal
    
    def _sheets_service(self) -> SheetsService:
        settings = self.settings
        if self.sheets is None:
            settings.require("google_service_account", "google_sheet_id")
            self.sheets = SheetsService(
                spreadsheet_id=settings.google_sheet_id,
                sheet_range=settings.sheet_range,
                layout=settings.sheet_layout,
            )
        if self.sheets.client is None:
            self.sheets.authenticate(
                settings.google_service_account,
                writable=settings.should_mark_delivered,
            )
        return self.sheets
    
    async def verify_and_deliver(
        self,
        request: VerificationRequest,
    ) -> Union[LinksResponse, LegacyLinksResponse]:
        settings = self.settings
        
        # Payment
        settings.require("paypal_client_id", "paypal_client_secret")
        await self._paypal_service().verify_payment(
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            order_id=request.order_id,
            order_reference=request.order_reference,
        )
        
        # Record
        sheets = self._sheets_service()
        record = await sheets.find_record(request.order_reference)
        
        # Marker
        delivered = False
        if settings.should_mark_delivered:
            delivered = await self._mark_delivered(sheets, record)
        
        return self._build_response(record, delivered)
    
    async def _mark_delivered(self, sheets: SheetsService, record: DeliveryRecord) -> bool:
        try:
            await sheets.mark_delivered(record)
        except UpdateError:
            if self.settings.fail_on_update_error:
                raise
            # Payment is already verified; hand out the links anyway
            logger.warning(
                f"Delivery marker write failed for row offset {record.row_offset}; "
                "returning links without it"
            )
            return False
        return True
    
    def _build_response(
        self,
        record: DeliveryRecord,
        delivered: bool,
    ) -> Union[LinksResponse, LegacyLinksResponse]:
        if self.settings.sheet_layout == "legacy":
            return LegacyLinksResponse(
                direct_download_url=record.direct_download_link,
                shareable_url=record.view_link,
            )
        return LinksResponse(
            view_link=record.view_link,
            direct_download_link=record.direct_download_link,
            delivered=delivered,
        )
