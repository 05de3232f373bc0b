"""
Sheets Service - locates delivery records in the orders spreadsheet and
marks them delivered.

The Google client is synchronous; every request goes through
asyncio.to_thread so the event loop is not blocked.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from delivery.errors import (
    ConfigurationError,
    CredentialError,
    NotFoundError,
    UpdateError,
    UpstreamDataError,
)
from delivery.schemas import DeliveryRecord
from delivery.services.credentials import decode_service_account

logger = logging.getLogger(__name__)

READONLY_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
READWRITE_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

DRIVE_VIEW_TEMPLATE = "https://drive.google.com/file/d/{file_id}/view?usp=sharing"
DRIVE_DOWNLOAD_TEMPLATE = "https://drive.google.com/uc?export=download&id={file_id}"

DELIVERED = "delivered"

_CELLS = re.compile(
    r"^\$?(?P<col>[A-Za-z]{1,3})?\$?(?P<row>\d+)?(?::\$?[A-Za-z]{0,3}\$?\d*)?$"
)

# Network failures surface from the Google client as socket / httplib2 errors
TRANSPORT_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


@dataclass(frozen=True)
class SheetLayout:
    """Zero-based column positions relative to the first column of the range."""
    
    name: str
    order_reference: int
    direct_download_link: int
    view_link: int
    file_id: Optional[int] = None
    delivery_status: Optional[int] = None
    delivered_at: Optional[int] = None
    
    @property
    def supports_marking(self) -> bool:
        return self.delivery_status is not None and self.delivered_at is not None


LAYOUTS: Dict[str, SheetLayout] = {
    # [ref, fileId, viewLink, directDownloadLink, deliveryStatus, deliveredAt]
    "delivery": SheetLayout(
        name="delivery",
        order_reference=0,
        file_id=1,
        view_link=2,
        direct_download_link=3,
        delivery_status=4,
        delivered_at=5,
    ),
    # [ref, redditUser, directDownloadUrl, shareableUrl, ...]
    "legacy": SheetLayout(
        name="legacy",
        order_reference=0,
        direct_download_link=2,
        view_link=3,
    ),
}


def column_index(letters: str) -> int:
    """'A' -> 0, 'Z' -> 25, 'AA' -> 26."""
    index = 0
    for char in letters.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def column_letters(index: int) -> str:
    """0 -> 'A', 26 -> 'AA'."""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def parse_range_start(sheet_range: str) -> Tuple[Optional[str], int, int]:
    """
    Split an A1 range into (tab, first column index, first row number).
    
    'Orders!A2:F' -> ('Orders', 0, 2). A missing column means A and a missing row
    means 1, so 'Orders' and 'Orders!2:50' are accepted. Raises
    ConfigurationError(SHEET_RANGE) for anything else.
    """
    value = sheet_range.strip()
    tab: Optional[str] = None
    if "!" in value:
        tab, _, cells = value.rpartition("!")
        if not tab:
            raise ConfigurationError("SHEET_RANGE")
    elif (":" in value or re.search(r"\d", value)) and _CELLS.match(value):
        cells = value
    else:
        # A bare name is a whole tab
        tab, cells = value, ""
    
    if not tab and not cells:
        raise ConfigurationError("SHEET_RANGE")
    
    match = _CELLS.match(cells)
    if not match:
        raise ConfigurationError("SHEET_RANGE")
    col = column_index(match.group("col")) if match.group("col") else 0
    row = int(match.group("row")) if match.group("row") else 1
    return tab, col, row


def drive_view_link(file_id: str) -> str:
    return DRIVE_VIEW_TEMPLATE.format(file_id=file_id)


def drive_download_link(file_id: str) -> str:
    return DRIVE_DOWNLOAD_TEMPLATE.format(file_id=file_id)


def with_derived_links(record: DeliveryRecord) -> DeliveryRecord:
    """
    Fill in missing links from the Drive file id.
    
    Only empty cells are filled; stored links are returned untouched.
    """
    if not record.file_id:
        return record
    if not record.view_link:
        record.view_link = drive_view_link(record.file_id)
    if not record.direct_download_link:
        record.direct_download_link = drive_download_link(record.file_id)
    return record


def _cell(row: List[Any], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(row):
        return None
    value = row[index]
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


class SheetsService:
    """Reads and updates the orders spreadsheet."""
    
    def __init__(
        self,
        spreadsheet_id: str,
        sheet_range: str = "Orders!A2:F",
        layout: str = "delivery",
        client: Any = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_range = sheet_range
        self.layout = LAYOUTS[layout]
        self.client = client
        self.tab, self.first_column, self.first_row = parse_range_start(sheet_range)
    
    def authenticate(self, credential_blob: str, writable: bool = False) -> Any:
        """
        Build an authorised Sheets v4 client from a service-account credential.
        
        The credential may be raw JSON or base64-encoded JSON.
        """
        result = decode_service_account(credential_blob)
        if not result.ok:
            raise CredentialError(
                "Invalid GOOGLE_SERVICE_ACCOUNT credential",
                details={"detail": result.error},
            )
        
        scopes = [READWRITE_SCOPE if writable else READONLY_SCOPE]
        try:
            credentials = service_account.Credentials.from_service_account_info(
                result.info, scopes=scopes
            )
        except (ValueError, GoogleAuthError) as e:
            raise CredentialError(
                "GOOGLE_SERVICE_ACCOUNT was rejected",
                details={"detail": str(e)},
            ) from e
        
        logger.debug(f"Service account credential decoded from {result.source} form")
        self.client = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return self.client
    
    async def read_rows(self) -> List[List[Any]]:
        """Fetch every row of the configured range."""
        request = self.client.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self.sheet_range,
        )
        try:
            response = await asyncio.to_thread(request.execute)
        except GoogleAuthError as e:
            raise CredentialError(
                "Google rejected the service account",
                details={"detail": str(e)},
            ) from e
        except TRANSPORT_ERRORS as e:
            logger.error(f"Sheets read failed for range {self.sheet_range}: {e!r}")
            details = {"upstreamStatus": e.resp.status} if isinstance(e, HttpError) else {}
            raise UpstreamDataError("Could not read the orders sheet", details=details) from e
        return response.get("values", [])
    
    def _to_record(self, row_offset: int, row: List[Any]) -> DeliveryRecord:
        layout = self.layout
        return DeliveryRecord(
            row_offset=row_offset,
            order_reference=_cell(row, layout.order_reference) or "",
            file_id=_cell(row, layout.file_id),
            view_link=_cell(row, layout.view_link),
            direct_download_link=_cell(row, layout.direct_download_link),
            delivery_status=_cell(row, layout.delivery_status),
            delivered_at=_cell(row, layout.delivered_at),
        )
    
    async def find_record(self, order_reference: str) -> DeliveryRecord:
        """
        Linear scan for the first row whose reference column equals
        `order_reference`. Raises NotFoundError if there is none.
        """
        rows = await self.read_rows()
        key = self.layout.order_reference
        for offset, row in enumerate(rows):
            if key < len(row) and str(row[key]) == order_reference:
                logger.info(f"Order reference found at sheet row {self.first_row + offset}")
                return with_derived_links(self._to_record(offset, row))
        
        logger.info(f"Order reference not found in {len(rows)} rows")
        raise NotFoundError("OrderRef not found in database")
    
    def update_range_for(self, record: DeliveryRecord) -> str:
        """A1 range of the status/timestamp cells of `record`'s row."""
        row_number = self.first_row + record.row_offset
        start = column_letters(self.first_column + self.layout.delivery_status)
        end = column_letters(self.first_column + self.layout.delivered_at)
        cells = f"{start}{row_number}:{end}{row_number}"
        return f"{self.tab}!{cells}" if self.tab else cells
    
    async def mark_delivered(
        self,
        record: DeliveryRecord,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Write status=delivered and the current UTC time to the record's row.
        
        Returns the timestamp written.
        """
        if not self.layout.supports_marking:
            raise UpdateError(f"Sheet layout '{self.layout.name}' has no delivery columns")
        
        timestamp = (now or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
        update_range = self.update_range_for(record)
        request = self.client.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=update_range,
            valueInputOption="RAW",
            body={"values": [[DELIVERED, timestamp]]},
        )
        try:
            await asyncio.to_thread(request.execute)
        except TRANSPORT_ERRORS as e:
            logger.error(f"Failed to mark {update_range} delivered: {e!r}")
            raise UpdateError(
                "Failed to mark order as delivered",
                details={"range": update_range},
            ) from e
        
        record.delivery_status = DELIVERED
        record.delivered_at = timestamp
        logger.info(f"Marked {update_range} delivered")
        return timestamp
