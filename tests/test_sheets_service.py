"""
Tests for SheetsService lookup, link derivation and delivery marking.
"""

import socket
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from delivery.errors import ConfigurationError, NotFoundError, UpdateError, UpstreamDataError
from delivery.schemas import DeliveryRecord
from delivery.services.sheets_service import (
    SheetsService,
    column_letters,
    drive_download_link,
    drive_view_link,
    parse_range_start,
    with_derived_links,
)
from tests.fakes import fake_sheets_client, sheet_values

ROWS = [
    ["R0", "F0", "https://example.com/view/0", "https://example.com/dl/0", "", ""],
    ["R1", "F1"],
    ["R1", "F-duplicate"],
    [1001, "F1001", "", ""],
]


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "boom"}}')


class TestRangeHelpers:
    
    @pytest.mark.parametrize("sheet_range,expected", [
        ("Orders!A2:F", ("Orders", 0, 2)),
        ("Orders!A:F", ("Orders", 0, 1)),
        ("'Paid Orders'!$B$5:G", ("'Paid Orders'", 1, 5)),
        ("A2:F", (None, 0, 2)),
        ("Orders", ("Orders", 0, 1)),
        ("Orders2024", ("Orders2024", 0, 1)),
        ("Orders!", ("Orders", 0, 1)),
        ("Orders!2:50", ("Orders", 0, 2)),
    ])
    def test_parse_range_start(self, sheet_range, expected):
        assert parse_range_start(sheet_range) == expected
    
    @pytest.mark.parametrize("sheet_range", ["", "!A2:F", "Orders!A2:F:G", "Orders!ABCD2:F"])
    def test_unparseable_range_is_configuration_error(self, sheet_range):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_range_start(sheet_range)
        assert exc_info.value.details["missing"] == "SHEET_RANGE"
    
    def test_whole_tab_range_writes_to_that_tab(self):
        service = SheetsService("sheet-123", sheet_range="Orders", client=fake_sheets_client())
        record = DeliveryRecord(row_offset=0, order_reference="R1")
        
        assert service.update_range_for(record) == "Orders!E1:F1"
    
    def test_column_letters(self):
        assert column_letters(0) == "A"
        assert column_letters(5) == "F"
        assert column_letters(26) == "AA"


class TestLinkDerivation:
    
    def test_both_links_derived_from_file_id(self):
        record = with_derived_links(DeliveryRecord(row_offset=0, order_reference="R1", file_id="F1"))
        assert record.view_link == "https://drive.google.com/file/d/F1/view?usp=sharing"
        assert record.direct_download_link == "https://drive.google.com/uc?export=download&id=F1"
    
    def test_stored_links_are_kept(self):
        record = with_derived_links(DeliveryRecord(
            row_offset=0,
            order_reference="R1",
            file_id="F1",
            view_link="not-even-a-url",
            direct_download_link=None,
        ))
        assert record.view_link == "not-even-a-url"
        assert record.direct_download_link == drive_download_link("F1")
    
    def test_no_file_id_no_links(self):
        record = with_derived_links(DeliveryRecord(row_offset=0, order_reference="R1"))
        assert record.view_link is None
        assert record.direct_download_link is None


@pytest.mark.asyncio
async def test_find_record_first_match_wins():
    service = SheetsService("sheet-123", client=fake_sheets_client(ROWS))
    
    record = await service.find_record("R1")
    
    assert record.row_offset == 1
    assert record.file_id == "F1"
    assert record.view_link == drive_view_link("F1")
    sheet_values(service.client).get.assert_called_once_with(
        spreadsheetId="sheet-123", range="Orders!A2:F"
    )


@pytest.mark.asyncio
async def test_find_record_keeps_stored_links():
    service = SheetsService("sheet-123", client=fake_sheets_client(ROWS))
    
    record = await service.find_record("R0")
    
    assert record.view_link == "https://example.com/view/0"
    assert record.direct_download_link == "https://example.com/dl/0"


@pytest.mark.asyncio
async def test_find_record_coerces_cell_to_string():
    service = SheetsService("sheet-123", client=fake_sheets_client(ROWS))
    
    record = await service.find_record("1001")
    
    assert record.row_offset == 3
    assert record.direct_download_link == drive_download_link("F1001")


@pytest.mark.asyncio
async def test_find_record_not_found():
    service = SheetsService("sheet-123", client=fake_sheets_client(ROWS))
    
    with pytest.raises(NotFoundError) as exc_info:
        await service.find_record("r1")
    
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_find_record_empty_sheet():
    client = fake_sheets_client()
    sheet_values(client).get.return_value.execute.return_value = {}
    service = SheetsService("sheet-123", client=client)
    
    with pytest.raises(NotFoundError):
        await service.find_record("R1")


@pytest.mark.asyncio
async def test_read_failure_is_upstream_error():
    client = fake_sheets_client()
    sheet_values(client).get.return_value.execute.side_effect = _http_error(403)
    service = SheetsService("sheet-123", client=client)
    
    with pytest.raises(UpstreamDataError) as exc_info:
        await service.find_record("R1")
    
    assert exc_info.value.details["upstreamStatus"] == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    socket.timeout("timed out"),
    ConnectionResetError("reset by peer"),
    httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com"),
])
async def test_read_transport_failure_is_upstream_error(error):
    client = fake_sheets_client()
    sheet_values(client).get.return_value.execute.side_effect = error
    service = SheetsService("sheet-123", client=client)
    
    with pytest.raises(UpstreamDataError) as exc_info:
        await service.find_record("R1")
    
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_legacy_layout_columns():
    rows = [["R1", "some_redditor", "https://dl.example/1", "https://share.example/1"]]
    service = SheetsService("sheet-123", sheet_range="Orders!A2:H", layout="legacy",
                            client=fake_sheets_client(rows))
    
    record = await service.find_record("R1")
    
    assert record.direct_download_link == "https://dl.example/1"
    assert record.view_link == "https://share.example/1"
    assert record.file_id is None


@pytest.mark.asyncio
async def test_mark_delivered_writes_status_and_timestamp():
    service = SheetsService("sheet-123", client=fake_sheets_client(ROWS))
    record = DeliveryRecord(row_offset=3, order_reference="1001")
    now = datetime(2026, 10, 17, 12, 30, tzinfo=timezone.utc)
    
    timestamp = await service.mark_delivered(record, now=now)
    
    assert timestamp == "2026-10-17T12:30:00Z"
    sheet_values(service.client).update.assert_called_once_with(
        spreadsheetId="sheet-123",
        range="Orders!E5:F5",
        valueInputOption="RAW",
        body={"values": [["delivered", "2026-10-17T12:30:00Z"]]},
    )
    assert record.delivery_status == "delivered"


def test_update_range_with_offset():
    service = SheetsService("sheet-123", sheet_range="Paid!C10:H", client=fake_sheets_client())
    record = DeliveryRecord(row_offset=0, order_reference="R1")
    
    assert service.update_range_for(record) == "Paid!G10:H10"


@pytest.mark.asyncio
async def test_mark_delivered_failure():
    client = fake_sheets_client()
    sheet_values(client).update.return_value.execute.side_effect = _http_error(500)
    service = SheetsService("sheet-123", client=client)
    
    with pytest.raises(UpdateError):
        await service.mark_delivered(DeliveryRecord(row_offset=0, order_reference="R1"))


@pytest.mark.asyncio
async def test_mark_delivered_timeout_is_update_error():
    client = fake_sheets_client()
    sheet_values(client).update.return_value.execute.side_effect = socket.timeout("timed out")
    service = SheetsService("sheet-123", client=client)
    
    with pytest.raises(UpdateError):
        await service.mark_delivered(DeliveryRecord(row_offset=0, order_reference="R1"))


@pytest.mark.asyncio
async def test_legacy_layout_cannot_mark():
    service = SheetsService("sheet-123", layout="legacy", client=fake_sheets_client())
    
    with pytest.raises(UpdateError):
        await service.mark_delivered(DeliveryRecord(row_offset=0, order_reference="R1"))
    sheet_values(service.client).update.assert_not_called()
