"""
Pytest configuration and fixtures.
"""

import sys
import os
import json
from typing import Any, Callable, List, Optional

import pytest

# Add package to path
sys.path.append(os.getcwd())

from delivery.config import Settings
from delivery.services.delivery_service import DeliveryService
from delivery.services.paypal_service import PayPalService
from delivery.services.sheets_service import SheetsService
from tests.fakes import PAYPAL_BASE, SERVICE_ACCOUNT_INFO, FakePayPal, fake_sheets_client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        paypal_client_id="client-id",
        paypal_client_secret="client-secret",
        google_service_account=json.dumps(SERVICE_ACCOUNT_INFO),
        google_sheet_id="sheet-123",
        sheet_range="Orders!A2:F",
    )


@pytest.fixture
def fake_paypal() -> FakePayPal:
    return FakePayPal()


@pytest.fixture
def make_service(settings, fake_paypal) -> Callable[..., DeliveryService]:
    """Build a DeliveryService wired to the fakes."""
    
    def _make(rows: Optional[List[List[Any]]] = None, **overrides) -> DeliveryService:
        cfg = settings.model_copy(update=overrides)
        paypal = PayPalService(PAYPAL_BASE, transport=fake_paypal.transport)
        sheets = SheetsService(
            spreadsheet_id=cfg.google_sheet_id,
            sheet_range=cfg.sheet_range,
            layout=cfg.sheet_layout,
            client=fake_sheets_client(rows),
        )
        return DeliveryService(cfg, paypal=paypal, sheets=sheets)
    
    return _make
