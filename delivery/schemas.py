"""
Request / response shapes and read-only views of upstream records.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerificationRequest(BaseModel):
    """Identifiers sent by the checkout page after PayPal approval."""
    
    order_reference: str
    order_id: str


class LinksResponse(BaseModel):
    """Response for the `delivery` sheet layout."""
    
    model_config = ConfigDict(populate_by_name=True)
    
    success: bool = True
    view_link: Optional[str] = Field(default=None, alias="viewLink")
    direct_download_link: Optional[str] = Field(default=None, alias="directDownloadLink")
    delivered: bool = False


class LegacyLinksResponse(BaseModel):
    """Response for the `legacy` sheet layout."""
    
    model_config = ConfigDict(populate_by_name=True)
    
    direct_download_url: Optional[str] = Field(default=None, alias="directDownloadUrl")
    shareable_url: Optional[str] = Field(default=None, alias="shareableUrl")


@dataclass
class Capture:
    id: Optional[str]
    status: Optional[str]


@dataclass
class PaymentOrder:
    """The parts of a PayPal v2 checkout order this service looks at."""
    
    id: Optional[str]
    status: Optional[str]
    correlation_field: Optional[str]
    captures: List[Capture] = field(default_factory=list)
    
    @classmethod
    def from_paypal(cls, data: Dict[str, Any]) -> "PaymentOrder":
        """
        Build from the raw order JSON.
        
        Raises KeyError / TypeError / ValueError on a shape that does not
        look like an order; callers translate that into UpstreamDataError.
        """
        units = data["purchase_units"]
        if not isinstance(units, list) or not units:
            raise ValueError("purchase_units is empty")
        
        captures: List[Capture] = []
        for unit in units:
            payments = unit.get("payments") or {}
            for capture in payments.get("captures") or []:
                captures.append(Capture(id=capture.get("id"), status=capture.get("status")))
        
        return cls(
            id=data.get("id"),
            status=data.get("status"),
            correlation_field=units[0].get("custom_id"),
            captures=captures,
        )


@dataclass
class DeliveryRecord:
    """One row of the orders sheet, located by its offset in the read range."""
    
    row_offset: int
    order_reference: str
    file_id: Optional[str] = None
    view_link: Optional[str] = None
    direct_download_link: Optional[str] = None
    delivery_status: Optional[str] = None
    delivered_at: Optional[str] = None
