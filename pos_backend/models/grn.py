from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

class GRNStatus(str, Enum):
    DRAFT = "Draft"
    CONFIRMED = "Confirmed"

class DeliveryStatus(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"

class GRNItem(BaseModel):
    """A single product line on a goods received note."""
    product_id: str
    product_sku: str
    product_name: str
    ordered_quantity: float = Field(..., ge=0)
    received_quantity: float = Field(0, ge=0, description="May be below ordered for partial deliveries")
    notes: Optional[str] = Field(None, description="Damaged, Missing, Partially delivered...")

class GoodsReceivedNote(MongoModel):
    """
    Goods Received Note (GRN) document.
    Records the physical delivery of goods against a purchase order.
    Editable while Draft, read-only once Confirmed.
    """
    grn_id: str = Field(..., description="Unique GRN ID (GRN-YYYYMMDD-XXXXXX)")
    grn_number: str = Field(..., description="Sequential number per business, e.g. GRN-001")
    business_id: str
    branch_id: str
    branch_name: str = ""

    purchase_order_id: Optional[str] = None
    purchase_order_number: str = Field(..., description="Reference to originating PO")
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None

    items: List[GRNItem] = []
    delivery_status: DeliveryStatus = DeliveryStatus.FULL
    status: GRNStatus = Field(default=GRNStatus.DRAFT)

    received_by_staff_id: Optional[str] = None
    received_by_staff_name: Optional[str] = None
    received_by_role: Optional[str] = None
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    confirmed_at: Optional[datetime] = None

    # Set while a confirmation attempt owns this GRN
    confirmation_token: Optional[str] = None
    confirmation_started_at: Optional[datetime] = None

    @property
    def is_draft(self) -> bool:
        return self.status == GRNStatus.DRAFT

def calculate_delivery_status(items: List[GRNItem]) -> DeliveryStatus:
    """Full when every line was received exactly as ordered."""
    if all(item.received_quantity == item.ordered_quantity for item in items):
        return DeliveryStatus.FULL
    return DeliveryStatus.PARTIAL

class GRNCreate(BaseModel):
    """Payload for recording a new delivery."""
    branch_id: str
    branch_name: str = ""
    purchase_order_id: Optional[str] = None
    purchase_order_number: str
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    items: List[GRNItem]
    notes: Optional[str] = None

class GRNUpdate(BaseModel):
    items: Optional[List[GRNItem]] = None
    notes: Optional[str] = None
    supplier_name: Optional[str] = None
