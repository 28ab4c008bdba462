from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

class POStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    APPROVED = "Approved"
    CANCELLED = "Cancelled"
    DELIVERED = "Delivered"

# Goods may only be received against orders the supplier has
RECEIVABLE_STATUSES = (POStatus.SENT, POStatus.APPROVED)

class POLineItem(BaseModel):
    product_id: str
    product_name: str
    product_sku: str
    current_stock: float = Field(0, description="Reference only, never modified")
    requested_quantity: float = Field(..., gt=0)
    unit_cost: Optional[float] = Field(None, ge=0)
    total_cost: Optional[float] = Field(None, ge=0)

class PurchaseOrder(MongoModel):
    """
    Purchase Order sent to a supplier for one branch.
    """
    po_id: str = Field(..., description="Unique PO ID (PO-YYYYMMDD-XXXXXX)")
    po_number: str = Field(..., description="Sequential number per business, e.g. PO-001")
    business_id: str
    branch_id: str
    branch_name: str = ""

    supplier_id: str
    supplier_name: str
    supplier_contact: Optional[str] = None

    items: List[POLineItem] = []
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    total_amount: float = 0.0

    status: POStatus = Field(default=POStatus.DRAFT)

    created_by_staff_id: str
    created_by_staff_name: str
    created_by_role: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    sent_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by_staff_id: Optional[str] = None
    approved_by_staff_name: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    delivered_at: Optional[datetime] = None

    def calculate_total(self) -> float:
        """Sum of line totals, falling back to quantity * unit cost."""
        total = 0.0
        for item in self.items:
            if item.total_cost is not None:
                total += item.total_cost
            elif item.unit_cost is not None:
                total += item.requested_quantity * item.unit_cost
        return total

class PurchaseOrderCreate(BaseModel):
    branch_id: str
    branch_name: str = ""
    supplier_id: str
    supplier_name: str
    supplier_contact: Optional[str] = None
    items: List[POLineItem] = Field(..., min_length=1)
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
