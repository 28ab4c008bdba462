from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

class AuditAction(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"

class AuditSource(str, Enum):
    GRN_CONFIRMATION = "GRN_CONFIRMATION"
    POS_SALE = "POS_SALE"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
    STOCK_TRANSFER = "STOCK_TRANSFER"

class InventoryAuditEntry(BaseModel):
    """Fields supplied by the workflow that changed stock."""
    branch_id: str
    branch_name: str = ""
    product_id: str
    product_name: str
    product_sku: str
    action: AuditAction
    quantity: float = Field(..., ge=0, description="Size of the change, always positive")
    previous_stock: float
    new_stock: float
    source: AuditSource
    source_reference_id: str
    source_reference_number: Optional[str] = None
    performed_by_staff_id: str
    performed_by_staff_name: str
    performed_by_role: str
    notes: Optional[str] = None

class InventoryAuditRecord(InventoryAuditEntry, MongoModel):
    """
    Immutable stock audit log entry.
    Created once, never updated or deleted.
    """
    audit_id: str = Field(..., description="AUDIT-YYYYMMDD-HHMMSS-XXXX")
    business_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = {
        "json_schema_extra": {
            "example": {
                "audit_id": "AUDIT-20240201-101500-K3ZQ",
                "business_id": "biz_1",
                "branch_id": "br_main",
                "product_id": "prod_1",
                "product_name": "Rice 5kg",
                "product_sku": "RICE-5",
                "action": "INCREASE",
                "quantity": 5,
                "previous_stock": 20,
                "new_stock": 25,
                "source": "GRN_CONFIRMATION",
                "source_reference_id": "GRN-20240201-AB12CD",
                "source_reference_number": "GRN-001",
                "performed_by_staff_id": "staff_1",
                "performed_by_staff_name": "Ama Mensah",
                "performed_by_role": "Manager"
            }
        }
    }
