from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

class BranchStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class Branch(MongoModel):
    """A physical location of a business. Inventory is partitioned per branch."""
    branch_id: str = Field(..., description="Unique branch ID")
    business_id: str
    name: str
    location: str = ""
    status: BranchStatus = BranchStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.utcnow)

class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    location: str = ""

class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = None
    status: Optional[BranchStatus] = None

class BranchOperationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    branch_id: Optional[str] = None
