from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

class StaffRole(str, Enum):
    BUSINESS_OWNER = "Business Owner"
    MANAGER = "Manager"
    CASHIER = "Cashier"
    ACCOUNTANT = "Accountant"
    STAFF = "Staff"

class StaffUser(MongoModel):
    """
    A person who can sign in. Business owners are not locked to a branch;
    everyone else works at their assigned branch.
    """
    staff_id: str = Field(..., description="Unique staff ID")
    email: str
    first_name: str
    last_name: str
    role: StaffRole = StaffRole.STAFF
    business_id: str
    branch_id: Optional[str] = None

    hashed_password: Optional[str] = None
    disabled: bool = False
    must_change_password: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_owner(self) -> bool:
        return self.role == StaffRole.BUSINESS_OWNER

class StaffPublic(BaseModel):
    staff_id: str
    email: str
    first_name: str
    last_name: str
    role: StaffRole
    business_id: str
    branch_id: Optional[str] = None
