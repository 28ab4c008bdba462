from enum import Enum
from typing import List, Optional
from pydantic import BaseModel

class ConfirmationError(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NO_RECEIVED_ITEMS = "NO_RECEIVED_ITEMS"
    CONFIRMATION_IN_PROGRESS = "CONFIRMATION_IN_PROGRESS"
    INVENTORY_UPDATE_FAILED = "INVENTORY_UPDATE_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

class GRNConfirmationResult(BaseModel):
    """Outcome of a GRN confirmation. Callers branch on `success`."""
    success: bool
    message: str
    products_updated: int = 0
    products_created: int = 0
    errors: List[str] = []
    error: Optional[ConfirmationError] = None

    @classmethod
    def failure(cls, error: ConfirmationError, message: str, errors: Optional[List[str]] = None) -> "GRNConfirmationResult":
        return cls(
            success=False,
            message=message,
            errors=errors if errors is not None else [message],
            error=error,
        )
