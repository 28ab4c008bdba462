from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

DEFAULT_LOW_STOCK_THRESHOLD = 10

class InventoryItem(MongoModel):
    """
    Stock of one product at one branch.
    Stock is tracked per branch, never globally per business.
    """
    product_id: str = Field(..., description="Unique product ID")
    business_id: str
    branch_id: str = Field(..., description="Owning branch")

    sku: str = ""
    name: str
    category: str = "Uncategorized"
    supplier: str = "Unknown"
    image: Optional[str] = None

    stock: float = Field(0, ge=0)
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD

    price: float = Field(0.0, ge=0, description="Legacy field, mirrors retail_price")
    cost_price: Optional[float] = Field(None, ge=0)
    retail_price: Optional[float] = Field(None, ge=0)
    wholesale_price: Optional[float] = Field(None, ge=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_low_stock(self) -> bool:
        return self.stock < (self.low_stock_threshold or DEFAULT_LOW_STOCK_THRESHOLD)

class StockIncrease(BaseModel):
    """One line of a batch stock increase."""
    product_id: str
    sku: str
    name: str
    quantity: float = Field(..., gt=0)

class StockDeduction(BaseModel):
    product_id: str
    quantity: float = Field(..., gt=0)

class StockIncreaseResult(BaseModel):
    success: bool
    errors: List[str] = []
    created_products: List[str] = Field(default_factory=list, description="SKUs of newly created products")
    partially_applied: bool = Field(False, description="Some writes landed and could not be undone")

class StockChange(BaseModel):
    """Stock level of one product before and after a single write."""
    product_id: str
    product_sku: str = ""
    product_name: str
    branch_id: str
    previous_stock: float
    new_stock: float

    @property
    def delta(self) -> float:
        return self.new_stock - self.previous_stock

class StockDeductionResult(BaseModel):
    success: bool
    errors: List[str] = []
    changes: List[StockChange] = Field(default_factory=list, description="Deductions that were applied")

class ProductCreate(BaseModel):
    sku: str = ""
    name: str
    category: str = "Uncategorized"
    supplier: str = "Unknown"
    stock: float = Field(0, ge=0)
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD
    cost_price: Optional[float] = Field(None, ge=0)
    retail_price: float = Field(0.0, ge=0)
    wholesale_price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None

class ProductUpdate(BaseModel):
    sku: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None
    stock: Optional[float] = Field(None, ge=0)
    low_stock_threshold: Optional[float] = None
    cost_price: Optional[float] = Field(None, ge=0)
    retail_price: Optional[float] = Field(None, ge=0)
    wholesale_price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None
