import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from pos_backend.database import db
from pos_backend.guardrails.decorators import require_permission, require_branch_access
from pos_backend.guardrails.permissions import Permission
from pos_backend.models.inventory import (
    InventoryItem, ProductCreate, ProductUpdate, StockDeduction, StockDeductionResult
)
from pos_backend.models.staff import StaffUser
from pos_backend.workflow.stock_adjustments import StockAdjustmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["Inventory"])

# Request Models
class DeductRequest(BaseModel):
    items: List[StockDeduction] = Field(..., min_length=1)
    sale_id: Optional[str] = None
    sale_number: Optional[str] = None

def get_adjustment_service() -> StockAdjustmentService:
    return StockAdjustmentService(inventory=db.inventory, branches=db.branches, audit=db.inventory_audit)

async def _get_accessible_product(product_id: str, user: StaffUser) -> InventoryItem:
    product = await db.inventory.get_product(user.business_id, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    await require_branch_access(product.branch_id, user)
    return product

@router.get("/branch/{branch_id}", response_model=List[InventoryItem])
async def list_branch_inventory(
    branch_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_INVENTORY))
):
    await require_branch_access(branch_id, current_user)
    return await db.inventory.get_inventory_for_branch(branch_id, current_user.business_id)

@router.get("/low-stock", response_model=List[InventoryItem])
async def list_low_stock(
    branch_id: Optional[str] = None,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_INVENTORY))
):
    if branch_id:
        await require_branch_access(branch_id, current_user)
    elif not current_user.is_owner:
        branch_id = current_user.branch_id
    return await db.inventory.get_low_stock_products(current_user.business_id, branch_id)

@router.get("/{product_id}", response_model=InventoryItem)
async def get_product(
    product_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_INVENTORY))
):
    return await _get_accessible_product(product_id, current_user)

@router.post("/branch/{branch_id}", response_model=InventoryItem, status_code=201)
async def add_product(
    branch_id: str,
    payload: ProductCreate,
    current_user: StaffUser = Depends(require_permission(Permission.ADJUST_INVENTORY)),
    adjustments: StockAdjustmentService = Depends(get_adjustment_service)
):
    await require_branch_access(branch_id, current_user)
    product = await db.inventory.add_product(payload, current_user.business_id, branch_id)
    await adjustments.record_opening_stock(product, current_user)
    return product

@router.patch("/{product_id}", response_model=InventoryItem)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    current_user: StaffUser = Depends(require_permission(Permission.ADJUST_INVENTORY)),
    adjustments: StockAdjustmentService = Depends(get_adjustment_service)
):
    await _get_accessible_product(product_id, current_user)
    updates = payload.model_dump(exclude_none=True)
    stock = updates.pop("stock", None)
    if stock is not None:
        await adjustments.set_stock(product_id, stock, current_user)
    updated = await db.inventory.update_product(current_user.business_id, product_id, updates)
    if not updated:
        raise HTTPException(status_code=404, detail="Product not found")
    return updated

@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.ADJUST_INVENTORY))
):
    await _get_accessible_product(product_id, current_user)
    if not await db.inventory.delete_product(current_user.business_id, product_id):
        raise HTTPException(status_code=404, detail="Product not found")

@router.post("/deduct", response_model=StockDeductionResult)
async def deduct_stock(
    payload: DeductRequest,
    current_user: StaffUser = Depends(require_permission(Permission.ADJUST_INVENTORY)),
    adjustments: StockAdjustmentService = Depends(get_adjustment_service)
):
    """Batch deduction; refused as a whole when any line is short."""
    if not current_user.is_owner:
        for item in payload.items:
            product = await db.inventory.get_product(current_user.business_id, item.product_id)
            if product and product.branch_id != current_user.branch_id:
                raise HTTPException(status_code=403, detail="You are locked to your assigned branch")

    sale_id = payload.sale_id or f"SALE-{datetime.utcnow().strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"
    result = await adjustments.deduct_for_sale(payload.items, current_user, sale_id, payload.sale_number)
    if not result.success:
        logger.warning(f"Stock deduction refused for {current_user.staff_id}: {result.errors}")
        return JSONResponse(status_code=409, content=result.model_dump())
    return result
