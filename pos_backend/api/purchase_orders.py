from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from pos_backend.database import db
from pos_backend.guardrails.decorators import require_permission, require_branch_access
from pos_backend.guardrails.permissions import Permission
from pos_backend.models.grn import GoodsReceivedNote
from pos_backend.models.purchase_order import (
    PurchaseOrder, PurchaseOrderCreate, POStatus, RECEIVABLE_STATUSES
)
from pos_backend.models.staff import StaffUser

router = APIRouter(prefix="/api/purchase-orders", tags=["Purchase Orders"])

# Request Models
class CancelRequest(BaseModel):
    reason: Optional[str] = None

class ReceiveRequest(BaseModel):
    notes: Optional[str] = None

async def _get_accessible_po(po_id: str, user: StaffUser) -> PurchaseOrder:
    po = await db.purchase_orders.get_po_by_id(po_id)
    if not po or po.business_id != user.business_id:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    await require_branch_access(po.branch_id, user)
    return po

async def _apply(po_id: str, outcome: Tuple[bool, Optional[str]]) -> PurchaseOrder:
    ok, error = outcome
    if not ok:
        raise HTTPException(status_code=409, detail=error)
    return await db.purchase_orders.get_po_by_id(po_id)

@router.get("/", response_model=List[PurchaseOrder])
async def list_purchase_orders(
    branch_id: Optional[str] = None,
    status: Optional[POStatus] = None,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_PURCHASE_ORDERS))
):
    if not branch_id and not current_user.is_owner:
        branch_id = current_user.branch_id

    if branch_id:
        await require_branch_access(branch_id, current_user)
        orders = await db.purchase_orders.get_purchase_orders_by_branch(current_user.business_id, branch_id)
        return [po for po in orders if status is None or po.status == status]

    if status:
        return await db.purchase_orders.get_purchase_orders_by_status(current_user.business_id, status)
    return await db.purchase_orders.list({"business_id": current_user.business_id}, limit=500)

@router.post("/", response_model=PurchaseOrder, status_code=201)
async def create_purchase_order(
    payload: PurchaseOrderCreate,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_PURCHASE_ORDERS))
):
    await require_branch_access(payload.branch_id, current_user)
    return await db.purchase_orders.create_purchase_order(payload, current_user)

@router.get("/{po_id}", response_model=PurchaseOrder)
async def get_purchase_order(
    po_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_PURCHASE_ORDERS))
):
    return await _get_accessible_po(po_id, current_user)

@router.post("/{po_id}/send", response_model=PurchaseOrder)
async def send_purchase_order(
    po_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_PURCHASE_ORDERS))
):
    await _get_accessible_po(po_id, current_user)
    return await _apply(po_id, await db.purchase_orders.send_purchase_order(po_id))

@router.post("/{po_id}/approve", response_model=PurchaseOrder)
async def approve_purchase_order(
    po_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.APPROVE_PURCHASE_ORDERS))
):
    await _get_accessible_po(po_id, current_user)
    return await _apply(po_id, await db.purchase_orders.approve_purchase_order(po_id, current_user))

@router.post("/{po_id}/cancel", response_model=PurchaseOrder)
async def cancel_purchase_order(
    po_id: str,
    payload: CancelRequest,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_PURCHASE_ORDERS))
):
    await _get_accessible_po(po_id, current_user)
    return await _apply(po_id, await db.purchase_orders.cancel_purchase_order(po_id, payload.reason))

@router.post("/{po_id}/delivered", response_model=PurchaseOrder)
async def mark_delivered(
    po_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_PURCHASE_ORDERS))
):
    await _get_accessible_po(po_id, current_user)
    return await _apply(po_id, await db.purchase_orders.mark_delivered(po_id))

@router.post("/{po_id}/receive", response_model=GoodsReceivedNote, status_code=201)
async def receive_goods(
    po_id: str,
    payload: ReceiveRequest,
    current_user: StaffUser = Depends(require_permission(Permission.CREATE_GRN))
):
    """Open a Draft GRN pre-filled from the PO lines."""
    po = await _get_accessible_po(po_id, current_user)
    if po.status not in RECEIVABLE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot receive goods: PO status is {po.status.value}")
    return await db.grns.create_grn_from_purchase_order(po, current_user, payload.notes)
