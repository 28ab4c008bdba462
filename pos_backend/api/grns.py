from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from pos_backend.database import db
from pos_backend.guardrails.decorators import require_permission, require_branch_access
from pos_backend.guardrails.permissions import Permission
from pos_backend.models.audit import InventoryAuditRecord
from pos_backend.models.confirmation import ConfirmationError, GRNConfirmationResult
from pos_backend.models.grn import GoodsReceivedNote, GRNCreate, GRNUpdate
from pos_backend.models.purchase_order import RECEIVABLE_STATUSES
from pos_backend.models.staff import StaffUser
from pos_backend.workflow.grn_confirmation import GRNConfirmationService

router = APIRouter(prefix="/api/grns", tags=["Goods Received"])

CONFIRMATION_STATUS_CODES = {
    ConfirmationError.NOT_FOUND: 404,
    ConfirmationError.ALREADY_PROCESSED: 409,
    ConfirmationError.CONFIRMATION_IN_PROGRESS: 409,
    ConfirmationError.UNAUTHENTICATED: 401,
    ConfirmationError.NO_RECEIVED_ITEMS: 422,
    ConfirmationError.INVENTORY_UPDATE_FAILED: 502,
    ConfirmationError.INTERNAL_ERROR: 500,
}

def get_confirmation_service() -> GRNConfirmationService:
    return GRNConfirmationService(
        grns=db.grns,
        inventory=db.inventory,
        branches=db.branches,
        audit=db.inventory_audit,
        transaction=db.transaction,
    )

async def _get_accessible_grn(grn_id: str, user: StaffUser) -> GoodsReceivedNote:
    grn = await db.grns.get_grn_by_id(grn_id)
    if not grn or grn.business_id != user.business_id:
        raise HTTPException(status_code=404, detail="GRN not found")
    await require_branch_access(grn.branch_id, user)
    return grn

@router.get("/", response_model=List[GoodsReceivedNote])
async def list_grns(
    branch_id: Optional[str] = None,
    purchase_order_id: Optional[str] = None,
    supplier_id: Optional[str] = None,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_GRN))
):
    if purchase_order_id:
        grns = await db.grns.get_grns_by_po(current_user.business_id, purchase_order_id)
    elif supplier_id:
        grns = await db.grns.get_grns_by_supplier(current_user.business_id, supplier_id)
    else:
        branch_id = branch_id or current_user.branch_id
        if not branch_id:
            raise HTTPException(status_code=400, detail="branch_id is required")
        await require_branch_access(branch_id, current_user)
        return await db.grns.get_grns_by_branch(current_user.business_id, branch_id)

    if not current_user.is_owner:
        grns = [g for g in grns if g.branch_id == current_user.branch_id]
    if branch_id:
        grns = [g for g in grns if g.branch_id == branch_id]
    return grns

@router.post("/", response_model=GoodsReceivedNote, status_code=201)
async def create_grn(
    payload: GRNCreate,
    current_user: StaffUser = Depends(require_permission(Permission.CREATE_GRN))
):
    await require_branch_access(payload.branch_id, current_user)

    if payload.purchase_order_id:
        po = await db.purchase_orders.get_po_by_id(payload.purchase_order_id)
        if not po or po.business_id != current_user.business_id:
            raise HTTPException(status_code=404, detail="Purchase order not found")
        if po.status not in RECEIVABLE_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot receive goods: PO status is {po.status.value}")

    return await db.grns.create_grn(payload, current_user.business_id, current_user)

@router.get("/{grn_id}", response_model=GoodsReceivedNote)
async def get_grn(
    grn_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_GRN))
):
    return await _get_accessible_grn(grn_id, current_user)

@router.patch("/{grn_id}", response_model=GoodsReceivedNote)
async def update_grn(
    grn_id: str,
    payload: GRNUpdate,
    current_user: StaffUser = Depends(require_permission(Permission.CREATE_GRN))
):
    grn = await _get_accessible_grn(grn_id, current_user)
    if not grn.is_draft:
        raise HTTPException(status_code=409, detail=f"GRN is {grn.status.value} and can no longer be edited")

    updated = await db.grns.update_grn(grn_id, payload.model_dump(exclude_none=True))
    if not updated:
        raise HTTPException(status_code=409, detail="GRN can no longer be edited")
    return updated

@router.post("/{grn_id}/confirm", response_model=GRNConfirmationResult)
async def confirm_grn(
    grn_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.CONFIRM_GRN)),
    service: GRNConfirmationService = Depends(get_confirmation_service)
):
    grn = await db.grns.get_grn_by_id(grn_id)
    if grn:
        if grn.business_id != current_user.business_id:
            raise HTTPException(status_code=404, detail="GRN not found")
        await require_branch_access(grn.branch_id, current_user)

    result = await service.confirm_grn(grn_id, current_user)
    status_code = 200 if result.success else CONFIRMATION_STATUS_CODES.get(result.error, 400)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))

@router.get("/{grn_id}/audit", response_model=List[InventoryAuditRecord])
async def get_grn_audit_trail(
    grn_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_AUDIT))
):
    grn = await _get_accessible_grn(grn_id, current_user)
    return await db.inventory_audit.get_audits_by_grn(current_user.business_id, grn.grn_id)
