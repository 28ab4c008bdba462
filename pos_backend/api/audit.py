from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from pos_backend.database import db
from pos_backend.guardrails.audit_report import stock_audit_reporter
from pos_backend.guardrails.decorators import require_permission, require_branch_access
from pos_backend.guardrails.permissions import Permission
from pos_backend.models.audit import InventoryAuditRecord, AuditSource
from pos_backend.models.staff import StaffUser

router = APIRouter(prefix="/api/audit", tags=["Stock Audit"])

REPORT_MEDIA_TYPES = {
    "PDF": "application/pdf",
    "JSON": "application/json",
}

@router.get("/branch/{branch_id}", response_model=List[InventoryAuditRecord])
async def get_branch_audit(
    branch_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_AUDIT))
):
    await require_branch_access(branch_id, current_user)
    return await db.inventory_audit.get_audits_by_branch(current_user.business_id, branch_id)

@router.get("/product/{product_id}", response_model=List[InventoryAuditRecord])
async def get_product_audit(
    product_id: str,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_AUDIT))
):
    product = await db.inventory.get_product(current_user.business_id, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    await require_branch_access(product.branch_id, current_user)
    return await db.inventory_audit.get_audits_by_product(current_user.business_id, product_id)

@router.get("/source/{source}", response_model=List[InventoryAuditRecord])
async def get_source_audit(
    source: AuditSource,
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_AUDIT))
):
    records = await db.inventory_audit.get_audits_by_source(current_user.business_id, source)
    if current_user.is_owner:
        return records
    return [r for r in records if r.branch_id == current_user.branch_id]

@router.get("/range", response_model=List[InventoryAuditRecord])
async def get_audit_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_AUDIT))
):
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    records = await db.inventory_audit.get_audits_by_date_range(current_user.business_id, start, end)
    if current_user.is_owner:
        return records
    return [r for r in records if r.branch_id == current_user.branch_id]

@router.get("/grn/{grn_id}/report")
async def download_grn_audit_report(
    grn_id: str,
    format: str = Query("PDF"),
    current_user: StaffUser = Depends(require_permission(Permission.VIEW_AUDIT))
):
    """Stock audit trail of one GRN as a PDF or JSON download."""
    media_type = REPORT_MEDIA_TYPES.get(format.upper())
    if not media_type:
        raise HTTPException(status_code=400, detail="format must be PDF or JSON")

    grn = await db.grns.get_grn_by_id(grn_id)
    if not grn or grn.business_id != current_user.business_id:
        raise HTTPException(status_code=404, detail="GRN not found")
    await require_branch_access(grn.branch_id, current_user)

    filename, content = await stock_audit_reporter.generate_audit_report(
        current_user.business_id, grn_id, format
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
