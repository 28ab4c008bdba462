from typing import List

from fastapi import APIRouter, Depends, HTTPException

from pos_backend.api.auth import get_current_active_user
from pos_backend.database import db
from pos_backend.guardrails.decorators import require_permission
from pos_backend.guardrails.permissions import Permission
from pos_backend.models.branch import Branch, BranchCreate, BranchUpdate, BranchOperationResult
from pos_backend.models.business import get_plan_details, SubscriptionPlan
from pos_backend.models.staff import StaffUser
from pos_backend.repositories.branch import can_access_branch

router = APIRouter(prefix="/api/branches", tags=["Branches"])

@router.get("/", response_model=List[Branch])
async def list_branches(
    active_only: bool = False,
    current_user: StaffUser = Depends(get_current_active_user)
):
    """Owners get every branch, staff only the one they are assigned to."""
    if active_only:
        branches = await db.branches.get_active_branches(current_user.business_id)
    else:
        branches = await db.branches.get_branches_for_business(current_user.business_id)
    return [b for b in branches if can_access_branch(current_user, b)]

@router.post("/", response_model=BranchOperationResult, status_code=201)
async def create_branch(
    payload: BranchCreate,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_BRANCHES))
):
    business = await db.businesses.get_by_business_id(current_user.business_id)
    plan = business.plan if business else get_plan_details(SubscriptionPlan.FREE_TRIAL)

    result = await db.branches.create_branch(payload, current_user, plan)
    if not result.success:
        raise HTTPException(status_code=403, detail=result.error)
    return result

@router.patch("/{branch_id}", response_model=BranchOperationResult)
async def update_branch(
    branch_id: str,
    payload: BranchUpdate,
    current_user: StaffUser = Depends(require_permission(Permission.MANAGE_BRANCHES))
):
    result = await db.branches.update_branch(branch_id, payload, current_user)
    if not result.success:
        status_code = 404 if result.error == "Branch not found" else 403
        raise HTTPException(status_code=status_code, detail=result.error)
    return result
