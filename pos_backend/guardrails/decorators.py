from fastapi import HTTPException, Depends
from pos_backend.api.auth import get_current_active_user
from pos_backend.database import db
from pos_backend.guardrails.permissions import permission_checker, Permission, PERMISSION_FEATURES
from pos_backend.models.business import SubscriptionPlan
from pos_backend.models.staff import StaffUser
from pos_backend.repositories.branch import can_access_branch

def require_permission(permission: Permission):
    """
    Dependency to check the role permission and, where the permission is
    plan-gated, the business's subscription plan.
    """
    async def check(user: StaffUser = Depends(get_current_active_user)) -> StaffUser:
        if not permission_checker.check_permission(user, permission):
            raise HTTPException(
                status_code=403,
                detail=f"Permission denied: {permission.value} required"
            )
        if permission in PERMISSION_FEATURES:
            business = await db.businesses.get_by_business_id(user.business_id)
            plan = business.subscription_plan if business else SubscriptionPlan.FREE_TRIAL
            if not permission_checker.check_plan_feature(plan, permission):
                raise HTTPException(
                    status_code=403,
                    detail=f"Your {plan.value} plan does not include {PERMISSION_FEATURES[permission].replace('_', ' ')}"
                )
        return user
    return check

async def require_branch_access(branch_id: str, user: StaffUser) -> None:
    """Raise 404/403 unless the user may work with this branch."""
    branch = await db.branches.get_branch_by_id(branch_id)
    if not branch or branch.business_id != user.business_id:
        raise HTTPException(status_code=404, detail="Branch not found")
    if not can_access_branch(user, branch):
        raise HTTPException(status_code=403, detail="You are locked to your assigned branch")
