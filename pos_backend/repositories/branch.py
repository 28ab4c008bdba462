import logging
import uuid
from typing import List, Optional
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.branch import Branch, BranchCreate, BranchUpdate, BranchStatus, BranchOperationResult
from pos_backend.models.business import PlanDetails
from pos_backend.models.staff import StaffUser

logger = logging.getLogger(__name__)

class BranchRepository(BaseRepository[Branch]):

    async def get_branch_by_id(self, branch_id: str) -> Optional[Branch]:
        return await self.get_by_field("branch_id", branch_id)

    async def get_branches_for_business(self, business_id: str) -> List[Branch]:
        return await self.list({"business_id": business_id}, limit=1000, sort=[("created_at", 1)])

    async def get_active_branches(self, business_id: str) -> List[Branch]:
        return await self.list({"business_id": business_id, "status": BranchStatus.ACTIVE.value}, limit=1000)

    async def create_branch(self, data: BranchCreate, user: StaffUser, plan: PlanDetails) -> BranchOperationResult:
        """Owners only, and never beyond the plan's branch allowance."""
        if not user.is_owner:
            return BranchOperationResult(success=False, error="Only Business Owners can create branches")

        existing = await self.count({"business_id": user.business_id})
        if existing >= plan.limits.max_branches:
            return BranchOperationResult(
                success=False,
                error=f"Your {plan.name} plan allows up to {plan.limits.max_branches} branch(es). Upgrade to add more."
            )

        branch = Branch(
            branch_id=f"BR-{uuid.uuid4().hex[:8].upper()}",
            business_id=user.business_id,
            name=data.name.strip(),
            location=data.location.strip(),
        )
        await self.create(branch)
        logger.info(f"Branch {branch.name} ({branch.branch_id}) created for business {user.business_id}")
        return BranchOperationResult(success=True, branch_id=branch.branch_id)

    async def update_branch(self, branch_id: str, updates: BranchUpdate, user: StaffUser) -> BranchOperationResult:
        if not user.is_owner:
            return BranchOperationResult(success=False, error="Only Business Owners can update branches")

        branch = await self.get_branch_by_id(branch_id)
        if not branch or branch.business_id != user.business_id:
            return BranchOperationResult(success=False, error="Branch not found")

        update_data = updates.model_dump(exclude_none=True)
        if update_data:
            await self.update_by_field("branch_id", branch_id, update_data)
        return BranchOperationResult(success=True, branch_id=branch_id)

def can_access_branch(user: StaffUser, branch: Branch) -> bool:
    """Owners see every branch of their business; other staff only their own."""
    if branch.business_id != user.business_id:
        return False
    if user.is_owner:
        return True
    return user.branch_id == branch.branch_id
