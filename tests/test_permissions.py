import sys
import os
sys.path.append(os.getcwd())
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import HTTPException

from pos_backend.guardrails.decorators import require_permission, require_branch_access
from pos_backend.guardrails.permissions import PermissionChecker, Permission
from pos_backend.models.branch import Branch, BranchCreate
from pos_backend.models.business import Business, SubscriptionPlan, get_plan_details, has_feature
from pos_backend.repositories.branch import BranchRepository, can_access_branch

@pytest.fixture
def permissions():
    return PermissionChecker()

def test_rbac_check(permissions, owner_user, manager_user, cashier_user):
    # Owner
    assert permissions.check_permission(owner_user, Permission.CONFIRM_GRN) is True
    assert permissions.check_permission(owner_user, Permission.MANAGE_BRANCHES) is True

    # Manager
    assert permissions.check_permission(manager_user, Permission.CONFIRM_GRN) is True
    assert permissions.check_permission(manager_user, Permission.MANAGE_BRANCHES) is False

    # Cashier
    assert permissions.check_permission(cashier_user, Permission.VIEW_INVENTORY) is True
    assert permissions.check_permission(cashier_user, Permission.CONFIRM_GRN) is False

def test_plan_gating(permissions):
    assert permissions.check_plan_feature(SubscriptionPlan.BASIC, Permission.MANAGE_PURCHASE_ORDERS) is False
    assert permissions.check_plan_feature(SubscriptionPlan.PRO, Permission.MANAGE_PURCHASE_ORDERS) is True
    # Not plan-gated
    assert permissions.check_plan_feature(SubscriptionPlan.FREE_TRIAL, Permission.CONFIRM_GRN) is True
    assert has_feature(SubscriptionPlan.ENTERPRISE, "api_access") is True

def test_branch_access(owner_user, manager_user, main_branch):
    east = Branch(branch_id="br_east", business_id="biz_1", name="East")
    foreign = Branch(branch_id="br_x", business_id="biz_2", name="Elsewhere")

    assert can_access_branch(owner_user, east) is True
    assert can_access_branch(owner_user, foreign) is False
    assert can_access_branch(manager_user, main_branch) is True
    assert can_access_branch(manager_user, east) is False

@pytest.mark.asyncio
async def test_require_permission_rejects_role(cashier_user):
    check = require_permission(Permission.CONFIRM_GRN)
    with pytest.raises(HTTPException) as exc:
        await check(cashier_user)
    assert exc.value.status_code == 403

@pytest.mark.asyncio
async def test_require_permission_rejects_plan(manager_user):
    check = require_permission(Permission.MANAGE_PURCHASE_ORDERS)
    with patch("pos_backend.guardrails.decorators.db") as mock_db:
        mock_db.businesses.get_by_business_id = AsyncMock(return_value=Business(
            business_id="biz_1", name="Demo Mart", subscription_plan=SubscriptionPlan.BASIC
        ))
        with pytest.raises(HTTPException) as exc:
            await check(manager_user)
    assert exc.value.status_code == 403
    assert "Basic plan" in exc.value.detail

@pytest.mark.asyncio
async def test_require_branch_access_locks_staff(manager_user):
    with patch("pos_backend.guardrails.decorators.db") as mock_db:
        mock_db.branches.get_branch_by_id = AsyncMock(
            return_value=Branch(branch_id="br_east", business_id="biz_1", name="East")
        )
        with pytest.raises(HTTPException) as exc:
            await require_branch_access("br_east", manager_user)
    assert exc.value.status_code == 403

@pytest.mark.asyncio
async def test_create_branch_owner_only(mock_collection, manager_user):
    repo = BranchRepository(mock_collection, Branch)

    result = await repo.create_branch(BranchCreate(name="East"), manager_user,
                                      get_plan_details(SubscriptionPlan.PRO))

    assert result.success is False
    assert result.error == "Only Business Owners can create branches"
    mock_collection.insert_one.assert_not_called()

@pytest.mark.asyncio
async def test_create_branch_respects_plan_limit(mock_collection, owner_user):
    repo = BranchRepository(mock_collection, Branch)
    mock_collection.count_documents.return_value = 2

    result = await repo.create_branch(BranchCreate(name="Third"), owner_user,
                                      get_plan_details(SubscriptionPlan.BASIC))

    assert result.success is False
    assert "allows up to 2 branch(es)" in result.error
    mock_collection.insert_one.assert_not_called()

@pytest.mark.asyncio
async def test_create_branch_within_limit(mock_collection, owner_user):
    repo = BranchRepository(mock_collection, Branch)
    mock_collection.count_documents.return_value = 1
    mock_collection.insert_one.return_value = MagicMock(inserted_id="oid")

    result = await repo.create_branch(BranchCreate(name="  East Legon ", location="Accra"), owner_user,
                                      get_plan_details(SubscriptionPlan.BASIC))

    assert result.success is True
    assert result.branch_id.startswith("BR-")
    assert mock_collection.insert_one.call_args[0][0]["name"] == "East Legon"
