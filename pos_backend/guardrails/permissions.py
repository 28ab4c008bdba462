from enum import Enum
import logging
from pos_backend.models.business import SubscriptionPlan, has_feature
from pos_backend.models.staff import StaffUser, StaffRole

logger = logging.getLogger(__name__)

class Permission(str, Enum):
    # Goods received
    CREATE_GRN = "CREATE_GRN"
    VIEW_GRN = "VIEW_GRN"
    CONFIRM_GRN = "CONFIRM_GRN"

    # Inventory
    VIEW_INVENTORY = "VIEW_INVENTORY"
    ADJUST_INVENTORY = "ADJUST_INVENTORY"
    VIEW_AUDIT = "VIEW_AUDIT"

    # Procurement
    MANAGE_PURCHASE_ORDERS = "MANAGE_PURCHASE_ORDERS"
    APPROVE_PURCHASE_ORDERS = "APPROVE_PURCHASE_ORDERS"

    # Admin
    MANAGE_BRANCHES = "MANAGE_BRANCHES"

# Role -> Permissions Mapping
ROLE_PERMISSIONS = {
    StaffRole.BUSINESS_OWNER: [p for p in Permission], # All
    StaffRole.MANAGER: [
        Permission.CREATE_GRN, Permission.VIEW_GRN, Permission.CONFIRM_GRN,
        Permission.VIEW_INVENTORY, Permission.ADJUST_INVENTORY, Permission.VIEW_AUDIT,
        Permission.MANAGE_PURCHASE_ORDERS, Permission.APPROVE_PURCHASE_ORDERS
    ],
    StaffRole.ACCOUNTANT: [
        Permission.VIEW_GRN, Permission.VIEW_INVENTORY, Permission.VIEW_AUDIT
    ],
    StaffRole.STAFF: [
        Permission.CREATE_GRN, Permission.VIEW_GRN, Permission.VIEW_INVENTORY
    ],
    StaffRole.CASHIER: [
        Permission.VIEW_INVENTORY
    ],
}

# Plan feature required before a permission can be used at all
PERMISSION_FEATURES = {
    Permission.MANAGE_PURCHASE_ORDERS: "purchase_orders",
    Permission.APPROVE_PURCHASE_ORDERS: "purchase_orders",
}

class PermissionChecker:

    def check_permission(self, user: StaffUser, permission: Permission) -> bool:
        """
        Basic Role-Based Check.
        """
        allowed = ROLE_PERMISSIONS.get(user.role, [])
        if permission in allowed:
            return True

        logger.warning(f"User {user.staff_id} ({user.role.value}) denied permission {permission.value}")
        return False

    def check_plan_feature(self, plan: SubscriptionPlan, permission: Permission) -> bool:
        feature = PERMISSION_FEATURES.get(permission)
        if feature is None:
            return True
        return has_feature(plan, feature)

permission_checker = PermissionChecker()
