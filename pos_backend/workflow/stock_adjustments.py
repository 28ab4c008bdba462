"""
Stock changes made outside GRN confirmation: till sales, manual stock edits
and products created with opening stock. Every change that reaches the
inventory collection is written to the stock audit log, one record per
product and write.
"""
import logging
from typing import Dict, List, Optional

from pos_backend.models.audit import AuditAction, AuditSource, InventoryAuditEntry
from pos_backend.models.inventory import InventoryItem, StockChange, StockDeduction, StockDeductionResult
from pos_backend.models.staff import StaffUser
from pos_backend.workflow.grn_confirmation import AuditLog, BranchDirectory

logger = logging.getLogger(__name__)


class StockAdjustmentService:
    def __init__(self, inventory, branches: BranchDirectory, audit: AuditLog):
        self.inventory = inventory
        self.branches = branches
        self.audit = audit
        self._branch_names: Dict[str, str] = {}

    async def deduct_for_sale(self, items: List[StockDeduction], user: StaffUser,
                              reference_id: str, reference_number: Optional[str] = None) -> StockDeductionResult:
        result = await self.inventory.deduct_multiple_stock(items, user.business_id)
        # A refused batch can still carry deductions that landed before the guard tripped
        for change in result.changes:
            await self._record(change, AuditSource.POS_SALE, user, reference_id, reference_number,
                               notes=f"Sold at till ({reference_number or reference_id})")
        return result

    async def set_stock(self, product_id: str, stock: float, user: StaffUser,
                        notes: Optional[str] = None) -> Optional[StockChange]:
        change = await self.inventory.set_stock(user.business_id, product_id, stock)
        if change and change.delta != 0:
            logger.info(
                f"{user.staff_id} set stock of {change.product_sku or product_id} "
                f"{change.previous_stock:g} -> {change.new_stock:g}"
            )
            await self._record(change, AuditSource.MANUAL_ADJUSTMENT, user, product_id,
                               notes=notes or "Manual stock edit")
        return change

    async def record_opening_stock(self, product: InventoryItem, user: StaffUser):
        if product.stock <= 0:
            return
        change = StockChange(
            product_id=product.product_id,
            product_sku=product.sku,
            product_name=product.name,
            branch_id=product.branch_id,
            previous_stock=0,
            new_stock=product.stock,
        )
        await self._record(change, AuditSource.MANUAL_ADJUSTMENT, user, product.product_id,
                           notes="Opening stock")

    async def _branch_name(self, branch_id: str) -> str:
        if branch_id not in self._branch_names:
            branch = await self.branches.get_branch_by_id(branch_id)
            self._branch_names[branch_id] = branch.name if branch else ""
        return self._branch_names[branch_id]

    async def _record(self, change: StockChange, source: AuditSource, user: StaffUser,
                      reference_id: str, reference_number: Optional[str] = None, notes: Optional[str] = None):
        await self.audit.add_audit_record(
            InventoryAuditEntry(
                branch_id=change.branch_id,
                branch_name=await self._branch_name(change.branch_id),
                product_id=change.product_id,
                product_name=change.product_name,
                product_sku=change.product_sku,
                action=AuditAction.INCREASE if change.delta > 0 else AuditAction.DECREASE,
                quantity=abs(change.delta),
                previous_stock=change.previous_stock,
                new_stock=change.new_stock,
                source=source,
                source_reference_id=reference_id,
                source_reference_number=reference_number,
                performed_by_staff_id=user.staff_id,
                performed_by_staff_name=user.full_name,
                performed_by_role=user.role.value,
                notes=notes,
            ),
            user.business_id
        )
