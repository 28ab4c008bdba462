"""
GRN confirmation with inventory reconciliation.

Confirming a goods received note moves it from Draft to Confirmed, raises
branch stock by the quantities actually received, and writes one stock audit
record per received line. Order of effects:

    inventory increase -> GRN status flip -> audit records

A per-GRN confirmation token is taken before anything is written. If the
process dies after stock was raised but before the status flip, or a batch
fails part way and its writes cannot be undone, the token stays on the GRN
and further attempts are refused with CONFIRMATION_IN_PROGRESS until an
operator reviews the touched inventory rows and clears it
(scripts/clear_confirmation_lock.py). Re-running the confirmation
in that state would add the stock a second time.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Dict, List, Optional, Protocol

from pos_backend.models.audit import AuditAction, AuditSource, InventoryAuditEntry
from pos_backend.models.branch import Branch
from pos_backend.models.confirmation import ConfirmationError, GRNConfirmationResult
from pos_backend.models.grn import GoodsReceivedNote, GRNStatus
from pos_backend.models.inventory import InventoryItem, StockIncrease, StockIncreaseResult
from pos_backend.models.staff import StaffUser

logger = logging.getLogger(__name__)


class GRNStore(Protocol):
    async def get_grn_by_id(self, grn_id: str, session: Any = None) -> Optional[GoodsReceivedNote]: ...
    async def acquire_confirmation_lock(self, grn_id: str, token: str) -> bool: ...
    async def release_confirmation_lock(self, grn_id: str, token: str) -> bool: ...
    async def confirm(self, grn_id: str, token: Optional[str] = None, session: Any = None) -> bool: ...


class InventoryStore(Protocol):
    async def get_inventory_for_branch(self, branch_id: str, business_id: Optional[str] = None,
                                       session: Any = None) -> List[InventoryItem]: ...
    async def increase_multiple_stock(self, items: List[StockIncrease], branch_id: str, business_id: str,
                                      session: Any = None) -> StockIncreaseResult: ...


class BranchDirectory(Protocol):
    async def get_branch_by_id(self, branch_id: str) -> Optional[Branch]: ...


class AuditLog(Protocol):
    async def add_audit_record(self, entry: InventoryAuditEntry, business_id: str, session: Any = None) -> Any: ...


TransactionFactory = Callable[[], AsyncContextManager[Any]]


@asynccontextmanager
async def no_transaction() -> AsyncIterator[None]:
    yield None


def build_stock_updates(grn: GoodsReceivedNote) -> List[StockIncrease]:
    """Stock follows what was received, never what was ordered."""
    return [
        StockIncrease(
            product_id=item.product_id,
            sku=item.product_sku,
            name=item.product_name,
            quantity=item.received_quantity,
        )
        for item in grn.items
        if item.received_quantity > 0
    ]


def find_snapshot_product(snapshot: List[InventoryItem], update: StockIncrease) -> Optional[InventoryItem]:
    for product in snapshot:
        if product.product_id == update.product_id:
            return product
    if update.sku:
        for product in snapshot:
            if product.sku == update.sku:
                return product
    return None


def find_previous_stock(snapshot: List[InventoryItem], update: StockIncrease) -> float:
    """Pre-update stock for an item: match product id, then SKU, else 0."""
    product = find_snapshot_product(snapshot, update)
    return product.stock if product else 0


def stock_key(snapshot: List[InventoryItem], update: StockIncrease) -> str:
    """Identity the inventory store sums lines under: matched product, else the new product's id or SKU."""
    product = find_snapshot_product(snapshot, update)
    if product:
        return product.product_id
    return update.product_id or f"sku:{update.sku}"


class GRNConfirmationService:
    def __init__(self,
                 grns: GRNStore,
                 inventory: InventoryStore,
                 branches: BranchDirectory,
                 audit: AuditLog,
                 transaction: TransactionFactory = no_transaction):
        self.grns = grns
        self.inventory = inventory
        self.branches = branches
        self.audit = audit
        self.transaction = transaction

    async def confirm_grn(self, grn_id: str, user: Optional[StaffUser]) -> GRNConfirmationResult:
        """
        Confirm a Draft GRN and apply its received quantities to branch stock.
        Never raises: every outcome, including unexpected errors, comes back
        as a GRNConfirmationResult.
        """
        token: Optional[str] = None
        stock_written = False

        try:
            grn = await self.grns.get_grn_by_id(grn_id)
            if not grn:
                return GRNConfirmationResult.failure(ConfirmationError.NOT_FOUND, "GRN not found")

            if grn.status != GRNStatus.DRAFT:
                status = grn.status.value
                return GRNConfirmationResult.failure(
                    ConfirmationError.ALREADY_PROCESSED,
                    f"GRN is already {status}. Cannot confirm again.",
                    [f"GRN status is {status}, not Draft"]
                )

            if user is None:
                return GRNConfirmationResult.failure(ConfirmationError.UNAUTHENTICATED, "No user context")

            stock_updates = build_stock_updates(grn)
            if not stock_updates:
                return GRNConfirmationResult.failure(
                    ConfirmationError.NO_RECEIVED_ITEMS,
                    "No items received to update inventory",
                    ["No items with received quantity > 0"]
                )

            token = uuid.uuid4().hex
            if not await self.grns.acquire_confirmation_lock(grn_id, token):
                token = None
                return GRNConfirmationResult.failure(
                    ConfirmationError.CONFIRMATION_IN_PROGRESS,
                    f"GRN {grn.grn_number} is already being confirmed",
                )

            branch = await self.branches.get_branch_by_id(grn.branch_id)
            branch_name = branch.name if branch else grn.branch_name

            async with self.transaction() as session:
                snapshot = await self.inventory.get_inventory_for_branch(
                    grn.branch_id, grn.business_id, session=session
                )

                # Without a transaction an exception from the batch may leave some of it written
                stock_written = session is None
                inventory_result = await self.inventory.increase_multiple_stock(
                    stock_updates, grn.branch_id, grn.business_id, session=session
                )
                if not inventory_result.success:
                    if session is not None:
                        await session.abort_transaction()
                    if inventory_result.partially_applied:
                        logger.error(
                            f"GRN {grn.grn_number}: stock batch failed part way and could not be undone; "
                            f"confirmation lock kept to prevent double counting"
                        )
                    else:
                        await self.grns.release_confirmation_lock(grn_id, token)
                    token = None
                    logger.warning(f"GRN {grn.grn_number}: inventory update failed: {inventory_result.errors}")
                    return GRNConfirmationResult.failure(
                        ConfirmationError.INVENTORY_UPDATE_FAILED,
                        "Failed to update inventory",
                        list(inventory_result.errors)
                    )

                if not await self.grns.confirm(grn_id, token, session=session):
                    raise RuntimeError(f"GRN {grn_id} could not be marked Confirmed after stock update")
                if session is None:
                    # Confirmed and unlocked; a rolled-back transaction would restore the lock
                    token = None

                # Lines for the same product chain from one to the next
                levels: Dict[str, float] = {}
                for update in stock_updates:
                    key = stock_key(snapshot, update)
                    previous_stock = levels.get(key, find_previous_stock(snapshot, update))
                    levels[key] = previous_stock + update.quantity
                    await self.audit.add_audit_record(
                        InventoryAuditEntry(
                            branch_id=grn.branch_id,
                            branch_name=branch_name,
                            product_id=update.product_id,
                            product_name=update.name,
                            product_sku=update.sku,
                            action=AuditAction.INCREASE,
                            quantity=update.quantity,
                            previous_stock=previous_stock,
                            new_stock=previous_stock + update.quantity,
                            source=AuditSource.GRN_CONFIRMATION,
                            source_reference_id=grn.grn_id,
                            source_reference_number=grn.grn_number,
                            performed_by_staff_id=user.staff_id,
                            performed_by_staff_name=f"{user.first_name} {user.last_name}",
                            performed_by_role=user.role.value,
                            notes=f"Stock increased from GRN {grn.grn_number} for PO {grn.purchase_order_number}",
                        ),
                        grn.business_id,
                        session=session
                    )

            created = len(inventory_result.created_products)
            logger.info(
                f"GRN {grn.grn_number} confirmed by {user.staff_id}: "
                f"{len(stock_updates) - created} updated, {created} created"
            )
            return GRNConfirmationResult(
                success=True,
                message=f"GRN {grn.grn_number} confirmed successfully. Inventory updated.",
                products_updated=len(stock_updates) - created,
                products_created=created,
                errors=[],
            )

        except Exception as e:
            logger.exception(f"Unexpected error confirming GRN {grn_id}")
            if token and not stock_written:
                await self._release_lock(grn_id, token)
            elif token:
                logger.error(
                    f"GRN {grn_id}: stock was increased but the GRN is still Draft; "
                    f"confirmation lock kept to prevent double counting"
                )
            return GRNConfirmationResult.failure(
                ConfirmationError.INTERNAL_ERROR,
                "Unexpected error while confirming GRN",
                [str(e)]
            )

    async def _release_lock(self, grn_id: str, token: str):
        try:
            await self.grns.release_confirmation_lock(grn_id, token)
        except Exception:
            logger.exception(f"Could not release confirmation lock on GRN {grn_id}")
