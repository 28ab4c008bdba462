import sys
import os
sys.path.append(os.getcwd())
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock
from pymongo.errors import PyMongoError

from pos_backend.models.audit import InventoryAuditRecord
from pos_backend.models.confirmation import ConfirmationError
from pos_backend.models.grn import GoodsReceivedNote, GRNItem, GRNStatus
from pos_backend.models.inventory import InventoryItem, StockIncrease
from pos_backend.repositories.audit import InventoryAuditRepository
from pos_backend.repositories.grn import GRNRepository
from pos_backend.repositories.inventory import InventoryRepository
from pos_backend.workflow.grn_confirmation import GRNConfirmationService

GRN_ID = "GRN-20240201-AB12CD"


def _stock(collection, product_id):
    return next(d["stock"] for d in collection.docs if d["product_id"] == product_id)


def _concurrent_insert(product_id, stock):
    """Another writer creates the product between resolution and the batch write."""
    def _insert(collection):
        collection.docs.append({
            "_id": "concurrent", "business_id": "biz_1", "branch_id": "br_main",
            "product_id": product_id, "sku": "NEW-1", "name": "New", "stock": stock,
        })
    return _insert


@pytest_asyncio.fixture
async def seeded_inventory(inventory_collection, make_product):
    await inventory_collection.insert_one(make_product("prod_rice", "RICE-5", 20).to_mongo())
    return inventory_collection


@pytest.fixture
def inventory(seeded_inventory):
    return InventoryRepository(seeded_inventory, InventoryItem)


@pytest_asyncio.fixture
async def confirmation(grn_collection, audit_collection, inventory, main_branch, make_grn):
    await grn_collection.insert_one(make_grn(items=[
        GRNItem(product_id="prod_rice", product_sku="RICE-5", product_name="Rice 5kg",
                ordered_quantity=5, received_quantity=5),
        GRNItem(product_id="p_new", product_sku="NEW-1", product_name="New",
                ordered_quantity=3, received_quantity=3),
        GRNItem(product_id="p_new", product_sku="NEW-1", product_name="New",
                ordered_quantity=2, received_quantity=2),
    ]).to_mongo())
    branches = MagicMock()
    branches.get_branch_by_id = AsyncMock(return_value=main_branch)
    grns = GRNRepository(grn_collection, GoodsReceivedNote)
    audit = InventoryAuditRepository(audit_collection, InventoryAuditRecord)
    return GRNConfirmationService(grns=grns, inventory=inventory, branches=branches, audit=audit)


@pytest.mark.asyncio
async def test_failed_batch_is_undone_without_transaction(inventory, seeded_inventory):
    seeded_inventory.before_bulk_write = _concurrent_insert("p_new", 7)

    result = await inventory.increase_multiple_stock([
        StockIncrease(product_id="prod_rice", sku="RICE-5", name="Rice", quantity=5),
        StockIncrease(product_id="p_new", sku="NEW-1", name="New", quantity=3),
    ], "br_main", "biz_1")

    assert result.success is False
    assert result.partially_applied is False
    assert result.errors[0].startswith("Failed to update stock for NEW-1: E11000")
    assert _stock(seeded_inventory, "prod_rice") == 20
    assert _stock(seeded_inventory, "p_new") == 7


@pytest.mark.asyncio
async def test_undo_that_fails_is_flagged(inventory, seeded_inventory):
    seeded_inventory.before_bulk_write = _concurrent_insert("p_new", 7)
    seeded_inventory.update_one = AsyncMock(side_effect=PyMongoError("connection reset"))

    result = await inventory.increase_multiple_stock([
        StockIncrease(product_id="prod_rice", sku="RICE-5", name="Rice", quantity=5),
        StockIncrease(product_id="p_new", sku="NEW-1", name="New", quantity=3),
    ], "br_main", "biz_1")

    assert result.success is False
    assert result.partially_applied is True
    assert _stock(seeded_inventory, "prod_rice") == 25


@pytest.mark.asyncio
async def test_lines_for_one_new_product_are_summed(inventory, seeded_inventory):
    result = await inventory.increase_multiple_stock([
        StockIncrease(product_id="p_new", sku="NEW-1", name="New", quantity=3),
        StockIncrease(product_id="p_new", sku="NEW-1", name="New", quantity=2),
    ], "br_main", "biz_1")

    assert result.success is True
    assert result.created_products == ["NEW-1"]
    assert [d["stock"] for d in seeded_inventory.docs if d["product_id"] == "p_new"] == [5]


@pytest.mark.asyncio
async def test_confirmation_with_repeated_product_lines(confirmation, seeded_inventory, audit_collection, manager_user):
    result = await confirmation.confirm_grn(GRN_ID, manager_user)

    assert result.success is True
    assert _stock(seeded_inventory, "prod_rice") == 25
    assert _stock(seeded_inventory, "p_new") == 5
    chain = [(d["previous_stock"], d["new_stock"]) for d in audit_collection.docs if d["product_id"] == "p_new"]
    assert chain == [(0, 3), (3, 5)]

    again = await confirmation.confirm_grn(GRN_ID, manager_user)

    assert again.error == ConfirmationError.ALREADY_PROCESSED
    assert _stock(seeded_inventory, "prod_rice") == 25
    assert len(audit_collection.docs) == 3


@pytest.mark.asyncio
async def test_retry_after_failed_confirmation_counts_stock_once(confirmation, seeded_inventory, grn_collection,
                                                                 audit_collection, manager_user):
    seeded_inventory.before_bulk_write = _concurrent_insert("p_new", 7)

    first = await confirmation.confirm_grn(GRN_ID, manager_user)

    assert first.error == ConfirmationError.INVENTORY_UPDATE_FAILED
    assert _stock(seeded_inventory, "prod_rice") == 20
    grn = grn_collection.docs[0]
    assert grn["status"] == GRNStatus.DRAFT
    assert grn["confirmation_token"] is None
    assert audit_collection.docs == []

    seeded_inventory.before_bulk_write = None
    second = await confirmation.confirm_grn(GRN_ID, manager_user)

    assert second.success is True
    assert _stock(seeded_inventory, "prod_rice") == 25
    assert _stock(seeded_inventory, "p_new") == 12
    assert len(audit_collection.docs) == 3


@pytest.mark.asyncio
async def test_failed_confirmation_leaves_grn_lockable_once(confirmation, seeded_inventory, grn_collection,
                                                            manager_user):
    seeded_inventory.before_bulk_write = _concurrent_insert("p_new", 7)
    await confirmation.confirm_grn(GRN_ID, manager_user)
    grns = GRNRepository(grn_collection, GoodsReceivedNote)

    assert await grns.acquire_confirmation_lock(GRN_ID, "attempt-a") is True
    assert await grns.acquire_confirmation_lock(GRN_ID, "attempt-b") is False


@pytest.mark.asyncio
async def test_unrecoverable_batch_keeps_grn_locked(confirmation, seeded_inventory, grn_collection, manager_user):
    seeded_inventory.before_bulk_write = _concurrent_insert("p_new", 7)
    seeded_inventory.update_one = AsyncMock(side_effect=PyMongoError("connection reset"))

    result = await confirmation.confirm_grn(GRN_ID, manager_user)

    assert result.error == ConfirmationError.INVENTORY_UPDATE_FAILED
    assert grn_collection.docs[0]["confirmation_token"] is not None

    retry = await confirmation.confirm_grn(GRN_ID, manager_user)

    assert retry.error == ConfirmationError.CONFIRMATION_IN_PROGRESS
