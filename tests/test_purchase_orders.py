import sys
import os
sys.path.append(os.getcwd())
import pytest
from unittest.mock import MagicMock
from pymongo.errors import DuplicateKeyError

from pos_backend.models.purchase_order import PurchaseOrder, PurchaseOrderCreate, POLineItem, POStatus
from pos_backend.repositories.purchase_order import PurchaseOrderRepository

def _po_doc(status: POStatus):
    return PurchaseOrder(
        po_id="PO-20240130-000001", po_number="PO-001", business_id="biz_1", branch_id="br_main",
        supplier_id="SUP-1", supplier_name="Golden Grains",
        items=[POLineItem(product_id="p1", product_name="Rice", product_sku="RICE-5", requested_quantity=10)],
        status=status, created_by_staff_id="staff_mgr", created_by_staff_name="Kofi Boateng",
        created_by_role="Manager",
    ).to_mongo()

@pytest.fixture
def repo(mock_collection):
    mock_collection.insert_one.return_value = MagicMock(inserted_id="oid")
    return PurchaseOrderRepository(mock_collection, PurchaseOrder)

@pytest.mark.asyncio
async def test_create_po_totals_lines(repo, mock_collection, manager_user):
    data = PurchaseOrderCreate(
        branch_id="br_main", supplier_id="SUP-1", supplier_name="Golden Grains",
        items=[
            POLineItem(product_id="p1", product_name="Rice", product_sku="RICE-5",
                       requested_quantity=10, unit_cost=60.0),
            POLineItem(product_id="p2", product_name="Oil", product_sku="OIL-1L",
                       requested_quantity=5, total_cost=110.0),
        ],
    )
    mock_collection.count_documents.return_value = 2

    po = await repo.create_purchase_order(data, manager_user)

    assert po.po_number == "PO-003"
    assert po.status == POStatus.DRAFT
    assert po.total_amount == 710.0

@pytest.mark.asyncio
async def test_send_then_approve(repo, mock_collection, owner_user):
    mock_collection.find_one.return_value = _po_doc(POStatus.DRAFT)
    assert await repo.send_purchase_order("PO-20240130-000001") == (True, None)

    mock_collection.find_one.return_value = _po_doc(POStatus.SENT)
    assert await repo.approve_purchase_order("PO-20240130-000001", owner_user) == (True, None)
    update = mock_collection.update_one.call_args[0][1]["$set"]
    assert update["status"] == "Approved"
    assert update["approved_by_staff_id"] == "staff_owner"

@pytest.mark.asyncio
async def test_cannot_approve_draft(repo, mock_collection, owner_user):
    mock_collection.find_one.return_value = _po_doc(POStatus.DRAFT)

    ok, error = await repo.approve_purchase_order("PO-20240130-000001", owner_user)

    assert ok is False
    assert error == "Cannot move PO to Approved: Status is Draft"
    mock_collection.update_one.assert_not_called()

@pytest.mark.asyncio
async def test_cannot_cancel_delivered(repo, mock_collection):
    mock_collection.find_one.return_value = _po_doc(POStatus.DELIVERED)

    ok, _ = await repo.cancel_purchase_order("PO-20240130-000001", "supplier out of stock")

    assert ok is False

@pytest.mark.asyncio
async def test_concurrent_transition_is_detected(repo, mock_collection):
    mock_collection.find_one.return_value = _po_doc(POStatus.SENT)
    mock_collection.update_one.return_value = MagicMock(modified_count=0)

    ok, error = await repo.mark_delivered("PO-20240130-000001")

    assert ok is False
    assert "changed concurrently" in error

@pytest.mark.asyncio
async def test_taken_po_number_is_retried(repo, mock_collection, manager_user):
    data = PurchaseOrderCreate(
        branch_id="br_main", supplier_id="SUP-1", supplier_name="Golden Grains",
        items=[POLineItem(product_id="p1", product_name="Rice", product_sku="RICE-5", requested_quantity=10)],
    )
    mock_collection.count_documents.return_value = 2
    mock_collection.insert_one.side_effect = [DuplicateKeyError("E11000 duplicate key"), MagicMock(inserted_id="oid")]

    po = await repo.create_purchase_order(data, manager_user)

    assert po.po_number == "PO-004"
    assert mock_collection.insert_one.await_count == 2

@pytest.mark.asyncio
async def test_numbering_gives_up_after_repeated_collisions(repo, mock_collection, manager_user):
    data = PurchaseOrderCreate(
        branch_id="br_main", supplier_id="SUP-1", supplier_name="Golden Grains",
        items=[POLineItem(product_id="p1", product_name="Rice", product_sku="RICE-5", requested_quantity=10)],
    )
    mock_collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(DuplicateKeyError):
        await repo.create_purchase_order(data, manager_user)
    assert mock_collection.insert_one.await_count == 5
