import sys
import os
sys.path.append(os.getcwd())

import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime
from types import SimpleNamespace
from pymongo import InsertOne
from pymongo.errors import BulkWriteError, DuplicateKeyError

from pos_backend.models.branch import Branch
from pos_backend.models.grn import GoodsReceivedNote, GRNItem, GRNStatus
from pos_backend.models.inventory import InventoryItem, StockIncreaseResult
from pos_backend.models.staff import StaffUser, StaffRole
from pos_backend.workflow.grn_confirmation import GRNConfirmationService

BUSINESS_ID = "biz_1"
BRANCH_ID = "br_main"

@pytest.fixture
def owner_user():
    return StaffUser(
        staff_id="staff_owner",
        email="owner@example.com",
        first_name="Ama",
        last_name="Mensah",
        role=StaffRole.BUSINESS_OWNER,
        business_id=BUSINESS_ID,
    )

@pytest.fixture
def manager_user():
    return StaffUser(
        staff_id="staff_mgr",
        email="mgr@example.com",
        first_name="Kofi",
        last_name="Boateng",
        role=StaffRole.MANAGER,
        business_id=BUSINESS_ID,
        branch_id=BRANCH_ID,
    )

@pytest.fixture
def cashier_user():
    return StaffUser(
        staff_id="staff_cash",
        email="till@example.com",
        first_name="Esi",
        last_name="Owusu",
        role=StaffRole.CASHIER,
        business_id=BUSINESS_ID,
        branch_id=BRANCH_ID,
    )

@pytest.fixture
def main_branch():
    return Branch(branch_id=BRANCH_ID, business_id=BUSINESS_ID, name="Main Branch", location="Accra")

@pytest.fixture
def make_grn():
    def _make(items=None, status=GRNStatus.DRAFT, **overrides):
        data = dict(
            grn_id="GRN-20240201-AB12CD",
            grn_number="GRN-001",
            business_id=BUSINESS_ID,
            branch_id=BRANCH_ID,
            branch_name="Main Branch",
            purchase_order_id="PO-20240130-000001",
            purchase_order_number="PO-001",
            supplier_name="Golden Grains",
            items=items if items is not None else [
                GRNItem(product_id="prod_rice", product_sku="RICE-5", product_name="Rice 5kg",
                        ordered_quantity=10, received_quantity=5),
            ],
            status=status,
            created_at=datetime(2024, 2, 1, 10, 0),
            updated_at=datetime(2024, 2, 1, 10, 0),
        )
        data.update(overrides)
        return GoodsReceivedNote(**data)
    return _make

@pytest.fixture
def make_product():
    def _make(product_id, sku, stock, branch_id=BRANCH_ID, name=None):
        return InventoryItem(
            product_id=product_id,
            business_id=BUSINESS_ID,
            branch_id=branch_id,
            sku=sku,
            name=name or sku,
            stock=stock,
        )
    return _make

@pytest.fixture
def collaborators(main_branch):
    """Mocked stores wired like the live repositories, all calls succeeding."""
    grns = MagicMock()
    grns.get_grn_by_id = AsyncMock(return_value=None)
    grns.acquire_confirmation_lock = AsyncMock(return_value=True)
    grns.release_confirmation_lock = AsyncMock(return_value=True)
    grns.confirm = AsyncMock(return_value=True)

    inventory = MagicMock()
    inventory.get_inventory_for_branch = AsyncMock(return_value=[])
    inventory.increase_multiple_stock = AsyncMock(
        return_value=StockIncreaseResult(success=True, errors=[], created_products=[])
    )

    branches = MagicMock()
    branches.get_branch_by_id = AsyncMock(return_value=main_branch)

    audit = MagicMock()
    audit.add_audit_record = AsyncMock()

    return MagicMock(grns=grns, inventory=inventory, branches=branches, audit=audit)

@pytest.fixture
def service(collaborators):
    return GRNConfirmationService(
        grns=collaborators.grns,
        inventory=collaborators.inventory,
        branches=collaborators.branches,
        audit=collaborators.audit,
    )

@pytest.fixture
def mock_collection():
    """Stands in for a Motor collection."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.count_documents = AsyncMock(return_value=0)
    collection.bulk_write = AsyncMock()
    return collection


class InMemoryCollection:
    """
    Applies writes for real so multi-step repository code can be checked end
    to end. Supports the filter and update operators the repositories use
    and one unique index.
    """

    def __init__(self, unique=None):
        self.docs = []
        self.unique = unique
        self.before_bulk_write = None

    @staticmethod
    def _matches(doc, filter):
        for key, expected in filter.items():
            value = doc.get(key)
            if isinstance(expected, dict):
                if "$gte" in expected and not (value is not None and value >= expected["$gte"]):
                    return False
            elif value != expected:
                return False
        return True

    def _first(self, filter):
        return next((d for d in self.docs if self._matches(d, filter)), None)

    def _insert(self, doc):
        if self.unique and any(all(d.get(k) == doc.get(k) for k in self.unique) for d in self.docs):
            raise DuplicateKeyError(f"E11000 duplicate key error dup key: {[doc.get(k) for k in self.unique]}")
        doc = dict(doc)
        doc.setdefault("_id", f"oid{len(self.docs) + 1}")
        self.docs.append(doc)
        return doc["_id"]

    @staticmethod
    def _apply(doc, update):
        for key, value in update.get("$set", {}).items():
            doc[key] = value
        for key, value in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + value

    def find(self, filter=None, session=None):
        docs = [dict(d) for d in self.docs if self._matches(d, filter or {})]
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.to_list = AsyncMock(return_value=docs)
        return cursor

    async def find_one(self, filter, session=None):
        doc = self._first(filter)
        return dict(doc) if doc else None

    async def count_documents(self, filter):
        return len([d for d in self.docs if self._matches(d, filter)])

    async def insert_one(self, doc, session=None):
        return SimpleNamespace(inserted_id=self._insert(doc))

    async def update_one(self, filter, update, session=None):
        doc = self._first(filter)
        if doc:
            self._apply(doc, update)
        return SimpleNamespace(matched_count=int(bool(doc)), modified_count=int(bool(doc)))

    async def delete_one(self, filter, session=None):
        doc = self._first(filter)
        if doc:
            self.docs.remove(doc)
        return SimpleNamespace(deleted_count=int(bool(doc)))

    async def find_one_and_update(self, filter, update, return_document=False, session=None):
        doc = self._first(filter)
        if not doc:
            return None
        before = dict(doc)
        self._apply(doc, update)
        return dict(doc) if return_document else before

    async def bulk_write(self, operations, ordered=True, session=None):
        if self.before_bulk_write:
            self.before_bulk_write(self)
        for index, op in enumerate(operations):
            try:
                if isinstance(op, InsertOne):
                    self._insert(op._doc)
                else:
                    doc = self._first(op._filter)
                    if doc:
                        self._apply(doc, op._doc)
            except DuplicateKeyError as e:
                raise BulkWriteError({
                    "writeErrors": [{"index": index, "code": 11000, "errmsg": str(e)}],
                    "nInserted": 0,
                })

@pytest.fixture
def inventory_collection():
    return InMemoryCollection(unique=("business_id", "product_id"))

@pytest.fixture
def grn_collection():
    return InMemoryCollection(unique=("grn_id",))

@pytest.fixture
def audit_collection():
    return InMemoryCollection()
