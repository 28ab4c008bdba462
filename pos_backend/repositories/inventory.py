import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import InsertOne, ReturnDocument, UpdateOne
from pymongo.errors import BulkWriteError, PyMongoError
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.inventory import (
    InventoryItem, ProductCreate, StockChange, StockIncrease, StockDeduction,
    StockIncreaseResult, StockDeductionResult
)

logger = logging.getLogger(__name__)

class InventoryRepository(BaseRepository[InventoryItem]):

    async def get_product(self, business_id: str, product_id: str,
                          session: AsyncIOMotorClientSession = None) -> Optional[InventoryItem]:
        doc = await self.collection.find_one({"business_id": business_id, "product_id": product_id}, session=session)
        return self.model_cls.from_mongo(doc) if doc else None

    async def get_inventory_for_branch(self, branch_id: str, business_id: Optional[str] = None,
                                       session: AsyncIOMotorClientSession = None) -> List[InventoryItem]:
        """Current stock snapshot for one branch."""
        filter: Dict[str, Any] = {"branch_id": branch_id}
        if business_id:
            filter["business_id"] = business_id
        return await self.list(filter, limit=10000, session=session)

    async def get_low_stock_products(self, business_id: str, branch_id: Optional[str] = None) -> List[InventoryItem]:
        filter: Dict[str, Any] = {"business_id": business_id}
        if branch_id:
            filter["branch_id"] = branch_id
        products = await self.list(filter, limit=10000)
        return [p for p in products if p.is_low_stock()]

    async def validate_stock(self, business_id: str, product_id: str, quantity: float) -> bool:
        product = await self.get_product(business_id, product_id)
        if not product:
            return False
        return product.stock >= quantity

    async def add_product(self, data: ProductCreate, business_id: str, branch_id: str) -> InventoryItem:
        product = InventoryItem(
            product_id=f"PRD-{uuid.uuid4().hex[:10].upper()}",
            business_id=business_id,
            branch_id=branch_id,
            price=data.retail_price,
            **data.model_dump()
        )
        await self.create(product)
        logger.info(f"Product {product.sku or product.name} added to branch {branch_id}")
        return product

    async def update_product(self, business_id: str, product_id: str, updates: Dict[str, Any]) -> Optional[InventoryItem]:
        update_data = {k: v for k, v in updates.items() if v is not None}
        # Stock levels only change through set_stock, which reports the change for auditing
        update_data.pop("stock", None)
        if "retail_price" in update_data:
            # Keep legacy field in sync
            update_data["price"] = update_data["retail_price"]
        update_data["updated_at"] = datetime.utcnow()
        result = await self.collection.update_one(
            {"business_id": business_id, "product_id": product_id},
            {"$set": update_data}
        )
        if result.matched_count == 0:
            return None
        return await self.get_product(business_id, product_id)

    async def delete_product(self, business_id: str, product_id: str) -> bool:
        result = await self.collection.delete_one({"business_id": business_id, "product_id": product_id})
        return result.deleted_count > 0

    async def set_stock(self, business_id: str, product_id: str, stock: float) -> Optional[StockChange]:
        """Overwrite a product's stock level and report the change."""
        before = await self.collection.find_one_and_update(
            {"business_id": business_id, "product_id": product_id},
            {"$set": {"stock": stock, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.BEFORE
        )
        if not before:
            return None
        product = self.model_cls.from_mongo(before)
        return StockChange(
            product_id=product.product_id,
            product_sku=product.sku,
            product_name=product.name,
            branch_id=product.branch_id,
            previous_stock=product.stock,
            new_stock=stock,
        )

    async def increase_multiple_stock(self, items: List[StockIncrease], branch_id: str, business_id: str,
                                      session: AsyncIOMotorClientSession = None) -> StockIncreaseResult:
        """
        Increase stock for a batch of products at one branch.

        Each item is matched by product_id, then by SKU within the branch;
        unmatched items become new products at the branch. Lines that resolve
        to the same product are summed into one write. Every item is resolved
        before anything is written, so a resolution error leaves stock
        untouched.

        Writes go out as one ordered bulk_write. Inside a transaction a write
        error is undone by the abort. Without one, the writes that landed
        before the failing operation are reversed here; if that also fails
        the result is flagged partially_applied.
        """
        errors: List[str] = []
        created_products: List[str] = []
        # product_id -> [existing product or None, pending line]
        pending: Dict[str, list] = {}
        now = datetime.utcnow()

        branch_items = await self.get_inventory_for_branch(branch_id, business_id, session=session)

        for item in items:
            product = await self.get_product(business_id, item.product_id, session=session)
            if not product:
                product = next((p for p in branch_items if item.sku and p.sku == item.sku), None)

            if product and product.branch_id != branch_id:
                errors.append(f'Product "{product.name}" belongs to different branch')
                continue

            key = product.product_id if product else (item.product_id or f"sku:{item.sku}")
            if key in pending:
                pending[key][1].quantity += item.quantity
            else:
                pending[key] = [product, item.model_copy()]

        if errors:
            return StockIncreaseResult(success=False, errors=errors, created_products=[])

        if not pending:
            return StockIncreaseResult(success=True, errors=[], created_products=[])

        operations = []
        # (product_id, sku, quantity, inserted) per operation, for error reporting and undo
        applied_by_index: List[tuple] = []
        for key, (product, line) in pending.items():
            if product:
                operations.append(UpdateOne(
                    {"business_id": business_id, "product_id": product.product_id, "branch_id": branch_id},
                    {"$inc": {"stock": line.quantity}, "$set": {"updated_at": now}}
                ))
                applied_by_index.append((product.product_id, line.sku, line.quantity, False))
            else:
                new_product = InventoryItem(
                    product_id=line.product_id or f"PRD-{uuid.uuid4().hex[:10].upper()}",
                    business_id=business_id,
                    branch_id=branch_id,
                    sku=line.sku,
                    name=line.name,
                    stock=line.quantity,
                    created_at=now,
                    updated_at=now,
                )
                operations.append(InsertOne(new_product.to_mongo()))
                applied_by_index.append((new_product.product_id, line.sku, line.quantity, True))
                created_products.append(line.sku)

        try:
            await self.collection.bulk_write(operations, ordered=True, session=session)
        except BulkWriteError as e:
            write_errors = e.details.get("writeErrors", [])
            for write_error in write_errors:
                sku = applied_by_index[write_error["index"]][1]
                errors.append(f"Failed to update stock for {sku}: {write_error.get('errmsg', 'write error')}")
            logger.error(f"Batch stock increase failed at branch {branch_id}: {errors}")

            partially_applied = False
            if session is None:
                failed_at = min((w["index"] for w in write_errors), default=0)
                partially_applied = not await self._undo_increases(
                    business_id, branch_id, applied_by_index[:failed_at]
                )
            return StockIncreaseResult(success=False, errors=errors or ["Database error during stock update"],
                                       created_products=[], partially_applied=partially_applied)

        return StockIncreaseResult(success=True, errors=[], created_products=created_products)

    async def _undo_increases(self, business_id: str, branch_id: str, applied: List[tuple]) -> bool:
        """Reverse writes that landed before a bulk_write failure. Returns False if any could not be undone."""
        undone = True
        for product_id, sku, quantity, inserted in reversed(applied):
            filter = {"business_id": business_id, "product_id": product_id, "branch_id": branch_id}
            try:
                if inserted:
                    await self.collection.delete_one(filter)
                else:
                    await self.collection.update_one(filter, {"$inc": {"stock": -quantity}})
            except PyMongoError:
                logger.exception(f"Could not undo stock increase for {sku} at branch {branch_id}")
                undone = False
        if applied:
            logger.warning(f"Undid {len(applied)} stock writes at branch {branch_id}, fully={undone}")
        return undone

    async def deduct_multiple_stock(self, items: List[StockDeduction], business_id: str) -> StockDeductionResult:
        """
        Validate every line first, then deduct each with a stock guard.
        Applied deductions are returned as changes so the caller can audit them.
        """
        errors: List[str] = []
        products: Dict[str, InventoryItem] = {}

        for item in items:
            product = await self.get_product(business_id, item.product_id)
            if not product:
                errors.append(f"Product {item.product_id} not found")
                continue
            if product.stock < item.quantity:
                errors.append(
                    f'Insufficient stock for "{product.name}". Available: {product.stock:g}, Requested: {item.quantity:g}'
                )
            products[item.product_id] = product

        if errors:
            return StockDeductionResult(success=False, errors=errors)

        changes: List[StockChange] = []
        now = datetime.utcnow()
        for item in items:
            doc = await self.collection.find_one_and_update(
                {"business_id": business_id, "product_id": item.product_id, "stock": {"$gte": item.quantity}},
                {"$inc": {"stock": -item.quantity}, "$set": {"updated_at": now}},
                return_document=ReturnDocument.AFTER
            )
            product = products[item.product_id]
            if not doc:
                # Stock moved between validation and write
                errors.append(f'Insufficient stock for "{product.name}"')
                continue
            changes.append(StockChange(
                product_id=product.product_id,
                product_sku=product.sku,
                product_name=product.name,
                branch_id=product.branch_id,
                previous_stock=doc["stock"] + item.quantity,
                new_stock=doc["stock"],
            ))

        if errors:
            logger.error(f"Stock deduction incomplete: {errors}")
            return StockDeductionResult(success=False, errors=errors, changes=changes)
        return StockDeductionResult(success=True, errors=[], changes=changes)
