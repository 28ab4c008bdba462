import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.grn import (
    GoodsReceivedNote, GRNCreate, GRNStatus, GRNItem, calculate_delivery_status
)
from pos_backend.models.purchase_order import PurchaseOrder
from pos_backend.models.staff import StaffUser

logger = logging.getLogger(__name__)

NUMBERING_ATTEMPTS = 5

class GRNRepository(BaseRepository[GoodsReceivedNote]):

    async def get_grn_by_id(self, grn_id: str, session: AsyncIOMotorClientSession = None) -> Optional[GoodsReceivedNote]:
        return await self.get_by_field("grn_id", grn_id, session=session)

    async def get_grns_by_branch(self, business_id: str, branch_id: str) -> List[GoodsReceivedNote]:
        return await self.list(
            {"business_id": business_id, "branch_id": branch_id},
            limit=500,
            sort=[("created_at", -1)]
        )

    async def get_grns_by_po(self, business_id: str, purchase_order_id: str) -> List[GoodsReceivedNote]:
        return await self.list({"business_id": business_id, "purchase_order_id": purchase_order_id}, limit=500)

    async def get_grns_by_supplier(self, business_id: str, supplier_id: str) -> List[GoodsReceivedNote]:
        return await self.list({"business_id": business_id, "supplier_id": supplier_id}, limit=500)

    async def get_next_grn_number(self, business_id: str, skip: int = 0) -> str:
        existing = await self.count({"business_id": business_id})
        return f"GRN-{existing + 1 + skip:03d}"

    async def create_grn(self, data: GRNCreate, business_id: str, received_by: StaffUser) -> GoodsReceivedNote:
        """Record a delivery as a Draft GRN."""
        now = datetime.utcnow()
        grn = GoodsReceivedNote(
            grn_id="",
            grn_number="",
            business_id=business_id,
            branch_id=data.branch_id,
            branch_name=data.branch_name,
            purchase_order_id=data.purchase_order_id,
            purchase_order_number=data.purchase_order_number,
            supplier_id=data.supplier_id,
            supplier_name=data.supplier_name,
            items=data.items,
            delivery_status=calculate_delivery_status(data.items),
            status=GRNStatus.DRAFT,
            received_by_staff_id=received_by.staff_id,
            received_by_staff_name=received_by.full_name,
            received_by_role=received_by.role.value,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        for attempt in range(NUMBERING_ATTEMPTS):
            grn.grn_id = f"GRN-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"
            # Concurrent creates can take the same count-based number
            grn.grn_number = await self.get_next_grn_number(business_id, skip=attempt)
            try:
                await self.create(grn)
                break
            except DuplicateKeyError:
                if attempt == NUMBERING_ATTEMPTS - 1:
                    raise
                logger.warning(f"GRN number {grn.grn_number} already taken for {business_id}, retrying")
        logger.info(f"GRN {grn.grn_number} ({grn.grn_id}) recorded as Draft for PO {grn.purchase_order_number}")
        return grn

    async def update_grn(self, grn_id: str, updates: Dict[str, Any]) -> Optional[GoodsReceivedNote]:
        """
        Edit a GRN before confirmation. Returns None when the GRN is missing
        or no longer Draft.
        """
        grn = await self.get_grn_by_id(grn_id)
        if not grn:
            return None
        if grn.status != GRNStatus.DRAFT:
            logger.warning(f"Cannot update GRN {grn_id}: Status is {grn.status.value}, not Draft")
            return None

        update_data = {k: v for k, v in updates.items() if v is not None}
        if "items" in update_data:
            items = [item if isinstance(item, GRNItem) else GRNItem(**item) for item in update_data["items"]]
            update_data["items"] = [item.model_dump() for item in items]
            update_data["delivery_status"] = calculate_delivery_status(items).value
        update_data["updated_at"] = datetime.utcnow()

        result = await self.collection.update_one(
            {"grn_id": grn_id, "status": GRNStatus.DRAFT.value, "confirmation_token": None},
            {"$set": update_data}
        )
        if result.modified_count == 0:
            return None
        return await self.get_grn_by_id(grn_id)

    async def acquire_confirmation_lock(self, grn_id: str, token: str) -> bool:
        """Claim a Draft GRN for one confirmation attempt (compare-and-swap)."""
        doc = await self.collection.find_one_and_update(
            {"grn_id": grn_id, "status": GRNStatus.DRAFT.value, "confirmation_token": None},
            {"$set": {"confirmation_token": token, "confirmation_started_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        return doc is not None

    async def release_confirmation_lock(self, grn_id: str, token: str) -> bool:
        result = await self.collection.update_one(
            {"grn_id": grn_id, "confirmation_token": token},
            {"$set": {"confirmation_token": None, "confirmation_started_at": None}}
        )
        return result.modified_count > 0

    async def confirm(self, grn_id: str, token: Optional[str] = None,
                      session: AsyncIOMotorClientSession = None) -> bool:
        """Draft -> Confirmed. Irreversible; a no-op on anything not Draft."""
        filter = {"grn_id": grn_id, "status": GRNStatus.DRAFT.value}
        if token:
            filter["confirmation_token"] = token
        now = datetime.utcnow()
        result = await self.collection.update_one(
            filter,
            {"$set": {
                "status": GRNStatus.CONFIRMED.value,
                "confirmed_at": now,
                "updated_at": now,
                "confirmation_token": None,
                "confirmation_started_at": None,
            }},
            session=session
        )
        if result.modified_count == 0:
            logger.warning(f"Cannot confirm GRN {grn_id}: not a Draft owned by this attempt")
            return False
        return True

    async def create_grn_from_purchase_order(self, po: PurchaseOrder, received_by: StaffUser,
                                             notes: Optional[str] = None) -> GoodsReceivedNote:
        """Seed a Draft GRN from the PO lines, assuming full delivery until edited."""
        data = GRNCreate(
            branch_id=po.branch_id,
            branch_name=po.branch_name,
            purchase_order_id=po.po_id,
            purchase_order_number=po.po_number,
            supplier_id=po.supplier_id,
            supplier_name=po.supplier_name,
            items=[
                GRNItem(
                    product_id=line.product_id,
                    product_sku=line.product_sku,
                    product_name=line.product_name,
                    ordered_quantity=line.requested_quantity,
                    received_quantity=line.requested_quantity,
                )
                for line in po.items
            ],
            notes=notes,
        )
        return await self.create_grn(data, po.business_id, received_by)
