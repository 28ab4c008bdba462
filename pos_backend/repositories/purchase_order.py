import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from pymongo.errors import DuplicateKeyError
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.purchase_order import PurchaseOrder, PurchaseOrderCreate, POStatus
from pos_backend.models.staff import StaffUser

logger = logging.getLogger(__name__)

NUMBERING_ATTEMPTS = 5

class PurchaseOrderRepository(BaseRepository[PurchaseOrder]):

    async def get_po_by_id(self, po_id: str) -> Optional[PurchaseOrder]:
        return await self.get_by_field("po_id", po_id)

    async def get_purchase_orders_by_status(self, business_id: str, status: POStatus) -> List[PurchaseOrder]:
        return await self.list({"business_id": business_id, "status": status.value}, limit=500)

    async def get_purchase_orders_by_branch(self, business_id: str, branch_id: str) -> List[PurchaseOrder]:
        return await self.list({"business_id": business_id, "branch_id": branch_id}, limit=500,
                               sort=[("created_at", -1)])

    async def get_next_po_number(self, business_id: str, skip: int = 0) -> str:
        existing = await self.count({"business_id": business_id})
        return f"PO-{existing + 1 + skip:03d}"

    async def create_purchase_order(self, data: PurchaseOrderCreate, user: StaffUser) -> PurchaseOrder:
        now = datetime.utcnow()
        po = PurchaseOrder(
            po_id="",
            po_number="",
            business_id=user.business_id,
            created_by_staff_id=user.staff_id,
            created_by_staff_name=user.full_name,
            created_by_role=user.role.value,
            status=POStatus.DRAFT,
            created_at=now,
            updated_at=now,
            **data.model_dump()
        )
        po.total_amount = po.calculate_total()
        for attempt in range(NUMBERING_ATTEMPTS):
            po.po_id = f"PO-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"
            po.po_number = await self.get_next_po_number(user.business_id, skip=attempt)
            try:
                await self.create(po)
                break
            except DuplicateKeyError:
                if attempt == NUMBERING_ATTEMPTS - 1:
                    raise
                logger.warning(f"PO number {po.po_number} already taken for {user.business_id}, retrying")
        logger.info(f"Purchase order {po.po_number} created as Draft")
        return po

    async def _transition(self, po_id: str, allowed_from: Tuple[POStatus, ...], to: POStatus,
                          extra: Optional[Dict[str, Any]] = None) -> Tuple[bool, Optional[str]]:
        po = await self.get_po_by_id(po_id)
        if not po:
            return False, "Purchase order not found"
        if po.status not in allowed_from:
            return False, f"Cannot move PO to {to.value}: Status is {po.status.value}"

        now = datetime.utcnow()
        update = {"status": to.value, "updated_at": now}
        update.update(extra or {})
        result = await self.collection.update_one(
            {"po_id": po_id, "status": po.status.value},
            {"$set": update}
        )
        if result.modified_count == 0:
            return False, "Purchase order changed concurrently, reload and retry"
        logger.info(f"PO {po.po_number}: {po.status.value} -> {to.value}")
        return True, None

    async def send_purchase_order(self, po_id: str) -> Tuple[bool, Optional[str]]:
        return await self._transition(po_id, (POStatus.DRAFT,), POStatus.SENT, {"sent_at": datetime.utcnow()})

    async def approve_purchase_order(self, po_id: str, user: StaffUser) -> Tuple[bool, Optional[str]]:
        return await self._transition(po_id, (POStatus.SENT,), POStatus.APPROVED, {
            "approved_at": datetime.utcnow(),
            "approved_by_staff_id": user.staff_id,
            "approved_by_staff_name": user.full_name,
        })

    async def cancel_purchase_order(self, po_id: str, reason: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        return await self._transition(
            po_id,
            (POStatus.DRAFT, POStatus.SENT, POStatus.APPROVED),
            POStatus.CANCELLED,
            {"cancelled_at": datetime.utcnow(), "cancelled_reason": reason}
        )

    async def mark_delivered(self, po_id: str) -> Tuple[bool, Optional[str]]:
        return await self._transition(
            po_id, (POStatus.SENT, POStatus.APPROVED), POStatus.DELIVERED, {"delivered_at": datetime.utcnow()}
        )
