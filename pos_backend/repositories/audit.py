import logging
import uuid
from datetime import datetime
from typing import List
from motor.motor_asyncio import AsyncIOMotorClientSession
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.audit import InventoryAuditRecord, InventoryAuditEntry, AuditSource

logger = logging.getLogger(__name__)

class InventoryAuditRepository(BaseRepository[InventoryAuditRecord]):
    """
    Append-only stock audit trail. Records are the system of record for
    why stock changed; the inherited update and delete paths are closed.
    """

    async def update_by_field(self, *args, **kwargs):
        raise PermissionError("Inventory audit records are immutable")

    async def delete_by_field(self, *args, **kwargs):
        raise PermissionError("Inventory audit records are immutable")

    async def add_audit_record(self, entry: InventoryAuditEntry, business_id: str,
                               session: AsyncIOMotorClientSession = None) -> InventoryAuditRecord:
        now = datetime.utcnow()
        record = InventoryAuditRecord(
            audit_id=f"AUDIT-{now.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:4].upper()}",
            business_id=business_id,
            timestamp=now,
            **entry.model_dump()
        )
        await self.create(record, session=session)
        logger.info(
            f"AUDIT [{record.source.value}] {record.action.value} {record.product_sku} "
            f"{record.previous_stock:g} -> {record.new_stock:g} ({record.source_reference_number})"
        )
        return record

    async def _find(self, filter: dict) -> List[InventoryAuditRecord]:
        return await self.list(filter, limit=5000, sort=[("timestamp", -1)])

    async def get_audits_by_product(self, business_id: str, product_id: str) -> List[InventoryAuditRecord]:
        return await self._find({"business_id": business_id, "product_id": product_id})

    async def get_audits_by_branch(self, business_id: str, branch_id: str) -> List[InventoryAuditRecord]:
        return await self._find({"business_id": business_id, "branch_id": branch_id})

    async def get_audits_by_source(self, business_id: str, source: AuditSource) -> List[InventoryAuditRecord]:
        return await self._find({"business_id": business_id, "source": source.value})

    async def get_audits_by_grn(self, business_id: str, grn_id: str) -> List[InventoryAuditRecord]:
        return await self._find({
            "business_id": business_id,
            "source": AuditSource.GRN_CONFIRMATION.value,
            "source_reference_id": grn_id,
        })

    async def get_audits_by_date_range(self, business_id: str, start: datetime, end: datetime) -> List[InventoryAuditRecord]:
        return await self._find({"business_id": business_id, "timestamp": {"$gte": start, "$lte": end}})
