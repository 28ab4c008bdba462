import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pos_backend.config import settings
from pos_backend.repositories.grn import GRNRepository
from pos_backend.repositories.inventory import InventoryRepository
from pos_backend.repositories.audit import InventoryAuditRepository
from pos_backend.repositories.branch import BranchRepository
from pos_backend.repositories.business import BusinessRepository
from pos_backend.repositories.purchase_order import PurchaseOrderRepository
from pos_backend.repositories.staff import StaffRepository
from pos_backend.models.grn import GoodsReceivedNote
from pos_backend.models.inventory import InventoryItem
from pos_backend.models.audit import InventoryAuditRecord
from pos_backend.models.branch import Branch
from pos_backend.models.business import Business
from pos_backend.models.purchase_order import PurchaseOrder
from pos_backend.models.staff import StaffUser

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None

    # Repositories
    grns: GRNRepository = None
    inventory: InventoryRepository = None
    inventory_audit: InventoryAuditRepository = None
    branches: BranchRepository = None
    businesses: BusinessRepository = None
    purchase_orders: PurchaseOrderRepository = None
    staff: StaffRepository = None

    def connect(self):
        """Initialize database connection and repositories."""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=False)
        db = self.client[settings.DB_NAME]

        # Initialize repositories with their respective collections and models
        self.grns = GRNRepository(db.goods_received_notes, GoodsReceivedNote)
        self.inventory = InventoryRepository(db.inventory, InventoryItem)
        self.inventory_audit = InventoryAuditRepository(db.inventory_audit_log, InventoryAuditRecord)
        self.branches = BranchRepository(db.branches, Branch)
        self.businesses = BusinessRepository(db.businesses, Business)
        self.purchase_orders = PurchaseOrderRepository(db.purchase_orders, PurchaseOrder)
        self.staff = StaffRepository(db.staff, StaffUser)

        logger.info(f"Connected to MongoDB database {settings.DB_NAME}")

    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
        """
        Yield a session inside a started transaction, or None when
        transactions are disabled (standalone servers do not support them).
        """
        if not settings.MONGO_USE_TRANSACTIONS or not self.client:
            yield None
            return
        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

db = Database()
