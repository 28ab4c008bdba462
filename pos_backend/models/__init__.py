from pos_backend.models.base import MongoModel
from pos_backend.models.grn import GoodsReceivedNote, GRNItem, GRNStatus, DeliveryStatus, GRNCreate, GRNUpdate
from pos_backend.models.inventory import InventoryItem, StockIncrease, StockDeduction, StockIncreaseResult, StockDeductionResult
from pos_backend.models.audit import InventoryAuditRecord, InventoryAuditEntry, AuditAction, AuditSource
from pos_backend.models.branch import Branch, BranchStatus
from pos_backend.models.purchase_order import PurchaseOrder, POLineItem, POStatus
from pos_backend.models.staff import StaffUser, StaffRole
from pos_backend.models.business import Business, SubscriptionPlan, PlanDetails
from pos_backend.models.confirmation import GRNConfirmationResult, ConfirmationError
