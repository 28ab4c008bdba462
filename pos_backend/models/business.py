from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field
from pos_backend.models.base import MongoModel

class SubscriptionPlan(str, Enum):
    FREE_TRIAL = "Free Trial"
    BASIC = "Basic"
    PRO = "Pro"
    ENTERPRISE = "Enterprise"

class PlanLimits(BaseModel):
    max_branches: int
    max_staff: int

class PlanFeatures(BaseModel):
    basic_pos: bool = True
    full_pos: bool = False
    inventory: bool = True
    basic_reports: bool = True
    advanced_reports: bool = False
    expense_tracking: bool = False
    expense_management: bool = False
    forecasting: bool = False
    purchase_orders: bool = False
    supplier_management: bool = False
    custom_branding: bool = False
    export_data: bool = False
    api_access: bool = False
    ai_insights: bool = False
    email_support: bool = True
    priority_support: bool = False

class PlanDetails(BaseModel):
    name: str
    price: float
    period: str
    limits: PlanLimits
    features: PlanFeatures
    description: str = ""

SUBSCRIPTION_PLANS: Dict[SubscriptionPlan, PlanDetails] = {
    SubscriptionPlan.FREE_TRIAL: PlanDetails(
        name="Free Trial",
        price=0,
        period="14 days",
        limits=PlanLimits(max_branches=1, max_staff=5),
        features=PlanFeatures(),
        description="Trial period for new businesses",
    ),
    SubscriptionPlan.BASIC: PlanDetails(
        name="Starter",
        price=29,
        period="month",
        limits=PlanLimits(max_branches=2, max_staff=10),
        features=PlanFeatures(
            full_pos=True, advanced_reports=True, expense_tracking=True, ai_insights=True
        ),
        description="Perfect for small businesses getting started",
    ),
    SubscriptionPlan.PRO: PlanDetails(
        name="Professional",
        price=79,
        period="month",
        limits=PlanLimits(max_branches=10, max_staff=50),
        features=PlanFeatures(
            full_pos=True, advanced_reports=True, expense_tracking=True,
            expense_management=True, forecasting=True, purchase_orders=True,
            supplier_management=True, custom_branding=True, export_data=True,
            ai_insights=True, priority_support=True
        ),
        description="Ideal for growing businesses with multiple locations",
    ),
    SubscriptionPlan.ENTERPRISE: PlanDetails(
        name="Enterprise",
        price=199,
        period="month",
        limits=PlanLimits(max_branches=999, max_staff=999), # Effectively unlimited
        features=PlanFeatures(**{name: True for name in PlanFeatures.model_fields}),
        description="Complete solution for large enterprises",
    ),
}

def get_plan_details(plan: SubscriptionPlan) -> PlanDetails:
    return SUBSCRIPTION_PLANS.get(plan, SUBSCRIPTION_PLANS[SubscriptionPlan.FREE_TRIAL])

def has_feature(plan: SubscriptionPlan, feature: str) -> bool:
    details = SUBSCRIPTION_PLANS.get(plan)
    if not details:
        return False
    return bool(getattr(details.features, feature, False))

class Business(MongoModel):
    """
    Tenant record. Every other document carries its business_id.
    """
    business_id: str = Field(..., description="Unique Tenant ID")
    name: str
    owner_staff_id: Optional[str] = None

    subscription_plan: SubscriptionPlan = SubscriptionPlan.FREE_TRIAL
    currency: str = "USD"
    country: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def plan(self) -> PlanDetails:
        return get_plan_details(self.subscription_plan)
