from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.api.schemas.plan import PlanResponse


class SubscribeRequest(BaseModel):
    plan_id: int
    provider: str = Field(..., description="STRIPE ou ASAAS")
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class ChangePlanRequest(BaseModel):
    plan_id: int


class StripeSubscriptionResponse(BaseModel):
    checkout_session_id: Optional[str] = None
    checkout_url: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    status: str
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    model_config = ConfigDict(from_attributes=True)


class AsaasSubscriptionResponse(BaseModel):
    asaas_subscription_id: str
    status: str
    value: Decimal
    cycle: str
    next_due_date: Optional[date] = None
    model_config = ConfigDict(from_attributes=True)


class SubscriptionResponse(BaseModel):
    id: int
    user_id: int
    plan_id: int
    provider: str
    status: str
    price_amount: Decimal
    interval: str
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: datetime
    plan: Optional[PlanResponse] = None
    stripe_subscription: Optional[StripeSubscriptionResponse] = None
    asaas_subscription: Optional[AsaasSubscriptionResponse] = None
    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: str
    subscription: Optional[str] = None
    value: Decimal
    status: str
    billing_type: str
    due_date: Optional[date] = None
    invoice_url: Optional[str] = None
    pix_qr_code_url: Optional[str] = None
    pix_key: Optional[str] = None


class SubscribeResponse(BaseModel):
    subscription: SubscriptionResponse
    url: Optional[str] = None
    payment: Optional[PaymentResponse] = None


class BillingSummaryResponse(BaseModel):
    status: str
    subscription: Optional[SubscriptionResponse] = None
    billing_details: Optional[Dict[str, Any]] = None
    next_billing_date: Optional[datetime] = None


class PaymentStatusResponse(BaseModel):
    status: str
    subscription: Optional[SubscriptionResponse] = None
    provider_details: Optional[Dict[str, Any]] = None


class AsaasSubscriptionDetailResponse(BaseModel):
    subscription: AsaasSubscriptionResponse
    payments: List[PaymentResponse] = Field(default_factory=list)


class AsaasCurrentSubscriptionResponse(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    payments: List[PaymentResponse] = Field(default_factory=list)


class StripeSubscriptionDetailResponse(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    stripe_details: Optional[Dict[str, Any]] = None


class WebhookAck(BaseModel):
    received: bool = True
