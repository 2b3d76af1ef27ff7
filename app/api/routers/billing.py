"""
Billing Router - subscription lifecycle of the authenticated user.

Endpoints:
- GET  /billing/                - Latest subscription with fresh provider details
- POST /billing/subscribe       - Start a subscription (Stripe checkout or Asaas PIX)
- POST /billing/change-plan     - Move the current subscription to another plan
- POST /billing/cancel          - Cancel the current subscription immediately
- POST /billing/reactivate      - Undo a cancel scheduled for the period end
- GET  /billing/payment-status  - Current subscription status pulled from the provider
"""

import logging

from fastapi import APIRouter, Depends

from app.api.schemas.billing import (
    BillingSummaryResponse,
    ChangePlanRequest,
    PaymentResponse,
    PaymentStatusResponse,
    SubscribeRequest,
    SubscribeResponse,
    SubscriptionResponse,
)
from app.core.auth import UserInfo, get_current_user
from app.core.services.subscription_service import (
    SubscriptionOutcome,
    SubscriptionService,
    payment_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _subscribe_response(outcome: SubscriptionOutcome) -> SubscribeResponse:
    return SubscribeResponse(
        subscription=SubscriptionResponse.model_validate(outcome.subscription),
        url=outcome.checkout_url,
        payment=PaymentResponse(**payment_dict(outcome.payment)) if outcome.payment else None,
    )


@router.get("/", response_model=BillingSummaryResponse)
async def get_billing(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    """Latest subscription (any status) with provider subscription, invoices or payments."""
    summary = await service.billing_summary(user.db_id)
    return BillingSummaryResponse(
        status=summary.status,
        subscription=SubscriptionResponse.model_validate(summary.subscription) if summary.subscription else None,
        billing_details=summary.billing_details,
        next_billing_date=summary.next_billing_date,
    )


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    data: SubscribeRequest,
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    outcome = await service.create(
        user.db_id,
        data.plan_id,
        data.provider,
        success_url=data.success_url,
        cancel_url=data.cancel_url,
    )
    return _subscribe_response(outcome)


@router.post("/change-plan", response_model=SubscribeResponse)
async def change_plan(
    data: ChangePlanRequest,
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    outcome = await service.change_plan(user.db_id, data.plan_id)
    return _subscribe_response(outcome)


@router.post("/cancel", response_model=SubscriptionResponse)
async def cancel(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    subscription = await service.cancel(user.db_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/reactivate", response_model=SubscribeResponse)
async def reactivate(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    outcome = await service.reactivate(user.db_id)
    return _subscribe_response(outcome)


@router.get("/payment-status", response_model=PaymentStatusResponse)
async def payment_status(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    result = await service.payment_status(user.db_id)
    subscription = result.get("subscription")
    return PaymentStatusResponse(
        status=result["status"],
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
        provider_details=result.get("provider_details"),
    )
