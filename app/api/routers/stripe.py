"""
Stripe Router - signed webhook and Stripe reads for the authenticated user.

The webhook must see the exact bytes Stripe signed, so it reads the raw body
instead of letting FastAPI parse JSON.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request

from app.api.schemas.billing import (
    StripeSubscriptionDetailResponse,
    SubscriptionResponse,
    WebhookAck,
)
from app.core.auth import UserInfo, get_current_user
from app.core.services.subscription_service import SubscriptionService
from app.core.services.webhook_service import StripeWebhookHandler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    handler: StripeWebhookHandler = Depends(StripeWebhookHandler.instance),
):
    payload = await request.body()
    event = handler.verify(payload, stripe_signature)
    await handler.handle(event)
    return WebhookAck()


@router.get("/subscription", response_model=StripeSubscriptionDetailResponse)
async def get_stripe_subscription(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    result = await service.stripe_subscription(user.db_id)
    subscription = result["subscription"]
    return StripeSubscriptionDetailResponse(
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
        stripe_details=result["stripe_details"],
    )


@router.get("/invoices", response_model=List[Dict[str, Any]])
async def list_stripe_invoices(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    """Up to 24 most recent invoices of the user's Stripe customer."""
    return await service.stripe_invoices(user.db_id)
