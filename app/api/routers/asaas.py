"""
Asaas Router - PIX webhook and owner-only reads of Asaas entities.

Endpoints:
- POST /asaas/webhook                          - Payment events pushed by Asaas
- GET  /asaas/subscription/{asaas_subscription_id}
- GET  /asaas/payment/{asaas_payment_id}
- GET  /asaas/subscriptions                    - Current Asaas subscription + local payments
"""

import logging
import os
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Path

from app.api.schemas.billing import (
    AsaasCurrentSubscriptionResponse,
    AsaasSubscriptionDetailResponse,
    AsaasSubscriptionResponse,
    PaymentResponse,
    SubscriptionResponse,
    WebhookAck,
)
from app.core.auth import UserInfo, get_current_user
from app.core.exceptions import AuthError
from app.core.services.subscription_service import SubscriptionService, payment_dict
from app.core.services.webhook_service import AsaasWebhookHandler

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_webhook_token(asaas_access_token: Optional[str] = Header(None)) -> None:
    """Shared-secret check configured on the Asaas webhook (header asaas-access-token)."""
    expected = os.getenv("ASAAS_WEBHOOK_TOKEN", "")
    if not expected:
        logger.warning("ASAAS_WEBHOOK_TOKEN not set: accepting unauthenticated Asaas webhook")
        return
    if not asaas_access_token or not secrets.compare_digest(asaas_access_token, expected):
        raise AuthError("Token do webhook inválido")


@router.post("/webhook", response_model=WebhookAck, dependencies=[Depends(verify_webhook_token)])
async def asaas_webhook(
    event: Dict[str, Any] = Body(...),
    handler: AsaasWebhookHandler = Depends(AsaasWebhookHandler.instance),
):
    await handler.handle(event)
    return WebhookAck()


@router.get("/subscription/{asaas_subscription_id}", response_model=AsaasSubscriptionDetailResponse)
async def get_asaas_subscription(
    asaas_subscription_id: str = Path(...),
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    """Subscription with status and next due date refreshed from Asaas."""
    view = await service.asaas_subscription(user.db_id, asaas_subscription_id)
    return AsaasSubscriptionDetailResponse(
        subscription=AsaasSubscriptionResponse.model_validate(view.subscription),
        payments=[PaymentResponse(**p) for p in view.payments],
    )


@router.get("/payment/{asaas_payment_id}", response_model=PaymentResponse)
async def get_asaas_payment(
    asaas_payment_id: str = Path(...),
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    """Payment with fresh status (and PIX QR code for PIX charges)."""
    payment = await service.asaas_payment(user.db_id, asaas_payment_id)
    return PaymentResponse(**payment_dict(payment))


@router.get("/subscriptions", response_model=AsaasCurrentSubscriptionResponse)
async def list_asaas_subscriptions(
    user: UserInfo = Depends(get_current_user),
    service: SubscriptionService = Depends(SubscriptionService.instance),
):
    subscription = await service.current_asaas_subscription(user.db_id)
    if subscription is None:
        return AsaasCurrentSubscriptionResponse()
    payments = await service.list_local_payments(subscription)
    return AsaasCurrentSubscriptionResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        payments=[PaymentResponse(**payment_dict(p)) for p in payments],
    )
