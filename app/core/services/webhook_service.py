"""
Webhook Service - applies provider-pushed events to local state.

Handlers are safe under duplicate and out-of-order delivery: each event is
reduced to "set these values", never "add this", and events that reference a
local entity we do not know are logged and acknowledged so the provider stops
retrying them.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ProviderError, ReconciliationInconsistency, ValidationError
from app.core.locks import user_scope
from app.core.services.reconciliation import Reconciler
from app.database.models.asaas_subscription import AsaasSubscription
from app.database.repositories.payment_repository import PaymentRepository
from app.database.repositories.subscription_repository import SubscriptionRepository
from app.database.session import get_db
from app.payments import get_billing_providers
from app.payments.asaas_provider import AsaasBilling, payment_from_api
from app.payments.base import BillingProvider
from app.payments.stripe_provider import StripeBilling, snapshot_from_subscription, stripe_field
from app.utils.enums import AsaasEvent, Provider, SubscriptionStatus

logger = logging.getLogger(__name__)


def _require(providers: Dict[str, BillingProvider], name: str):
    provider = providers.get(name)
    if provider is None:
        raise ProviderError(provider=name, detail=f"{name} credentials are not configured")
    return provider


class AsaasWebhookHandler:
    def __init__(self, session: AsyncSession, provider: Optional[AsaasBilling]):
        self.session = session
        self.provider = provider
        self.subscriptions = SubscriptionRepository(session)
        self.payments = PaymentRepository(session)
        self.reconciler = Reconciler(session)

    @staticmethod
    def instance(
        session: AsyncSession = Depends(get_db),
        providers: Dict[str, BillingProvider] = Depends(get_billing_providers),
    ):
        return AsaasWebhookHandler(session, providers.get(Provider.ASAAS))

    async def handle(self, event: Dict[str, Any]) -> None:
        event_type = event.get("event")
        if event_type not in AsaasEvent.PAYMENT_STATUS_EVENTS:
            logger.info(f"Asaas event ignored: {event_type}")
            return

        data = event.get("payment") or {}
        if not data.get("id"):
            raise ValidationError("Evento sem pagamento")
        logger.info(
            f"Asaas event {event_type}: payment={data.get('id')} "
            f"subscription={data.get('subscription')} status={data.get('status')}"
        )

        try:
            await self._apply(event_type, data)
        except ReconciliationInconsistency as e:
            logger.warning(f"Asaas event {event_type} dropped: {e}")

    async def _apply(self, event_type: str, data: Dict[str, Any]) -> None:
        owner = await self._find_owner(data)

        async with user_scope(self.session, owner.subscription.user_id):
            payment = await self.payments.get_by_asaas_id(data["id"])
            if payment is None:
                # charge materialized at Asaas (e.g. a renewal) without a local fetch
                try:
                    snapshot = payment_from_api(data)
                except ProviderError as e:
                    raise ReconciliationInconsistency(f"payment {data['id']} cannot be recorded: {e.detail}")
                payment = await self.payments.save_snapshot(owner, snapshot)
                logger.info(f"Asaas payment {payment.asaas_payment_id} recorded from webhook")
            elif data.get("status"):
                payment.status = data["status"]

            if event_type in AsaasEvent.PIX_INVALIDATING:
                # the QR code can no longer be paid; subscription status is untouched
                payment.pix_qr_code_url = None
                payment.pix_key = None
                await self.session.flush()
                return

            if not self.reconciler.belongs_to_current(owner, payment):
                logger.info(
                    f"Asaas payment {payment.asaas_payment_id} belongs to replaced subscription "
                    f"{payment.asaas_subscription_id}, status not propagated"
                )
                await self.session.flush()
                return

            if self.provider is None:
                raise ProviderError(provider=Provider.ASAAS, detail="ASAAS credentials are not configured")
            remote = await asyncio.to_thread(self.provider.get_subscription_details, owner.asaas_subscription_id)
            await self.reconciler.reconcile_asaas_payment(owner, payment, remote)

    async def _find_owner(self, data: Dict[str, Any]) -> AsaasSubscription:
        payment = await self.payments.get_by_asaas_id(data["id"])
        if payment is not None:
            owner = await self.session.get(AsaasSubscription, payment.subscription_id)
            if owner is not None:
                return owner

        asaas_subscription_id = data.get("subscription")
        owner = None
        if asaas_subscription_id:
            owner = await self.subscriptions.get_asaas_by_subscription_id(asaas_subscription_id)
        if owner is None:
            raise ReconciliationInconsistency(
                f"payment {data['id']} / subscription {asaas_subscription_id} not found locally"
            )
        return owner


class StripeWebhookHandler:
    def __init__(self, session: AsyncSession, provider: StripeBilling):
        self.session = session
        self.provider = provider
        self.subscriptions = SubscriptionRepository(session)
        self.reconciler = Reconciler(session)

    @staticmethod
    def instance(
        session: AsyncSession = Depends(get_db),
        providers: Dict[str, BillingProvider] = Depends(get_billing_providers),
    ):
        return StripeWebhookHandler(session, _require(providers, Provider.STRIPE))

    def verify(self, payload: bytes, signature: Optional[str]):
        return self.provider.construct_event(payload, signature)

    async def handle(self, event) -> None:
        event_type = event["type"]
        obj = event["data"]["object"]
        handlers = {
            "checkout.session.completed": self._checkout_completed,
            "checkout.session.expired": self._checkout_expired,
            "customer.subscription.updated": self._subscription_changed,
            "customer.subscription.deleted": self._subscription_changed,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.debug(f"Stripe event ignored: {event_type}")
            return

        logger.info(f"Stripe event {event_type}: {obj['id']}")
        try:
            await handler(obj)
        except ReconciliationInconsistency as e:
            logger.warning(f"Stripe event {event_type} dropped: {e}")

    async def _checkout_completed(self, session_obj) -> None:
        row = await self.subscriptions.get_stripe_by_checkout_session(session_obj["id"])
        if row is None:
            raise ReconciliationInconsistency(f"checkout session {session_obj['id']} not found locally")

        subscription_id = stripe_field(session_obj, "subscription")
        if subscription_id and not isinstance(subscription_id, str):
            subscription_id = subscription_id["id"]
        if not subscription_id:
            raise ReconciliationInconsistency(f"checkout session {session_obj['id']} has no subscription")

        async with user_scope(self.session, row.subscription.user_id):
            stripe_subscription = await asyncio.to_thread(self.provider.retrieve_subscription, subscription_id)
            await self.reconciler.confirm_checkout(
                row, subscription_id, snapshot_from_subscription(stripe_subscription)
            )

    async def _checkout_expired(self, session_obj) -> None:
        row = await self.subscriptions.get_stripe_by_checkout_session(session_obj["id"])
        if row is None:
            raise ReconciliationInconsistency(f"checkout session {session_obj['id']} not found locally")

        async with user_scope(self.session, row.subscription.user_id):
            if row.stripe_subscription_id is None and row.subscription.status == SubscriptionStatus.PENDING:
                await self.reconciler.mark_cancelled(row.subscription)
                logger.info(f"Pending Stripe subscription {row.id} cancelled: checkout expired")

    async def _subscription_changed(self, subscription_obj) -> None:
        row = await self.subscriptions.get_stripe_by_subscription_id(subscription_obj["id"])
        if row is None:
            # checkout.session.completed not processed yet; it pulls fresh state when it is
            raise ReconciliationInconsistency(f"Stripe subscription {subscription_obj['id']} not found locally")

        async with user_scope(self.session, row.subscription.user_id):
            # events can arrive late or out of order; Stripe's current state wins over the payload
            current = await asyncio.to_thread(self.provider.retrieve_subscription, subscription_obj["id"])
            await self.reconciler.apply_stripe_snapshot(row, snapshot_from_subscription(current))
