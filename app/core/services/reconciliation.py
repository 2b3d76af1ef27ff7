"""
Reconciliation rules shared by the lifecycle service, the read path and the
webhook handlers.

Every status write on a canonical subscription goes through `Reconciler`, so a
webhook, a poll and a user action that observe the same provider state write
the same values (replays converge instead of accumulating).
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.asaas_subscription import AsaasSubscription
from app.database.models.payment import AsaasPayment
from app.database.models.plan import Plan
from app.database.models.stripe_subscription import StripeSubscription
from app.database.models.subscription import Subscription
from app.database.repositories.payment_repository import PaymentRepository
from app.database.repositories.subscription_repository import SubscriptionRepository
from app.payments.asaas_provider import due_date_as_datetime, map_subscription_status, parse_due_date
from app.payments.base import ConfirmedRef, PaymentSnapshot, ProviderRef, ProviderSnapshot, SubscriptionStart
from app.utils.enums import AsaasPaymentStatus, SubscriptionStatus

logger = logging.getLogger(__name__)


def provider_ref(subscription: Subscription) -> ProviderRef:
    cache = subscription.stripe_subscription or subscription.asaas_subscription
    if cache is None:
        raise ValueError(f"Subscription {subscription.id} has no provider row")
    return cache.provider_ref


class Reconciler:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.subscriptions = SubscriptionRepository(session)
        self.payments = PaymentRepository(session)

    async def set_status(
        self,
        subscription: Subscription,
        status: str,
        current_period_end: Optional[datetime] = None,
        cancel_at_period_end: Optional[bool] = None,
        reopen: bool = False,
    ) -> None:
        """
        Write status onto the canonical row and its provider cache.

        CANCELLED is terminal for provider-reported state. Only reactivation passes
        `reopen=True`, and even then not while the user holds another open
        subscription.
        """
        if subscription.status == SubscriptionStatus.CANCELLED and status in SubscriptionStatus.OPEN:
            if not reopen:
                logger.info(
                    f"Subscription {subscription.id} stays CANCELLED: {status} reported after cancellation"
                )
                status = SubscriptionStatus.CANCELLED
            elif await self.subscriptions.has_other_open(subscription):
                logger.warning(
                    f"Not reopening subscription {subscription.id} as {status}: "
                    f"user {subscription.user_id} has another open subscription"
                )
                status = SubscriptionStatus.CANCELLED

        subscription.status = status
        if current_period_end is not None:
            subscription.current_period_end = current_period_end
        if cancel_at_period_end is not None:
            subscription.cancel_at_period_end = cancel_at_period_end

        cache = subscription.stripe_subscription or subscription.asaas_subscription
        if cache is not None:
            cache.status = status
        if subscription.stripe_subscription is not None:
            if current_period_end is not None:
                subscription.stripe_subscription.current_period_end = current_period_end
            if cancel_at_period_end is not None:
                subscription.stripe_subscription.cancel_at_period_end = cancel_at_period_end

        await self.session.flush()

    async def mark_cancelled(self, subscription: Subscription) -> None:
        await self.set_status(subscription, SubscriptionStatus.CANCELLED, cancel_at_period_end=False)

    # ── Lifecycle results ──

    async def apply_start(self, subscription: Subscription, plan: Plan, start: SubscriptionStart) -> Optional[AsaasPayment]:
        """Adopt the result of a plan change / reactivation on an existing row."""
        subscription.plan = plan
        subscription.price_amount = start.value if start.value is not None else plan.price
        subscription.interval = plan.interval

        if subscription.stripe_subscription is not None and isinstance(start.ref, ConfirmedRef):
            subscription.stripe_subscription.stripe_subscription_id = start.ref.subscription_id
        if subscription.asaas_subscription is not None:
            cache = subscription.asaas_subscription
            cache.asaas_subscription_id = start.ref.subscription_id
            cache.value = subscription.price_amount
            cache.cycle = plan.interval
            cache.next_due_date = start.next_due_date

        await self.set_status(
            subscription,
            start.status,
            current_period_end=start.current_period_end,
            cancel_at_period_end=start.cancel_at_period_end,
            reopen=True,
        )
        return await self.store_payment(subscription, start.first_payment)

    async def store_payment(self, subscription: Subscription, snapshot: Optional[PaymentSnapshot]) -> Optional[AsaasPayment]:
        if snapshot is None or subscription.asaas_subscription is None:
            return None
        return await self.payments.save_snapshot(subscription.asaas_subscription, snapshot)

    # ── Stripe ──

    async def confirm_checkout(self, row: StripeSubscription, stripe_subscription_id: str, snapshot: ProviderSnapshot) -> None:
        """Swap the pending checkout for the real Stripe subscription and activate."""
        row.stripe_subscription_id = stripe_subscription_id
        await self.set_status(
            row.subscription,
            SubscriptionStatus.ACTIVE,
            current_period_end=snapshot.current_period_end,
            cancel_at_period_end=snapshot.cancel_at_period_end,
        )
        logger.info(f"Stripe checkout confirmed: subscription {row.id} -> {stripe_subscription_id}")

    async def apply_stripe_snapshot(self, row: StripeSubscription, snapshot: ProviderSnapshot) -> None:
        await self.set_status(
            row.subscription,
            snapshot.status,
            current_period_end=snapshot.current_period_end,
            cancel_at_period_end=snapshot.cancel_at_period_end,
        )

    # ── Asaas ──

    async def is_first_payment(self, payment: AsaasPayment) -> bool:
        first = await self.payments.get_first_of(payment.asaas_subscription_id)
        return first is not None and first.id == payment.id

    async def reconcile_asaas_payment(
        self,
        owner: AsaasSubscription,
        payment: AsaasPayment,
        provider_subscription: Dict[str, Any],
    ) -> None:
        """
        Derive the subscription status from a charge of its current Asaas subscription.

        A subscription Asaas reports deleted or inactive is CANCELLED whatever the
        charge says. Otherwise the first charge decides PENDING vs ACTIVE on its
        own, and later charges defer to the status Asaas reports.
        """
        remote_status = map_subscription_status(provider_subscription)
        if remote_status == SubscriptionStatus.CANCELLED:
            # deleted or inactive at Asaas: no charge can bring it back
            status = SubscriptionStatus.CANCELLED
        elif await self.is_first_payment(payment):
            if payment.status in AsaasPaymentStatus.PAID:
                status = SubscriptionStatus.ACTIVE
            else:
                status = SubscriptionStatus.PENDING
        else:
            status = remote_status

        next_due_date = parse_due_date(provider_subscription.get("nextDueDate"))
        if next_due_date is not None:
            owner.next_due_date = next_due_date
        await self.set_status(
            owner.subscription,
            status,
            current_period_end=due_date_as_datetime(next_due_date),
        )

    def belongs_to_current(self, owner: AsaasSubscription, payment: AsaasPayment) -> bool:
        """False for charges of an Asaas subscription replaced by a plan change."""
        return payment.asaas_subscription_id in (None, owner.asaas_subscription_id)
