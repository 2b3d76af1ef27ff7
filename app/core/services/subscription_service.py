"""
Subscription Service - lifecycle and read path of a user's subscription.

Every operation runs inside `user_scope`, so flows of the same user never
interleave. Provider calls come before the local writes that depend on them,
and everything is committed once when the scope closes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ProviderError, ValidationError
from app.core.locks import user_scope
from app.core.services.reconciliation import Reconciler, provider_ref
from app.database.models.asaas_subscription import AsaasSubscription
from app.database.models.payment import AsaasPayment
from app.database.models.plan import Plan
from app.database.models.stripe_subscription import StripeSubscription
from app.database.models.subscription import Subscription
from app.database.models.user import User
from app.database.repositories.customer_repository import Customer, CustomerRepository
from app.database.repositories.payment_repository import PaymentRepository
from app.database.repositories.plan_repository import PlanRepository
from app.database.repositories.subscription_repository import SubscriptionRepository
from app.database.session import get_db
from app.payments import get_billing_providers
from app.payments.asaas_provider import BILLING_TYPE_PIX, map_subscription_status, parse_due_date
from app.payments.base import BillingProvider, ConfirmedRef, PendingRef, SubscriptionStart
from app.utils.enums import AsaasPaymentStatus, Provider, SubscriptionStatus

logger = logging.getLogger(__name__)

NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
INVOICE_LIMIT = 24


@dataclass
class SubscriptionOutcome:
    subscription: Subscription
    checkout_url: Optional[str] = None
    payment: Optional[AsaasPayment] = None


@dataclass
class BillingSummary:
    status: str
    subscription: Optional[Subscription] = None
    billing_details: Optional[Dict[str, Any]] = None
    next_billing_date: Optional[Any] = None


@dataclass
class AsaasSubscriptionView:
    subscription: AsaasSubscription
    payments: List[Dict[str, Any]] = field(default_factory=list)


class SubscriptionService:
    def __init__(self, session: AsyncSession, providers: Dict[str, BillingProvider]):
        self.session = session
        self.providers = providers
        self.plans = PlanRepository(session)
        self.subscriptions = SubscriptionRepository(session)
        self.customers = CustomerRepository(session)
        self.payments = PaymentRepository(session)
        self.reconciler = Reconciler(session)

    @staticmethod
    def instance(
        session: AsyncSession = Depends(get_db),
        providers: Dict[str, BillingProvider] = Depends(get_billing_providers),
    ):
        return SubscriptionService(session, providers)

    def provider_for(self, name: str) -> BillingProvider:
        if name not in Provider.ALL:
            raise ValidationError(f"Provedor inválido: {name}")
        provider = self.providers.get(name)
        if provider is None:
            raise ProviderError(provider=name, detail=f"{name} credentials are not configured")
        return provider

    async def _call(self, fn, *args):
        # provider SDKs are blocking HTTP clients
        return await asyncio.to_thread(fn, *args)

    # ── Lifecycle ──

    async def create(
        self,
        user_id: int,
        plan_id: int,
        provider_name: str,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> SubscriptionOutcome:
        provider = self.provider_for((provider_name or "").upper())
        if provider.requires_redirect and not (success_url and cancel_url):
            raise ValidationError("success_url e cancel_url são obrigatórios")

        async with user_scope(self.session, user_id) as user:
            plan = await self.plans.get_active(plan_id)
            provider.validate_plan(plan)
            customer = await self.customers.get_for_user(provider.provider, user_id)
            if customer is None:
                provider.check_customer_data(user)

            current = await self.subscriptions.get_open_for_user(user_id)
            if current is not None:
                if current.status == SubscriptionStatus.ACTIVE:
                    raise ConflictError()
                reused = await self._settle_pending(current, provider, plan)
                if reused is not None:
                    return reused

            if customer is None:
                customer = await self._create_customer(user, provider)
            start = await self._call(
                provider.create_subscription, customer.external_id, plan, success_url, cancel_url
            )
            subscription, payment = await self._record_start(user_id, plan, provider, customer, start)
            logger.info(
                f"Subscription {subscription.id} created for user {user_id}: "
                f"{provider.provider} plan={plan.id} status={subscription.status}"
            )
            return SubscriptionOutcome(subscription, checkout_url=start.checkout_url, payment=payment)

    async def _settle_pending(
        self,
        current: Subscription,
        provider: BillingProvider,
        plan: Plan,
    ) -> Optional[SubscriptionOutcome]:
        """Reuse the user's PENDING subscription when possible, otherwise close it."""
        ref = provider_ref(current)
        if current.provider == provider.provider and current.plan_id == plan.id:
            resumed = await self._call(provider.resume_pending, ref)
            if resumed is not None:
                return await self._adopt_resumed(current, resumed)
            # checkout expired or the provider subscription is gone: nothing left to cancel remotely
            logger.info(f"Pending subscription {current.id} is no longer usable, starting over")
        else:
            await self._call(self.provider_for(current.provider).cancel, ref)
            logger.info(f"Pending subscription {current.id} ({current.provider}) superseded")

        await self.reconciler.mark_cancelled(current)
        return None

    async def _adopt_resumed(self, current: Subscription, resumed: SubscriptionStart) -> SubscriptionOutcome:
        if isinstance(resumed.ref, ConfirmedRef) and current.stripe_subscription is not None:
            # the checkout was paid before its webhook reached us
            current.stripe_subscription.stripe_subscription_id = resumed.ref.subscription_id
            await self.reconciler.set_status(
                current,
                resumed.status,
                current_period_end=resumed.current_period_end,
                cancel_at_period_end=resumed.cancel_at_period_end,
            )
            return SubscriptionOutcome(current)

        payment = await self.reconciler.store_payment(current, resumed.first_payment)
        checkout_url = resumed.checkout_url
        if checkout_url is None and current.stripe_subscription is not None:
            checkout_url = current.stripe_subscription.checkout_url
        logger.info(f"Reusing pending subscription {current.id} for user {current.user_id}")
        return SubscriptionOutcome(current, checkout_url=checkout_url, payment=payment)

    async def _create_customer(self, user: User, provider: BillingProvider) -> Customer:
        external_id = await self._call(provider.ensure_customer, user)
        return await self.customers.add(provider.provider, user.id, external_id)

    async def _record_start(
        self,
        user_id: int,
        plan: Plan,
        provider: BillingProvider,
        customer: Customer,
        start: SubscriptionStart,
    ):
        price = start.value if start.value is not None else plan.price
        subscription = Subscription(
            user_id=user_id,
            plan=plan,
            provider=provider.provider,
            status=start.status,
            price_amount=price,
            interval=plan.interval,
            current_period_end=start.current_period_end,
            cancel_at_period_end=start.cancel_at_period_end,
        )
        if isinstance(start.ref, PendingRef):
            subscription.stripe_subscription = StripeSubscription(
                customer_id=customer.id,
                checkout_session_id=start.ref.checkout_id,
                checkout_url=start.checkout_url,
                status=start.status,
            )
        elif provider.provider == Provider.STRIPE:
            subscription.stripe_subscription = StripeSubscription(
                customer_id=customer.id,
                stripe_subscription_id=start.ref.subscription_id,
                status=start.status,
                current_period_end=start.current_period_end,
            )
        else:
            subscription.asaas_subscription = AsaasSubscription(
                customer_id=customer.id,
                asaas_subscription_id=start.ref.subscription_id,
                status=start.status,
                value=price,
                cycle=plan.interval,
                next_due_date=start.next_due_date,
            )
        await self.subscriptions.add(subscription)
        # a new row has the sibling provider relationship unloaded; async sessions cannot lazy-load it later
        await self.session.refresh(subscription, ["stripe_subscription", "asaas_subscription"])
        payment = await self.reconciler.store_payment(subscription, start.first_payment)
        return subscription, payment

    async def change_plan(self, user_id: int, plan_id: int) -> SubscriptionOutcome:
        async with user_scope(self.session, user_id):
            current = await self.subscriptions.get_open_for_user(user_id)
            if current is None:
                raise NotFoundError("Assinatura atual não encontrada")
            if current.plan_id == plan_id:
                raise ValidationError("Usuário já está neste plano")
            plan = await self.plans.get_active(plan_id)
            provider = self.provider_for(current.provider)
            provider.validate_plan(plan)
            customer = await self._require_customer(current.provider, user_id)

            start = await self._call(provider.change_plan, provider_ref(current), customer.external_id, plan)
            payment = await self.reconciler.apply_start(current, plan, start)
            logger.info(f"Subscription {current.id} moved to plan {plan.id} (status={current.status})")
            return SubscriptionOutcome(current, payment=payment)

    async def cancel(self, user_id: int) -> Subscription:
        async with user_scope(self.session, user_id):
            current = await self.subscriptions.get_open_for_user(user_id)
            if current is None:
                raise NotFoundError("Assinatura não encontrada")
            provider = self.provider_for(current.provider)
            await self._call(provider.cancel, provider_ref(current))
            await self.reconciler.mark_cancelled(current)
            logger.info(f"Subscription {current.id} cancelled by user {user_id}")
            return current

    async def reactivate(self, user_id: int) -> SubscriptionOutcome:
        async with user_scope(self.session, user_id):
            if await self.subscriptions.get_open_for_user(user_id) is not None:
                raise ConflictError()
            latest = await self.subscriptions.get_latest_for_user(user_id)
            # only a soft cancel (waiting for the period end) can be undone
            if (
                latest is None
                or latest.status != SubscriptionStatus.CANCELLED
                or not latest.cancel_at_period_end
            ):
                raise NotFoundError("Assinatura não encontrada")
            provider = self.provider_for(latest.provider)
            customer = await self._require_customer(latest.provider, user_id)

            start = await self._call(provider.reactivate, provider_ref(latest), customer.external_id, latest.plan)
            payment = await self.reconciler.apply_start(latest, latest.plan, start)
            logger.info(f"Subscription {latest.id} reactivated (status={latest.status})")
            return SubscriptionOutcome(latest, payment=payment)

    async def _require_customer(self, provider_name: str, user_id: int) -> Customer:
        customer = await self.customers.get_for_user(provider_name, user_id)
        if customer is None:
            raise NotFoundError(f"Cliente {provider_name.capitalize()} não encontrado")
        return customer

    # ── Read path ──

    async def billing_summary(self, user_id: int) -> BillingSummary:
        async with user_scope(self.session, user_id):
            subscription = await self.subscriptions.get_latest_for_user(user_id)
            if subscription is None:
                return BillingSummary(status=NO_SUBSCRIPTION)

            if subscription.provider == Provider.STRIPE:
                details = await self._stripe_details(subscription)
            else:
                details = await self._asaas_details(subscription)
            return BillingSummary(
                status=subscription.status,
                subscription=subscription,
                billing_details=details,
                next_billing_date=subscription.current_period_end,
            )

    async def _stripe_details(self, subscription: Subscription) -> Dict[str, Any]:
        provider = self.provider_for(Provider.STRIPE)
        ref = provider_ref(subscription)
        details: Dict[str, Any] = {"subscription": None, "invoices": [], "can_update_payment_method": True}
        if isinstance(ref, ConfirmedRef):
            snapshot = await self._call(provider.refresh_status, ref)
            await self.reconciler.apply_stripe_snapshot(subscription.stripe_subscription, snapshot)
            details["subscription"] = snapshot.details
        else:
            details["checkout_url"] = subscription.stripe_subscription.checkout_url
        customer = await self.customers.get_for_user(Provider.STRIPE, subscription.user_id)
        if customer is not None:
            details["invoices"] = await self._call(provider.list_invoices, customer.external_id, INVOICE_LIMIT)
        return details

    async def _asaas_details(self, subscription: Subscription) -> Dict[str, Any]:
        owner = subscription.asaas_subscription
        if subscription.status == SubscriptionStatus.CANCELLED:
            # deleted at Asaas: only the local history is left
            payments = await self.payments.list_for_subscription(owner.id)
            return {
                "subscription": None,
                "payments": [payment_dict(p) for p in payments],
                "last_payment_with_qr_code": None,
                "can_update_payment_method": False,
            }

        provider = self.provider_for(Provider.ASAAS)
        remote = await self._call(provider.get_subscription_details, owner.asaas_subscription_id)
        snapshots = await self._call(provider.list_payments, owner.asaas_subscription_id)

        last_payment = None
        if snapshots:
            latest = snapshots[-1]
            if latest.status == AsaasPaymentStatus.PENDING and latest.billing_type == BILLING_TYPE_PIX:
                latest.pix = await self._call(provider.get_pix_qr_code, latest.external_id)
            last_payment = await self.payments.save_snapshot(owner, latest)
            await self.reconciler.reconcile_asaas_payment(owner, last_payment, remote)

        return {
            "subscription": remote,
            "payments": [_snapshot_dict(s) for s in reversed(snapshots)],
            "last_payment_with_qr_code": payment_dict(last_payment) if last_payment is not None and last_payment.pix_key else None,
            "can_update_payment_method": False,
        }

    async def payment_status(self, user_id: int) -> Dict[str, Any]:
        async with user_scope(self.session, user_id):
            subscription = await self.subscriptions.get_open_for_user(user_id)
            if subscription is None:
                return {"status": NO_SUBSCRIPTION}

            provider = self.provider_for(subscription.provider)
            ref = provider_ref(subscription)
            if subscription.provider == Provider.ASAAS:
                owner = subscription.asaas_subscription
                remote = await self._call(provider.get_subscription_details, owner.asaas_subscription_id)
                last_payment = await self.payments.get_latest(owner.id)
                if last_payment is not None:
                    snapshot = await self._call(provider.get_payment, last_payment.asaas_payment_id)
                    if snapshot.status == AsaasPaymentStatus.PENDING and last_payment.billing_type == BILLING_TYPE_PIX:
                        snapshot.pix = await self._call(provider.get_pix_qr_code, last_payment.asaas_payment_id)
                    last_payment = await self.payments.save_snapshot(owner, snapshot)
                    if self.reconciler.belongs_to_current(owner, last_payment):
                        await self.reconciler.reconcile_asaas_payment(owner, last_payment, remote)
                return {
                    "status": subscription.status,
                    "subscription": subscription,
                    "provider_details": {"subscription": remote, "last_payment": payment_dict(last_payment) if last_payment else None},
                }

            snapshot = await self._call(provider.refresh_status, ref)
            if isinstance(ref, ConfirmedRef):
                await self.reconciler.apply_stripe_snapshot(subscription.stripe_subscription, snapshot)
            return {
                "status": subscription.status,
                "subscription": subscription,
                "provider_details": snapshot.details,
            }

    # ── Asaas reads ──

    async def asaas_subscription(self, user_id: int, asaas_subscription_id: str) -> AsaasSubscriptionView:
        async with user_scope(self.session, user_id):
            owner = await self.subscriptions.get_asaas_for_user(asaas_subscription_id, user_id)
            if owner is None:
                raise NotFoundError("Assinatura não encontrada")
            provider = self.provider_for(Provider.ASAAS)
            remote = await self._call(provider.get_subscription_details, asaas_subscription_id)
            snapshots = await self._call(provider.list_payments, asaas_subscription_id)

            next_due_date = parse_due_date(remote.get("nextDueDate"))
            if next_due_date is not None:
                owner.next_due_date = next_due_date
            if map_subscription_status(remote) == SubscriptionStatus.CANCELLED:
                await self.reconciler.mark_cancelled(owner.subscription)
            await self.session.flush()
            return AsaasSubscriptionView(owner, [_snapshot_dict(s) for s in snapshots])

    async def asaas_payment(self, user_id: int, asaas_payment_id: str) -> AsaasPayment:
        async with user_scope(self.session, user_id):
            payment = await self.payments.get_for_user(asaas_payment_id, user_id)
            if payment is None:
                raise NotFoundError("Pagamento não encontrado")
            provider = self.provider_for(Provider.ASAAS)
            snapshot = await self._call(provider.get_payment, asaas_payment_id)
            if payment.billing_type == BILLING_TYPE_PIX:
                snapshot.pix = await self._call(provider.get_pix_qr_code, asaas_payment_id)
            owner = await self.session.get(AsaasSubscription, payment.subscription_id)
            return await self.payments.save_snapshot(owner, snapshot)

    async def current_asaas_subscription(self, user_id: int) -> Optional[Subscription]:
        subscription = await self.subscriptions.get_open_for_user(user_id)
        if subscription is None or subscription.provider != Provider.ASAAS:
            return None
        return subscription

    async def list_local_payments(self, subscription: Subscription) -> List[AsaasPayment]:
        return await self.payments.list_for_subscription(subscription.asaas_subscription.id)

    # ── Stripe reads ──

    async def stripe_subscription(self, user_id: int) -> Dict[str, Any]:
        async with user_scope(self.session, user_id):
            subscription = await self.subscriptions.get_latest_for_user(user_id)
            if subscription is None or subscription.provider != Provider.STRIPE:
                return {"subscription": None, "stripe_details": None}
            ref = provider_ref(subscription)
            if not isinstance(ref, ConfirmedRef):
                return {"subscription": subscription, "stripe_details": None}
            provider = self.provider_for(Provider.STRIPE)
            snapshot = await self._call(provider.refresh_status, ref)
            await self.reconciler.apply_stripe_snapshot(subscription.stripe_subscription, snapshot)
            return {"subscription": subscription, "stripe_details": snapshot.details}

    async def stripe_invoices(self, user_id: int) -> List[Dict[str, Any]]:
        customer = await self.customers.get_for_user(Provider.STRIPE, user_id)
        if customer is None:
            return []
        provider = self.provider_for(Provider.STRIPE)
        return await self._call(provider.list_invoices, customer.external_id, INVOICE_LIMIT)


def _snapshot_dict(snapshot) -> Dict[str, Any]:
    return {
        "id": snapshot.external_id,
        "subscription": snapshot.subscription_id,
        "value": snapshot.value,
        "status": snapshot.status,
        "billing_type": snapshot.billing_type,
        "due_date": snapshot.due_date,
        "invoice_url": snapshot.invoice_url,
    }


def payment_dict(payment: AsaasPayment) -> Dict[str, Any]:
    return {
        "id": payment.asaas_payment_id,
        "subscription": payment.asaas_subscription_id,
        "value": payment.value,
        "status": payment.status,
        "billing_type": payment.billing_type,
        "due_date": payment.due_date,
        "invoice_url": payment.invoice_url,
        "pix_qr_code_url": payment.pix_qr_code_url,
        "pix_key": payment.pix_key,
    }
