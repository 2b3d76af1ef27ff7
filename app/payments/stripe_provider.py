"""
Stripe Billing Provider - card subscriptions through Stripe Checkout.

The Stripe subscription only exists after the customer finishes checkout, so
a new subscription starts as PendingRef(checkout_session_id) and becomes
ConfirmedRef(subscription_id) when checkout.session.completed arrives.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import stripe

from app.core.exceptions import ProviderError, ValidationError
from app.payments.base import (
    BillingProvider,
    ConfirmedRef,
    PendingRef,
    ProviderRef,
    ProviderSnapshot,
    SubscriptionStart,
    read_retry,
)
from app.utils.enums import Provider, SubscriptionStatus

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("active", "trialing")

_TRANSIENT = (stripe.APIConnectionError, stripe.RateLimitError)


def stripe_field(obj, key, default=None):
    """Item access that works for StripeObject and plain dicts."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


def _as_dict(obj) -> Dict[str, Any]:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def from_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def map_subscription_status(status: Optional[str]) -> str:
    """Stripe subscription status -> canonical status."""
    return SubscriptionStatus.ACTIVE if status in ACTIVE_STATUSES else SubscriptionStatus.CANCELLED


def period_end(subscription) -> Optional[datetime]:
    value = stripe_field(subscription, "current_period_end")
    if value is None:
        # newer API versions only expose the period on subscription items
        items = stripe_field(stripe_field(subscription, "items"), "data", [])
        if items:
            value = stripe_field(items[0], "current_period_end")
    return from_timestamp(value)


def snapshot_from_subscription(subscription) -> ProviderSnapshot:
    raw_status = stripe_field(subscription, "status")
    return ProviderSnapshot(
        status=map_subscription_status(raw_status),
        raw_status=raw_status,
        current_period_end=period_end(subscription),
        cancel_at_period_end=bool(stripe_field(subscription, "cancel_at_period_end", False)),
        details=_as_dict(subscription),
    )


@contextmanager
def stripe_errors():
    try:
        yield
    except stripe.StripeError as e:
        raise ProviderError(provider=Provider.STRIPE, detail=f"{type(e).__name__}: {e}")


class StripeBilling(BillingProvider):
    provider = Provider.STRIPE
    requires_redirect = True

    def __init__(self, client: "stripe.StripeClient", webhook_secret: Optional[str] = None):
        self.client = client
        self.webhook_secret = webhook_secret

    # ── Contract ──

    def validate_plan(self, plan) -> None:
        if not plan.stripe_price_id:
            raise ValidationError("Plano não configurado para Stripe")

    def ensure_customer(self, user) -> str:
        with stripe_errors():
            customer = self.client.customers.create(
                params={
                    "email": user.email,
                    "name": user.name or user.email,
                    "metadata": {"user_id": str(user.id)},
                }
            )
        logger.info(f"Stripe customer created for user {user.id}: {customer['id']}")
        return customer["id"]

    def create_subscription(self, customer_id, plan, success_url=None, cancel_url=None) -> SubscriptionStart:
        self.validate_plan(plan)
        if not success_url or not cancel_url:
            raise ValidationError("success_url e cancel_url são obrigatórios para Stripe")
        with stripe_errors():
            session = self.client.checkout.sessions.create(
                params={
                    "customer": customer_id,
                    "mode": "subscription",
                    "payment_method_types": ["card"],
                    "line_items": [{"price": plan.stripe_price_id, "quantity": 1}],
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "allow_promotion_codes": True,
                }
            )
        logger.info(f"Stripe checkout session created: {session['id']} (customer {customer_id})")
        return SubscriptionStart(
            ref=PendingRef(session["id"]),
            status=SubscriptionStatus.PENDING,
            checkout_url=stripe_field(session, "url"),
        )

    def resume_pending(self, ref: ProviderRef) -> Optional[SubscriptionStart]:
        if not isinstance(ref, PendingRef):
            return None
        session = self.retrieve_checkout_session(ref.checkout_id)
        status = stripe_field(session, "status")
        subscription_id = stripe_field(session, "subscription")
        if status == "complete" and subscription_id:
            # paid, but checkout.session.completed has not been processed yet
            if not isinstance(subscription_id, str):
                subscription_id = subscription_id["id"]
            snapshot = snapshot_from_subscription(self.retrieve_subscription(subscription_id))
            return SubscriptionStart(
                ref=ConfirmedRef(subscription_id),
                status=snapshot.status,
                current_period_end=snapshot.current_period_end,
                cancel_at_period_end=snapshot.cancel_at_period_end,
            )
        if status != "open":
            return None
        return SubscriptionStart(
            ref=ref,
            status=SubscriptionStatus.PENDING,
            checkout_url=stripe_field(session, "url"),
        )

    def cancel(self, ref: ProviderRef) -> None:
        if isinstance(ref, ConfirmedRef):
            with stripe_errors():
                self.client.subscriptions.cancel(ref.subscription_id)
            logger.info(f"Stripe subscription cancelled: {ref.subscription_id}")
            return

        session = self.retrieve_checkout_session(ref.checkout_id)
        with stripe_errors():
            if stripe_field(session, "status") == "open":
                self.client.checkout.sessions.expire(ref.checkout_id)
                logger.info(f"Stripe checkout session expired: {ref.checkout_id}")
            elif stripe_field(session, "subscription"):
                # paid, but the completion webhook has not reached us yet
                self.client.subscriptions.cancel(session["subscription"])
                logger.info(f"Stripe subscription cancelled: {session['subscription']}")

    def change_plan(self, ref: ProviderRef, customer_id: str, plan) -> SubscriptionStart:
        if not isinstance(ref, ConfirmedRef):
            raise ValidationError("Checkout ainda não concluído")
        self.validate_plan(plan)
        current = self.retrieve_subscription(ref.subscription_id)
        item_id = stripe_field(current, "items")["data"][0]["id"]
        with stripe_errors():
            updated = self.client.subscriptions.update(
                ref.subscription_id,
                params={
                    "items": [{"id": item_id, "price": plan.stripe_price_id}],
                    "proration_behavior": "always_invoice",
                },
            )
        logger.info(f"Stripe subscription {ref.subscription_id} moved to price {plan.stripe_price_id}")
        return SubscriptionStart(
            ref=ref,
            status=SubscriptionStatus.ACTIVE,
            current_period_end=period_end(updated),
            cancel_at_period_end=bool(stripe_field(updated, "cancel_at_period_end", False)),
        )

    def reactivate(self, ref: ProviderRef, customer_id: str, plan) -> SubscriptionStart:
        if not isinstance(ref, ConfirmedRef):
            raise ValidationError("Checkout ainda não concluído")
        with stripe_errors():
            updated = self.client.subscriptions.update(
                ref.subscription_id,
                params={"cancel_at_period_end": False},
            )
        return SubscriptionStart(
            ref=ref,
            status=SubscriptionStatus.ACTIVE,
            current_period_end=period_end(updated),
            cancel_at_period_end=False,
        )

    def refresh_status(self, ref: ProviderRef) -> ProviderSnapshot:
        if isinstance(ref, PendingRef):
            session = self.retrieve_checkout_session(ref.checkout_id)
            return ProviderSnapshot(
                status=SubscriptionStatus.PENDING,
                raw_status=stripe_field(session, "status"),
                details=_as_dict(session),
            )
        subscription = self.retrieve_subscription(
            ref.subscription_id,
            expand=["default_payment_method", "latest_invoice", "items.data.price.product"],
        )
        return snapshot_from_subscription(subscription)

    # ── Stripe specific ──

    @read_retry(*_TRANSIENT)
    def _retrieve_subscription(self, subscription_id: str, params: Dict[str, Any]):
        return self.client.subscriptions.retrieve(subscription_id, params=params)

    def retrieve_subscription(self, subscription_id: str, expand: Optional[List[str]] = None):
        with stripe_errors():
            return self._retrieve_subscription(subscription_id, {"expand": expand} if expand else {})

    @read_retry(*_TRANSIENT)
    def _retrieve_checkout_session(self, session_id: str):
        return self.client.checkout.sessions.retrieve(session_id)

    def retrieve_checkout_session(self, session_id: str):
        with stripe_errors():
            return self._retrieve_checkout_session(session_id)

    @read_retry(*_TRANSIENT)
    def _list_invoices(self, params: Dict[str, Any]):
        return self.client.invoices.list(params=params)

    def list_invoices(self, customer_id: str, limit: int = 24) -> List[Dict[str, Any]]:
        with stripe_errors():
            invoices = self._list_invoices({"customer": customer_id, "limit": limit})
        return [_as_dict(invoice) for invoice in stripe_field(invoices, "data", [])]

    def create_price(self, name: str, price, interval: str, metadata: Optional[Dict[str, str]] = None) -> str:
        with stripe_errors():
            created = self.client.prices.create(
                params={
                    "unit_amount": int(round(float(price) * 100)),
                    "currency": "brl",
                    "recurring": {"interval": interval},
                    "product_data": {"name": name, "metadata": metadata or {}},
                }
            )
        return created["id"]

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify the signature against the raw body and parse the event."""
        if not self.webhook_secret:
            raise ProviderError(provider=Provider.STRIPE, detail="STRIPE_WEBHOOK_SECRET not configured")
        if not signature:
            raise ValidationError("Cabeçalho stripe-signature ausente")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook signature mismatch: {e}")
            raise ValidationError("Assinatura do webhook inválida")
        except ValueError as e:
            logger.warning(f"Stripe webhook invalid payload: {e}")
            raise ValidationError("Payload do webhook inválido")
