"""
Asaas Billing Provider - PIX subscriptions.

Asaas creates subscriptions synchronously and issues one payment per cycle.
There is no in-place plan change and no "undo delete": both open a brand
new Asaas subscription.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.core.exceptions import ProviderError, ValidationError
from app.payments.asaas_client import AsaasClient, AsaasError
from app.payments.base import (
    BillingProvider,
    ConfirmedRef,
    PaymentSnapshot,
    PixQrCode,
    ProviderRef,
    ProviderSnapshot,
    SubscriptionStart,
)
from app.utils.enums import AsaasPaymentStatus, PlanInterval, Provider, SubscriptionStatus

logger = logging.getLogger(__name__)

CYCLES = {
    PlanInterval.WEEK: "WEEKLY",
    PlanInterval.MONTH: "MONTHLY",
    PlanInterval.YEAR: "YEARLY",
}

BILLING_TYPE_PIX = "PIX"


def cycle_for(interval: str) -> str:
    try:
        return CYCLES[interval]
    except KeyError:
        raise ValidationError(f"Intervalo de cobrança não suportado: {interval}")


def map_subscription_status(asaas_subscription: Dict[str, Any]) -> str:
    """Asaas subscription status -> canonical status."""
    if asaas_subscription.get("deleted"):
        return SubscriptionStatus.CANCELLED
    if asaas_subscription.get("status") == "ACTIVE":
        return SubscriptionStatus.ACTIVE
    return SubscriptionStatus.CANCELLED  # INACTIVE, EXPIRED


def parse_due_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def due_date_as_datetime(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def payment_from_api(data: Dict[str, Any], pix: Optional[PixQrCode] = None) -> PaymentSnapshot:
    due_date = parse_due_date(data.get("dueDate"))
    if due_date is None or data.get("value") is None:
        raise ProviderError(provider=Provider.ASAAS, detail=f"Dados de pagamento inválidos: {data}")
    return PaymentSnapshot(
        external_id=data["id"],
        subscription_id=data.get("subscription"),
        value=Decimal(str(data["value"])),
        status=data.get("status") or AsaasPaymentStatus.PENDING,
        billing_type=data.get("billingType") or BILLING_TYPE_PIX,
        due_date=due_date,
        invoice_url=data.get("invoiceUrl"),
        pix=pix,
    )


class AsaasBilling(BillingProvider):
    provider = Provider.ASAAS

    def __init__(self, client: AsaasClient, default_cpf_cnpj: Optional[str] = None):
        self.client = client
        self.default_cpf_cnpj = default_cpf_cnpj

    # ── Contract ──

    def validate_plan(self, plan) -> None:
        cycle_for(plan.interval)

    def check_customer_data(self, user) -> None:
        if not (user.cpf_cnpj or self.default_cpf_cnpj):
            raise ValidationError("CPF/CNPJ não informado no perfil")

    def ensure_customer(self, user) -> str:
        self.check_customer_data(user)
        customer = self.client.create_customer(
            name=user.name or user.email,
            email=user.email,
            cpf_cnpj=user.cpf_cnpj or self.default_cpf_cnpj,
            phone=user.phone,
        )
        logger.info(f"Asaas customer created for user {user.id}: {customer['id']}")
        return customer["id"]

    def create_subscription(self, customer_id, plan, success_url=None, cancel_url=None) -> SubscriptionStart:
        cycle = cycle_for(plan.interval)
        next_due_date = date.today() + timedelta(days=1)  # first charge due in 24h
        created = self.client.create_subscription(
            customer=customer_id,
            billing_type=BILLING_TYPE_PIX,
            value=float(plan.price),
            next_due_date=next_due_date.isoformat(),
            cycle=cycle,
            description=plan.name,
        )
        subscription_id = created["id"]
        logger.info(f"Asaas subscription created: {subscription_id} (customer {customer_id})")

        try:
            first_payment = self.first_payment(subscription_id)
        except ProviderError as e:
            # the subscription exists but cannot be paid: undo it
            logger.error(f"Asaas first payment failed for {subscription_id}, rolling back: {e.detail}")
            self._delete_quietly(subscription_id)
            raise

        due = parse_due_date(created.get("nextDueDate")) or next_due_date
        return SubscriptionStart(
            ref=ConfirmedRef(subscription_id),
            status=SubscriptionStatus.PENDING,
            current_period_end=due_date_as_datetime(due),
            first_payment=first_payment,
            value=Decimal(str(created.get("value", plan.price))),
            cycle=plan.interval,
            next_due_date=due,
        )

    def resume_pending(self, ref: ProviderRef) -> Optional[SubscriptionStart]:
        try:
            current = self.client.get_subscription(ref.subscription_id)
        except AsaasError as e:
            if e.http_status == 404:
                return None
            raise
        if map_subscription_status(current) != SubscriptionStatus.ACTIVE:
            return None

        payments = self.list_payments(ref.subscription_id)
        pending = [p for p in payments if p.status == AsaasPaymentStatus.PENDING]
        payment = pending[0] if pending else None
        if payment is not None and payment.billing_type == BILLING_TYPE_PIX:
            payment.pix = self.get_pix_qr_code(payment.external_id)

        due = parse_due_date(current.get("nextDueDate"))
        return SubscriptionStart(
            ref=ref,
            status=SubscriptionStatus.PENDING,
            current_period_end=due_date_as_datetime(due),
            first_payment=payment,
            next_due_date=due,
        )

    def cancel(self, ref: ProviderRef) -> None:
        try:
            self.client.delete_subscription(ref.subscription_id)
        except AsaasError as e:
            if e.http_status != 404:
                raise
            logger.warning(f"Asaas subscription {ref.subscription_id} already gone")
        logger.info(f"Asaas subscription deleted: {ref.subscription_id}")

    def change_plan(self, ref: ProviderRef, customer_id: str, plan) -> SubscriptionStart:
        # open the new subscription first so a failure leaves the old one intact
        start = self.create_subscription(customer_id, plan)
        try:
            self.cancel(ref)
        except ProviderError:
            self._delete_quietly(start.ref.subscription_id)
            raise
        return start

    def reactivate(self, ref: ProviderRef, customer_id: str, plan) -> SubscriptionStart:
        return self.create_subscription(customer_id, plan)

    def refresh_status(self, ref: ProviderRef) -> ProviderSnapshot:
        current = self.client.get_subscription(ref.subscription_id)
        return ProviderSnapshot(
            status=map_subscription_status(current),
            raw_status=current.get("status"),
            current_period_end=due_date_as_datetime(parse_due_date(current.get("nextDueDate"))),
            details=current,
        )

    # ── Asaas specific ──

    def first_payment(self, subscription_id: str) -> Optional[PaymentSnapshot]:
        payments = self.list_payments(subscription_id)
        if not payments:
            return None
        payment = payments[0]
        if payment.billing_type == BILLING_TYPE_PIX:
            payment.pix = self.get_pix_qr_code(payment.external_id)
        return payment

    def list_payments(self, subscription_id: str) -> List[PaymentSnapshot]:
        """Provider payments of a subscription, oldest due date first."""
        payments = [payment_from_api(p) for p in self.client.list_subscription_payments(subscription_id)]
        return sorted(payments, key=lambda p: p.due_date)

    def get_payment(self, payment_id: str) -> PaymentSnapshot:
        return payment_from_api(self.client.get_payment(payment_id))

    def get_pix_qr_code(self, payment_id: str) -> PixQrCode:
        data = self.client.get_pix_qr_code(payment_id)
        return PixQrCode(
            encoded_image=data.get("encodedImage"),
            payload=data.get("payload"),
            expiration_date=data.get("expirationDate"),
        )

    def get_subscription_details(self, subscription_id: str) -> Dict[str, Any]:
        return self.client.get_subscription(subscription_id)

    def _delete_quietly(self, subscription_id: str) -> None:
        try:
            self.client.delete_subscription(subscription_id)
        except ProviderError as e:
            logger.error(f"Could not delete orphan Asaas subscription {subscription_id}: {e.detail}")
