"""
Billing Provider - Abstract base for payment gateways.

Implementations: StripeBilling (card checkout, webhook driven) and
AsaasBilling (PIX, poll driven). The subscription service only talks to this
contract, so it never branches on provider names for external calls.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential


@dataclass(frozen=True)
class PendingRef:
    """Provisional handle: the provider subscription does not exist yet (e.g. open checkout)."""
    checkout_id: str


@dataclass(frozen=True)
class ConfirmedRef:
    """Handle to a subscription that exists at the provider."""
    subscription_id: str


ProviderRef = Union[PendingRef, ConfirmedRef]


@dataclass
class PixQrCode:
    encoded_image: Optional[str] = None  # base64 PNG
    payload: Optional[str] = None  # copy-and-paste PIX key
    expiration_date: Optional[str] = None


@dataclass
class PaymentSnapshot:
    """A single charge as reported by the provider."""
    external_id: str
    subscription_id: Optional[str]
    value: Decimal
    status: str
    billing_type: str
    due_date: date
    invoice_url: Optional[str] = None
    pix: Optional[PixQrCode] = None


@dataclass
class SubscriptionStart:
    """Result of opening (or reopening) a subscription at the provider."""
    ref: ProviderRef
    status: str  # canonical SubscriptionStatus
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    checkout_url: Optional[str] = None
    first_payment: Optional[PaymentSnapshot] = None
    value: Optional[Decimal] = None
    cycle: Optional[str] = None
    next_due_date: Optional[date] = None


@dataclass
class ProviderSnapshot:
    """Authoritative subscription state pulled from the provider."""
    status: str  # canonical SubscriptionStatus
    raw_status: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


def read_retry(*exception_types):
    """Bounded exponential backoff for idempotent provider reads. Never use on writes."""
    return retry(
        retry=retry_if_exception_type(exception_types),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )


class BillingProvider(ABC):
    """Capability interface implemented once per payment gateway."""

    provider: str
    # checkout happens on the provider's page (needs success/cancel urls)
    requires_redirect: bool = False

    def get_name(self) -> str:
        """Provider tag as stored in `subscriptions.provider`."""
        return self.provider

    def validate_plan(self, plan) -> None:
        """Raise ValidationError when the plan cannot be sold through this provider."""

    def check_customer_data(self, user) -> None:
        """Raise ValidationError when the profile lacks what the provider needs for a customer."""

    @abstractmethod
    def ensure_customer(self, user) -> str:
        """Register the user at the provider and return the provider customer id."""
        pass

    @abstractmethod
    def create_subscription(
        self,
        customer_id: str,
        plan,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> SubscriptionStart:
        """Open a new subscription for the plan."""
        pass

    @abstractmethod
    def resume_pending(self, ref: ProviderRef) -> Optional[SubscriptionStart]:
        """Return the still-usable payload of an initiated subscription, or None."""
        pass

    @abstractmethod
    def cancel(self, ref: ProviderRef) -> None:
        """Cancel immediately at the provider."""
        pass

    @abstractmethod
    def change_plan(self, ref: ProviderRef, customer_id: str, plan) -> SubscriptionStart:
        """Move the subscription to another plan."""
        pass

    @abstractmethod
    def reactivate(self, ref: ProviderRef, customer_id: str, plan) -> SubscriptionStart:
        """Undo a soft cancel."""
        pass

    @abstractmethod
    def refresh_status(self, ref: ProviderRef) -> ProviderSnapshot:
        """Pull the current subscription status from the provider."""
        pass
