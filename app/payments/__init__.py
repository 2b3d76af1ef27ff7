"""
Payment providers - capability interface over Stripe and Asaas.

Usage:
    from app.payments import get_billing_providers

    providers = get_billing_providers()
    start = providers["ASAAS"].create_subscription(customer_id, plan)

Providers are built from env vars on demand. A provider whose API key is not
configured is simply absent from the mapping. Tests swap the whole mapping
through `app.dependency_overrides[get_billing_providers]`.
"""

import os
from typing import Dict, Optional

import stripe

from app.payments.asaas_client import AsaasClient
from app.payments.asaas_provider import AsaasBilling
from app.payments.base import (
    BillingProvider,
    ConfirmedRef,
    PaymentSnapshot,
    PendingRef,
    PixQrCode,
    ProviderRef,
    ProviderSnapshot,
    SubscriptionStart,
)
from app.payments.stripe_provider import StripeBilling
from app.utils.enums import Provider


def _timeout() -> float:
    return float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "20"))


def get_stripe_billing() -> Optional[StripeBilling]:
    api_key = os.getenv("STRIPE_SECRET_KEY", "").strip()
    if not api_key:
        return None
    client = stripe.StripeClient(
        api_key,
        max_network_retries=0,  # writes must not be replayed
        http_client=stripe.RequestsClient(timeout=_timeout()),
    )
    return StripeBilling(client, webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None)


def get_asaas_billing() -> Optional[AsaasBilling]:
    api_key = os.getenv("ASAAS_API_KEY", "").strip()
    if not api_key:
        return None
    client = AsaasClient(
        api_key=api_key,
        sandbox=os.getenv("ASAAS_SANDBOX", "false").lower() == "true",
        timeout=_timeout(),
    )
    return AsaasBilling(client, default_cpf_cnpj=os.getenv("ASAAS_DEFAULT_CPF_CNPJ") or None)


def get_billing_providers() -> Dict[str, BillingProvider]:
    """FastAPI dependency: configured providers keyed by Provider tag."""
    providers: Dict[str, BillingProvider] = {}
    stripe_billing = get_stripe_billing()
    if stripe_billing is not None:
        providers[Provider.STRIPE] = stripe_billing
    asaas_billing = get_asaas_billing()
    if asaas_billing is not None:
        providers[Provider.ASAAS] = asaas_billing
    return providers


__all__ = [
    "get_billing_providers",
    "get_stripe_billing",
    "get_asaas_billing",
    "BillingProvider",
    "StripeBilling",
    "AsaasBilling",
    "AsaasClient",
    "PendingRef",
    "ConfirmedRef",
    "ProviderRef",
    "PixQrCode",
    "PaymentSnapshot",
    "SubscriptionStart",
    "ProviderSnapshot",
]
