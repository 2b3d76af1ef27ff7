"""
Pytest global configuration for the billing API.

Este conftest foi projetado para:
- Testar a API FastAPI de forma isolada, com um SQLite descartável
- Trocar os clientes HTTP do Stripe e do Asaas por fakes em memória,
  mantendo os adaptadores reais (StripeBilling / AsaasBilling) no caminho
- Assinar webhooks do Stripe com o esquema real (HMAC-SHA256)
"""

import hashlib
import hmac
import json
import os
import tempfile
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest

# Ambiente de teste definido antes de importar a aplicação (engines são criados no import)
_TMP_DIR = tempfile.mkdtemp(prefix="jobboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ.pop("ASYNC_DATABASE_URL", None)
os.environ["AUTH_DEV_MODE"] = "true"
os.environ["ASAAS_WEBHOOK_TOKEN"] = ""
os.environ["JOBS_WEBHOOK_TOKEN"] = ""

import stripe
from fastapi.testclient import TestClient
from sqlalchemy import select

import app.database.models  # noqa: F401 - registra todos os modelos no Base.metadata
from app.api.main import app
from app.database.models.plan import Plan
from app.database.models.user import User
from app.database.session import Base, engine, get_session
from app.payments import get_billing_providers
from app.payments.asaas_client import AsaasError, AsaasNetworkError
from app.payments.asaas_provider import AsaasBilling
from app.payments.stripe_provider import StripeBilling
from app.utils.enums import Provider

STRIPE_WEBHOOK_SECRET = "whsec_test_secret"


# ============================================================================
# FAKE PROVIDER CLIENTS
# ============================================================================

class FakeAsaasClient:
    """In-memory stand-in for AsaasClient: same methods, same payload shapes."""

    def __init__(self):
        self.customers = {}
        self.subscriptions = {}
        self.payments = {}
        self.deleted = []
        self.fail_pix = False
        self._seq = 0

    def _next(self, prefix):
        self._seq += 1
        return f"{prefix}_{self._seq:04d}"

    def create_customer(self, name, email, cpf_cnpj, phone=None):
        customer_id = self._next("cus")
        self.customers[customer_id] = {"id": customer_id, "name": name, "email": email, "cpfCnpj": cpf_cnpj}
        return dict(self.customers[customer_id])

    def create_subscription(self, customer, billing_type, value, next_due_date, cycle, description=None):
        subscription_id = self._next("sub")
        self.subscriptions[subscription_id] = {
            "id": subscription_id,
            "customer": customer,
            "billingType": billing_type,
            "value": value,
            "nextDueDate": next_due_date,
            "cycle": cycle,
            "description": description,
            "status": "ACTIVE",
            "deleted": False,
        }
        self.add_payment(subscription_id, next_due_date)
        return dict(self.subscriptions[subscription_id])

    def add_payment(self, subscription_id, due_date, status="PENDING"):
        subscription = self.subscriptions[subscription_id]
        payment_id = self._next("pay")
        self.payments[payment_id] = {
            "id": payment_id,
            "subscription": subscription_id,
            "customer": subscription["customer"],
            "value": subscription["value"],
            "status": status,
            "billingType": "PIX",
            "dueDate": due_date,
            "invoiceUrl": f"https://asaas.test/i/{payment_id}",
        }
        return dict(self.payments[payment_id])

    def payments_of(self, subscription_id):
        return [p for p in self.payments.values() if p["subscription"] == subscription_id]

    def _subscription(self, subscription_id):
        if subscription_id not in self.subscriptions:
            raise AsaasError(status_code=404, detail=f"subscription {subscription_id} not found")
        return self.subscriptions[subscription_id]

    def get_subscription(self, subscription_id):
        return dict(self._subscription(subscription_id))

    def delete_subscription(self, subscription_id):
        subscription = self._subscription(subscription_id)
        subscription["deleted"] = True
        subscription["status"] = "INACTIVE"
        self.deleted.append(subscription_id)
        return {"deleted": True, "id": subscription_id}

    def list_subscription_payments(self, subscription_id):
        return [dict(p) for p in self.payments_of(subscription_id)]

    def get_payment(self, payment_id):
        if payment_id not in self.payments:
            raise AsaasError(status_code=404, detail=f"payment {payment_id} not found")
        return dict(self.payments[payment_id])

    def get_pix_qr_code(self, payment_id):
        if self.fail_pix:
            raise AsaasNetworkError(detail=f"GET /payments/{payment_id}/pixQrCode: timeout")
        return {
            "encodedImage": f"qr-{payment_id}",
            "payload": f"pix-{payment_id}",
            "expirationDate": "2099-01-01 23:59:59",
        }


class _FakeService:
    def __init__(self, owner):
        self.owner = owner


class _FakeCustomers(_FakeService):
    def create(self, params=None):
        customer_id = self.owner.next_id("cus")
        self.owner.customer_records[customer_id] = {"id": customer_id, **(params or {})}
        return dict(self.owner.customer_records[customer_id])


class _FakeCheckoutSessions(_FakeService):
    def create(self, params=None):
        session_id = self.owner.next_id("cs")
        self.owner.session_records[session_id] = {
            "id": session_id,
            "object": "checkout.session",
            "customer": params["customer"],
            "url": f"https://checkout.stripe.test/{session_id}",
            "status": "open",
            "subscription": None,
            "price": params["line_items"][0]["price"],
            "success_url": params["success_url"],
            "cancel_url": params["cancel_url"],
        }
        return dict(self.owner.session_records[session_id])

    def retrieve(self, session_id, params=None):
        if session_id not in self.owner.session_records:
            raise stripe.InvalidRequestError(f"No such checkout.session: {session_id}", "id")
        return dict(self.owner.session_records[session_id])

    def expire(self, session_id, params=None):
        self.owner.session_records[session_id]["status"] = "expired"
        self.owner.expired.append(session_id)
        return dict(self.owner.session_records[session_id])


class _FakeSubscriptions(_FakeService):
    def _get(self, subscription_id):
        if subscription_id not in self.owner.subscription_records:
            raise stripe.InvalidRequestError(f"No such subscription: {subscription_id}", "id")
        return self.owner.subscription_records[subscription_id]

    def retrieve(self, subscription_id, params=None):
        return dict(self._get(subscription_id))

    def cancel(self, subscription_id, params=None):
        subscription = self._get(subscription_id)
        subscription["status"] = "canceled"
        self.owner.cancelled.append(subscription_id)
        return dict(subscription)

    def update(self, subscription_id, params=None):
        subscription = self._get(subscription_id)
        params = params or {}
        if "items" in params:
            item = params["items"][0]
            subscription["items"]["data"][0]["price"] = {"id": item["price"]}
            subscription["proration_behavior"] = params.get("proration_behavior")
        if "cancel_at_period_end" in params:
            subscription["cancel_at_period_end"] = params["cancel_at_period_end"]
        return dict(subscription)


class _FakeInvoices(_FakeService):
    def list(self, params=None):
        params = params or {}
        data = [dict(i) for i in self.owner.invoice_records if i["customer"] == params.get("customer")]
        return {"object": "list", "data": data[: params.get("limit", 10)]}


class _FakePrices(_FakeService):
    def create(self, params=None):
        price_id = self.owner.next_id("price")
        self.owner.price_records[price_id] = {"id": price_id, **(params or {})}
        return dict(self.owner.price_records[price_id])


class FakeStripeClient:
    """Mirrors the StripeClient service layout used by StripeBilling."""

    def __init__(self):
        self.customer_records = {}
        self.session_records = {}
        self.subscription_records = {}
        self.invoice_records = []
        self.price_records = {}
        self.expired = []
        self.cancelled = []
        self._seq = 0

        self.customers = _FakeCustomers(self)
        self.checkout = SimpleNamespace(sessions=_FakeCheckoutSessions(self))
        self.subscriptions = _FakeSubscriptions(self)
        self.invoices = _FakeInvoices(self)
        self.prices = _FakePrices(self)

    def next_id(self, prefix):
        self._seq += 1
        return f"{prefix}_{self._seq:04d}"

    def complete_checkout(self, session_id, status="active"):
        """Simulate the customer paying: the session gets a real subscription."""
        session = self.session_records[session_id]
        subscription_id = self.next_id("sub")
        self.subscription_records[subscription_id] = {
            "id": subscription_id,
            "object": "subscription",
            "customer": session["customer"],
            "status": status,
            "current_period_end": int(time.time()) + 30 * 86400,
            "cancel_at_period_end": False,
            "items": {"data": [{"id": self.next_id("si"), "price": {"id": session["price"]}}]},
        }
        session["status"] = "complete"
        session["subscription"] = subscription_id
        return dict(self.subscription_records[subscription_id])

    def add_invoice(self, customer_id, amount_paid=1000, status="paid"):
        invoice = {"id": self.next_id("in"), "customer": customer_id, "amount_paid": amount_paid, "status": status}
        self.invoice_records.append(invoice)
        return invoice


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture(scope="function")
def test_db_engine():
    """Cria as tabelas no SQLite de teste e as remove ao final."""
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def load(test_db_engine):
    """Busca linhas com uma sessão nova (sempre o estado já commitado)."""
    def _load(model, **filters):
        with get_session() as session:
            query = select(model).filter_by(**filters).order_by(model.id)
            return list(session.execute(query).scalars().all())
    return _load


@pytest.fixture
def make_user(test_db_engine):
    def _make(email="ana@jobboard.local", cpf_cnpj="12345678909", role="user", is_active=True, name="Ana Souza"):
        with get_session() as session:
            user = User(
                firebase_uid=f"uid-{email}",
                email=email,
                name=name,
                cpf_cnpj=cpf_cnpj,
                role=role,
                is_active=is_active,
            )
            session.add(user)
            session.flush()
            return user
    return _make


@pytest.fixture
def make_plan(test_db_engine):
    def _make(name="Básico", price="10.00", interval="month", stripe_price_id="price_basic", active=True):
        with get_session() as session:
            plan = Plan(
                name=name,
                description=f"Plano {name}",
                features=["vagas ilimitadas"],
                price=Decimal(price),
                interval=interval,
                stripe_price_id=stripe_price_id,
                active=active,
            )
            session.add(plan)
            session.flush()
            return plan
    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def headers(user):
    """Em AUTH_DEV_MODE o header X-Dev-User-Email escolhe o usuário da requisição."""
    return {"X-Dev-User-Email": user.email}


@pytest.fixture
def plans(make_plan):
    return SimpleNamespace(
        basic=make_plan("Básico", "10.00", stripe_price_id="price_basic"),
        pro=make_plan("Pro", "20.00", stripe_price_id="price_pro"),
    )


# ============================================================================
# PROVIDERS
# ============================================================================

@pytest.fixture
def fake_asaas():
    return FakeAsaasClient()


@pytest.fixture
def fake_stripe():
    return FakeStripeClient()


@pytest.fixture
def providers(fake_asaas, fake_stripe):
    return {
        Provider.STRIPE: StripeBilling(fake_stripe, webhook_secret=STRIPE_WEBHOOK_SECRET),
        Provider.ASAAS: AsaasBilling(fake_asaas),
    }


# ============================================================================
# FASTAPI CLIENT
# ============================================================================

@pytest.fixture(scope="function")
def test_client(test_db_engine, providers):
    """TestClient com os provedores fake injetados via dependency_overrides."""
    app.dependency_overrides[get_billing_providers] = lambda: providers
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# ============================================================================
# STRIPE WEBHOOK SIGNING
# ============================================================================

@pytest.fixture
def stripe_event():
    """Monta um evento e o assina como o Stripe faz (t=..., v1=HMAC-SHA256)."""
    def _sign(event_type, obj, secret=STRIPE_WEBHOOK_SECRET):
        body = json.dumps({
            "id": f"evt_{int(time.time() * 1000)}",
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        })
        timestamp = int(time.time())
        signature = hmac.new(
            secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256
        ).hexdigest()
        return body, {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}
    return _sign


# ============================================================================
# FLOW HELPERS
# ============================================================================

@pytest.fixture
def subscribe(test_client, headers):
    """POST /billing/subscribe como o usuário padrão."""
    def _subscribe(plan, provider, extra_headers=None, **body):
        payload = {"plan_id": plan.id, "provider": provider, **body}
        if provider == Provider.STRIPE:
            payload.setdefault("success_url", "https://jobs.test/ok")
            payload.setdefault("cancel_url", "https://jobs.test/cancel")
        return test_client.post("/billing/subscribe", json=payload, headers=extra_headers or headers)
    return _subscribe


@pytest.fixture
def asaas_event(test_client, fake_asaas):
    """Entrega um evento de pagamento do Asaas com o estado atual do fake."""
    def _deliver(event_type, payment_id, **overrides):
        payment = {**fake_asaas.payments[payment_id], **overrides}
        return test_client.post("/asaas/webhook", json={"event": event_type, "payment": payment})
    return _deliver
