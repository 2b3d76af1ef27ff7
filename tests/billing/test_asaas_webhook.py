"""
Tests for POST /asaas/webhook.

Scope:
- first payment vs renewal status rules
- replay safety
- PIX clearing on refund/delete
- late events after cancellation
- unknown entities and shared-token check
"""

from datetime import date, timedelta

from app.database.models import AsaasPayment, Subscription


def _start(subscribe, plans):
    return subscribe(plans.basic, "ASAAS").json()["payment"]["id"]


class TestFirstPayment:

    def test_confirmed_first_payment_activates(self, subscribe, asaas_event, plans, load, fake_asaas):
        payment_id = _start(subscribe, plans)
        fake_asaas.payments[payment_id]["status"] = "CONFIRMED"

        r = asaas_event("PAYMENT_CONFIRMED", payment_id)
        assert r.status_code == 200
        assert r.json() == {"received": True}

        [subscription] = load(Subscription)
        assert subscription.status == "ACTIVE"
        assert subscription.asaas_subscription.status == "ACTIVE"
        assert load(AsaasPayment)[0].status == "CONFIRMED"

    def test_overdue_first_payment_stays_pending(self, subscribe, asaas_event, plans, load, fake_asaas):
        payment_id = _start(subscribe, plans)
        fake_asaas.payments[payment_id]["status"] = "OVERDUE"

        asaas_event("PAYMENT_OVERDUE", payment_id)
        assert load(Subscription)[0].status == "PENDING"
        assert load(AsaasPayment)[0].status == "OVERDUE"

    def test_replay_is_idempotent(self, subscribe, asaas_event, plans, load, fake_asaas):
        payment_id = _start(subscribe, plans)
        fake_asaas.payments[payment_id]["status"] = "RECEIVED"

        asaas_event("PAYMENT_RECEIVED", payment_id)
        once = load(Subscription)[0]
        asaas_event("PAYMENT_RECEIVED", payment_id)
        twice = load(Subscription)[0]

        assert (once.status, once.current_period_end) == (twice.status, twice.current_period_end)
        assert len(load(AsaasPayment)) == 1


class TestRenewals:

    def _activate(self, subscribe, asaas_event, plans, fake_asaas):
        payment_id = _start(subscribe, plans)
        fake_asaas.payments[payment_id]["status"] = "CONFIRMED"
        asaas_event("PAYMENT_CONFIRMED", payment_id)
        return fake_asaas.payments[payment_id]["subscription"]

    def test_unknown_renewal_is_recorded_from_payload(self, subscribe, asaas_event, plans, load, fake_asaas):
        asaas_sub = self._activate(subscribe, asaas_event, plans, fake_asaas)
        next_due = (date.today() + timedelta(days=31)).isoformat()
        fake_asaas.subscriptions[asaas_sub]["nextDueDate"] = next_due
        renewal = fake_asaas.add_payment(asaas_sub, (date.today() + timedelta(days=30)).isoformat())

        r = asaas_event("PAYMENT_UPDATED", renewal["id"])
        assert r.status_code == 200

        payments = load(AsaasPayment)
        assert [p.asaas_payment_id for p in payments][-1] == renewal["id"]
        [subscription] = load(Subscription)
        # a pending renewal does not demote an active subscription
        assert subscription.status == "ACTIVE"
        assert subscription.asaas_subscription.next_due_date.isoformat() == next_due

    def test_renewal_follows_provider_subscription_status(self, subscribe, asaas_event, plans, load, fake_asaas):
        asaas_sub = self._activate(subscribe, asaas_event, plans, fake_asaas)
        renewal = fake_asaas.add_payment(asaas_sub, (date.today() + timedelta(days=30)).isoformat())
        fake_asaas.subscriptions[asaas_sub]["status"] = "INACTIVE"

        asaas_event("PAYMENT_OVERDUE", renewal["id"], status="OVERDUE")
        assert load(Subscription)[0].status == "CANCELLED"

    def test_confirmed_renewal_does_not_override_provider_status(
        self, subscribe, asaas_event, plans, load, fake_asaas
    ):
        asaas_sub = self._activate(subscribe, asaas_event, plans, fake_asaas)
        renewal = fake_asaas.add_payment(asaas_sub, (date.today() + timedelta(days=30)).isoformat())
        fake_asaas.subscriptions[asaas_sub]["deleted"] = True

        asaas_event("PAYMENT_CONFIRMED", renewal["id"], status="CONFIRMED")
        assert load(Subscription)[0].status == "CANCELLED"


class TestPixInvalidation:

    def test_refund_clears_pix_and_keeps_status(self, subscribe, asaas_event, plans, load, fake_asaas):
        payment_id = _start(subscribe, plans)
        assert load(AsaasPayment)[0].pix_key is not None

        r = asaas_event("PAYMENT_REFUNDED", payment_id, status="REFUNDED")
        assert r.status_code == 200

        [payment] = load(AsaasPayment)
        assert payment.status == "REFUNDED"
        assert payment.pix_key is None
        assert payment.pix_qr_code_url is None
        assert load(Subscription)[0].status == "PENDING"

    def test_delete_after_activation_keeps_active(self, subscribe, asaas_event, plans, load, fake_asaas):
        payment_id = _start(subscribe, plans)
        fake_asaas.payments[payment_id]["status"] = "CONFIRMED"
        asaas_event("PAYMENT_CONFIRMED", payment_id)

        asaas_event("PAYMENT_DELETED", payment_id)
        assert load(Subscription)[0].status == "ACTIVE"
        assert load(AsaasPayment)[0].pix_key is None


class TestReplacedSubscription:

    def test_charge_of_replaced_subscription_does_not_touch_status(
        self, subscribe, test_client, headers, asaas_event, plans, load, fake_asaas
    ):
        old_payment = _start(subscribe, plans)
        test_client.post("/billing/change-plan", json={"plan_id": plans.pro.id}, headers=headers)

        fake_asaas.payments[old_payment]["status"] = "CONFIRMED"
        asaas_event("PAYMENT_CONFIRMED", old_payment)

        assert load(Subscription)[0].status == "PENDING"
        stored = load(AsaasPayment, asaas_payment_id=old_payment)[0]
        assert stored.status == "CONFIRMED"


class TestAfterCancellation:

    def test_late_overdue_of_first_payment_keeps_cancelled(
        self, subscribe, test_client, headers, asaas_event, plans, load, fake_asaas
    ):
        payment_id = _start(subscribe, plans)
        test_client.post("/billing/cancel", headers=headers)

        r = asaas_event("PAYMENT_OVERDUE", payment_id, status="OVERDUE")
        assert r.status_code == 200

        [subscription] = load(Subscription)
        assert subscription.status == "CANCELLED"
        assert subscription.asaas_subscription.status == "CANCELLED"
        assert load(AsaasPayment)[0].status == "OVERDUE"

    def test_late_confirmation_of_first_payment_keeps_cancelled(
        self, subscribe, test_client, headers, asaas_event, plans, load, fake_asaas
    ):
        payment_id = _start(subscribe, plans)
        test_client.post("/billing/cancel", headers=headers)

        asaas_event("PAYMENT_CONFIRMED", payment_id, status="CONFIRMED")
        assert load(Subscription)[0].status == "CANCELLED"

    def test_cancelled_locally_but_active_at_asaas_stays_cancelled(
        self, subscribe, test_client, headers, asaas_event, plans, load, fake_asaas
    ):
        payment_id = _start(subscribe, plans)
        asaas_sub = fake_asaas.payments[payment_id]["subscription"]
        test_client.post("/billing/cancel", headers=headers)
        fake_asaas.subscriptions[asaas_sub].update(status="ACTIVE", deleted=False)

        asaas_event("PAYMENT_RECEIVED", payment_id, status="RECEIVED")
        assert load(Subscription)[0].status == "CANCELLED"


class TestUnknownAndIgnored:

    def test_unknown_payment_and_subscription_is_acknowledged(self, test_client, load, test_db_engine):
        r = test_client.post(
            "/asaas/webhook",
            json={
                "event": "PAYMENT_CONFIRMED",
                "payment": {"id": "pay_x", "subscription": "sub_x", "status": "CONFIRMED", "value": 10, "dueDate": "2026-01-01"},
            },
        )
        assert r.status_code == 200
        assert r.json() == {"received": True}
        assert load(AsaasPayment) == []

    def test_unknown_payment_without_due_date_is_acknowledged(self, subscribe, test_client, plans, load, fake_asaas):
        payment_id = _start(subscribe, plans)
        asaas_sub = fake_asaas.payments[payment_id]["subscription"]

        r = test_client.post(
            "/asaas/webhook",
            json={
                "event": "PAYMENT_CONFIRMED",
                "payment": {"id": "pay_sem_vencimento", "subscription": asaas_sub, "status": "CONFIRMED"},
            },
        )
        assert r.status_code == 200
        assert [p.asaas_payment_id for p in load(AsaasPayment)] == [payment_id]
        assert load(Subscription)[0].status == "PENDING"

    def test_event_outside_allow_list_is_ignored(self, test_client):
        r = test_client.post("/asaas/webhook", json={"event": "SUBSCRIPTION_CREATED", "subscription": {"id": "sub_1"}})
        assert r.status_code == 200

    def test_missing_payment_id_is_400(self, test_client):
        r = test_client.post("/asaas/webhook", json={"event": "PAYMENT_CONFIRMED", "payment": {}})
        assert r.status_code == 400


class TestWebhookToken:

    def test_wrong_token_is_401(self, test_client, monkeypatch):
        monkeypatch.setenv("ASAAS_WEBHOOK_TOKEN", "segredo")
        r = test_client.post(
            "/asaas/webhook",
            json={"event": "SUBSCRIPTION_CREATED"},
            headers={"asaas-access-token": "errado"},
        )
        assert r.status_code == 401

    def test_missing_token_is_401(self, test_client, monkeypatch):
        monkeypatch.setenv("ASAAS_WEBHOOK_TOKEN", "segredo")
        r = test_client.post("/asaas/webhook", json={"event": "SUBSCRIPTION_CREATED"})
        assert r.status_code == 401

    def test_right_token_is_accepted(self, test_client, monkeypatch):
        monkeypatch.setenv("ASAAS_WEBHOOK_TOKEN", "segredo")
        r = test_client.post(
            "/asaas/webhook",
            json={"event": "SUBSCRIPTION_CREATED"},
            headers={"asaas-access-token": "segredo"},
        )
        assert r.status_code == 200
