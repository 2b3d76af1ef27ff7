"""
Tests for the plan catalog.

Scope:
- public listing
- admin-only creation (with Stripe price) and partial update
"""

from decimal import Decimal

from app.database.models import Plan


class TestListPlans:

    def test_lists_only_active_plans_by_price(self, test_client, make_plan):
        make_plan("Pro", "20.00", stripe_price_id="price_pro")
        make_plan("Básico", "10.00")
        make_plan("Antigo", "5.00", active=False)

        r = test_client.get("/plans")
        assert r.status_code == 200
        assert [p["name"] for p in r.json()] == ["Básico", "Pro"]
        assert Decimal(r.json()[0]["price"]) == Decimal("10.00")

    def test_listing_is_public(self, test_client, monkeypatch):
        monkeypatch.setenv("AUTH_DEV_MODE", "false")
        r = test_client.get("/plans")
        assert r.status_code == 200
        assert r.json() == []


class TestCreatePlan:

    payload = {
        "name": "Empresa",
        "description": "Para times de RH",
        "features": ["vagas ilimitadas", "destaque"],
        "price": "99.90",
        "interval": "month",
    }

    def test_requires_admin(self, test_client, headers, fake_stripe):
        r = test_client.post("/plans", json=self.payload, headers=headers)
        assert r.status_code == 403
        assert fake_stripe.price_records == {}

    def test_admin_creates_plan_with_stripe_price(self, test_client, make_user, load, fake_stripe):
        admin = make_user(email="admin@jobboard.local", role="admin")
        r = test_client.post("/plans", json=self.payload, headers={"X-Dev-User-Email": admin.email})
        assert r.status_code == 201

        [price_id] = fake_stripe.price_records
        price = fake_stripe.price_records[price_id]
        assert price["unit_amount"] == 9990
        assert price["recurring"] == {"interval": "month"}
        assert r.json()["stripe_price_id"] == price_id

        [plan] = load(Plan)
        assert plan.name == "Empresa"
        assert plan.stripe_price_id == price_id
        assert plan.features == ["vagas ilimitadas", "destaque"]

    def test_invalid_interval_is_400(self, test_client, make_user, fake_stripe):
        admin = make_user(email="admin@jobboard.local", role="admin")
        r = test_client.post(
            "/plans",
            json={**self.payload, "interval": "day"},
            headers={"X-Dev-User-Email": admin.email},
        )
        assert r.status_code == 400
        assert fake_stripe.price_records == {}

    def test_without_stripe_is_500(self, test_client, make_user, providers, load):
        providers.clear()
        admin = make_user(email="admin@jobboard.local", role="admin")
        r = test_client.post("/plans", json=self.payload, headers={"X-Dev-User-Email": admin.email})
        assert r.status_code == 500
        assert load(Plan) == []


class TestUpdatePlan:

    def test_partial_update(self, test_client, make_user, make_plan, load, fake_stripe):
        admin = make_user(email="admin@jobboard.local", role="admin")
        plan = make_plan("Básico", "10.00")

        r = test_client.put(
            f"/plans/{plan.id}",
            json={"description": "Nova descrição", "active": False},
            headers={"X-Dev-User-Email": admin.email},
        )
        assert r.status_code == 200
        assert r.json()["description"] == "Nova descrição"
        assert r.json()["active"] is False

        [stored] = load(Plan)
        assert stored.name == "Básico"
        assert stored.price == Decimal("10.00")
        assert stored.stripe_price_id == "price_basic"
        assert fake_stripe.price_records == {}

    def test_unknown_plan_is_404(self, test_client, make_user):
        admin = make_user(email="admin@jobboard.local", role="admin")
        r = test_client.put("/plans/999", json={"name": "X"}, headers={"X-Dev-User-Email": admin.email})
        assert r.status_code == 404

    def test_requires_admin(self, test_client, headers, make_plan):
        plan = make_plan()
        r = test_client.put(f"/plans/{plan.id}", json={"name": "X"}, headers=headers)
        assert r.status_code == 403
