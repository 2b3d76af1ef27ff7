"""
Tests for concurrent billing requests of one user over HTTP.

Both requests go through the same ASGI app in one event loop, so they race for
the user's billing lock the way two requests handled by one worker do.
"""

import asyncio

import httpx

from app.api.main import app
from app.database.models import AsaasPayment, Subscription


def _post_together(requests):
    async def main():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await asyncio.gather(
                *(client.post(path, json=body, headers=headers) for path, body, headers in requests)
            )

    return asyncio.run(main())


class TestConcurrentSubscribe:

    def test_two_subscribes_open_one_subscription(self, test_client, headers, plans, load, fake_asaas):
        body = {"plan_id": plans.basic.id, "provider": "ASAAS"}
        first, second = _post_together([("/billing/subscribe", body, headers)] * 2)

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["subscription"]["id"] == second.json()["subscription"]["id"]

        [subscription] = load(Subscription)
        assert subscription.status == "PENDING"
        assert len(fake_asaas.subscriptions) == 1
        assert len(load(AsaasPayment)) == 1

    def test_subscribes_on_different_providers_leave_one_open(
        self, test_client, headers, plans, load, fake_asaas, fake_stripe
    ):
        asaas = {"plan_id": plans.basic.id, "provider": "ASAAS"}
        stripe = {
            "plan_id": plans.basic.id,
            "provider": "STRIPE",
            "success_url": "https://jobs.test/ok",
            "cancel_url": "https://jobs.test/cancel",
        }
        responses = _post_together([
            ("/billing/subscribe", asaas, headers),
            ("/billing/subscribe", stripe, headers),
        ])

        assert [r.status_code for r in responses] == [200, 200]
        open_rows = [s for s in load(Subscription) if s.status in ("PENDING", "ACTIVE")]
        assert len(open_rows) == 1
