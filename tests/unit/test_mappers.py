"""
Tests for the provider -> canonical mappings.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.core.exceptions import ProviderError, ValidationError
from app.payments import asaas_provider, stripe_provider
from app.utils.enums import SubscriptionStatus


class TestStripeMappings:

    @pytest.mark.parametrize("status", ["active", "trialing"])
    def test_active_statuses(self, status):
        assert stripe_provider.map_subscription_status(status) == SubscriptionStatus.ACTIVE

    @pytest.mark.parametrize("status", ["past_due", "unpaid", "canceled", "incomplete", "incomplete_expired", None])
    def test_everything_else_is_cancelled(self, status):
        assert stripe_provider.map_subscription_status(status) == SubscriptionStatus.CANCELLED

    def test_period_end_from_subscription(self):
        end = stripe_provider.period_end({"current_period_end": 1767225600})
        assert end == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_period_end_falls_back_to_first_item(self):
        subscription = {"items": {"data": [{"id": "si_1", "current_period_end": 1767225600}]}}
        assert stripe_provider.period_end(subscription) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_period_end_missing(self):
        assert stripe_provider.period_end({"items": {"data": []}}) is None

    def test_snapshot_keeps_raw_status(self):
        snapshot = stripe_provider.snapshot_from_subscription(
            {"id": "sub_1", "status": "past_due", "cancel_at_period_end": True}
        )
        assert snapshot.status == SubscriptionStatus.CANCELLED
        assert snapshot.raw_status == "past_due"
        assert snapshot.cancel_at_period_end is True
        assert snapshot.details["id"] == "sub_1"

    def test_stripe_field_defaults(self):
        assert stripe_provider.stripe_field(None, "id") is None
        assert stripe_provider.stripe_field({"url": None}, "url", "x") == "x"
        assert stripe_provider.stripe_field({}, "url") is None


class TestAsaasMappings:

    def test_active(self):
        assert asaas_provider.map_subscription_status({"status": "ACTIVE"}) == SubscriptionStatus.ACTIVE

    @pytest.mark.parametrize("status", ["INACTIVE", "EXPIRED"])
    def test_inactive_or_expired(self, status):
        assert asaas_provider.map_subscription_status({"status": status}) == SubscriptionStatus.CANCELLED

    def test_deleted_wins_over_status(self):
        remote = {"status": "ACTIVE", "deleted": True}
        assert asaas_provider.map_subscription_status(remote) == SubscriptionStatus.CANCELLED

    @pytest.mark.parametrize("interval,cycle", [("week", "WEEKLY"), ("month", "MONTHLY"), ("year", "YEARLY")])
    def test_cycle_for(self, interval, cycle):
        assert asaas_provider.cycle_for(interval) == cycle

    def test_cycle_for_unknown_interval(self):
        with pytest.raises(ValidationError):
            asaas_provider.cycle_for("day")

    def test_parse_due_date(self):
        assert asaas_provider.parse_due_date("2026-03-10") == date(2026, 3, 10)
        assert asaas_provider.parse_due_date("2026-03-10 00:00:00") == date(2026, 3, 10)
        assert asaas_provider.parse_due_date(None) is None

    def test_payment_from_api(self):
        snapshot = asaas_provider.payment_from_api(
            {"id": "pay_1", "subscription": "sub_1", "value": 19.9, "dueDate": "2026-03-10", "billingType": "PIX"}
        )
        assert snapshot.external_id == "pay_1"
        assert snapshot.value == Decimal("19.9")
        assert snapshot.status == "PENDING"
        assert snapshot.due_date == date(2026, 3, 10)

    def test_payment_from_api_without_due_date(self):
        with pytest.raises(ProviderError):
            asaas_provider.payment_from_api({"id": "pay_1", "value": 10})
