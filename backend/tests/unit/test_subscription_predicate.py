"""Unit tests for the active-subscription predicate."""

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.subscription import Subscription, is_subscription_active


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _sub(status="active", period_end=NOW + timedelta(days=10), **kwargs):
    return Subscription(user_id="u1", status=status, current_period_end=period_end, **kwargs)


class TestIsSubscriptionActive:

    def test_active_in_period(self):
        assert is_subscription_active(_sub(), NOW) is True

    def test_active_but_period_ended(self):
        assert is_subscription_active(_sub(period_end=NOW - timedelta(seconds=1)), NOW) is False

    def test_period_end_is_exclusive(self):
        assert is_subscription_active(_sub(period_end=NOW), NOW) is False

    @pytest.mark.parametrize(
        "status", ["past_due", "canceled", "incomplete", "trialing", "unpaid", "paused"]
    )
    def test_other_statuses_in_period(self, status):
        assert is_subscription_active(_sub(status=status), NOW) is False

    def test_scheduled_cancellation_keeps_access(self):
        assert is_subscription_active(_sub(cancel_at_period_end=True), NOW) is True

    def test_no_subscription(self):
        assert is_subscription_active(None, NOW) is False

    def test_no_period_end(self):
        assert is_subscription_active(_sub(period_end=None), NOW) is False

    def test_naive_period_end_treated_as_utc(self):
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert is_subscription_active(_sub(period_end=naive), NOW) is True

    def test_defaults_to_current_time(self):
        future = datetime.now(timezone.utc) + timedelta(days=1)
        assert is_subscription_active(_sub(period_end=future)) is True
