"""
Shared test helpers: an in-memory subscription store, Stripe signature
and Supabase token builders.
"""

import hashlib
import hmac
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import uuid4

import jwt

from app.domain.subscription import Subscription
from app.infrastructure.db.repositories.subscription_repository import MIRRORED_FIELDS


TEST_USER_ID = "00000000-0000-0000-0000-000000000001"
OTHER_USER_ID = "00000000-0000-0000-0000-000000000002"


# =============================================================================
# In-memory Subscription Store
# =============================================================================

class FakeSubscriptionRepository:
    """
    In-memory stand-in for SubscriptionRepository.

    Keeps one row per user_id, like the unique constraint the Postgres
    upsert conflicts on.
    """

    def __init__(self):
        self.rows: dict[str, Subscription] = {}
        self.upsert_calls = 0
        self.patch_calls = 0

    async def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        return self.rows.get(user_id)

    async def get_by_stripe_customer_id(self, stripe_customer_id: str) -> Optional[Subscription]:
        return self._find(stripe_customer_id=stripe_customer_id)

    async def get_by_stripe_subscription_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        return self._find(stripe_subscription_id=stripe_subscription_id)

    async def upsert(self, subscription: Subscription) -> Subscription:
        self.upsert_calls += 1
        now = datetime.now(timezone.utc)
        existing = self.rows.get(subscription.user_id)
        if existing and all(
            getattr(existing, field) == getattr(subscription, field) for field in MIRRORED_FIELDS
        ):
            return existing

        stored = subscription.model_copy(update={
            "id": existing.id if existing else str(uuid4()),
            "created_at": existing.created_at if existing else now,
            "updated_at": now,
        })
        self.rows[subscription.user_id] = stored
        return stored

    async def apply_patch(self, user_id: str, patch: dict[str, Any]) -> Optional[Subscription]:
        return self._patch(self.rows.get(user_id), patch)

    async def apply_patch_by_subscription_id(
        self, stripe_subscription_id: str, patch: dict[str, Any]
    ) -> Optional[Subscription]:
        return self._patch(self._find(stripe_subscription_id=stripe_subscription_id), patch)

    async def apply_patch_for_subscription(
        self, user_id: str, stripe_subscription_id: str, patch: dict[str, Any]
    ) -> Optional[Subscription]:
        row = self.rows.get(user_id)
        if row is not None and row.stripe_subscription_id != stripe_subscription_id:
            row = None
        return self._patch(row, patch)

    async def apply_patch_by_customer_id(
        self, stripe_customer_id: str, patch: dict[str, Any]
    ) -> Optional[Subscription]:
        return self._patch(self._find(stripe_customer_id=stripe_customer_id), patch)

    def _find(self, **criteria) -> Optional[Subscription]:
        for row in self.rows.values():
            if all(getattr(row, key) == value for key, value in criteria.items()):
                return row
        return None

    def _patch(self, row: Optional[Subscription], patch: dict[str, Any]) -> Optional[Subscription]:
        unknown = set(patch) - set(MIRRORED_FIELDS)
        if unknown:
            raise ValueError(f"Cannot patch non-mirrored fields: {sorted(unknown)}")

        self.patch_calls += 1
        if row is None:
            return None

        updated = row.model_copy(update={**patch, "updated_at": datetime.now(timezone.utc)})
        self.rows[row.user_id] = updated
        return updated


# =============================================================================
# Helpers
# =============================================================================

def sign_stripe_payload(
    payload: str,
    secret: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Build a Stripe-Signature header the way Stripe does (HMAC-SHA256)."""
    secret = secret or os.environ["STRIPE_WEBHOOK_SECRET"]
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def make_access_token(user_id: str = TEST_USER_ID, expires_in: int = 3600) -> str:
    """HS256 Supabase-style access token signed with the test secret."""
    from app.config.settings import get_settings

    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "iss": f"{settings.supabase_url}/auth/v1",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")


def make_subscription(
    user_id: str = TEST_USER_ID,
    status: str = "active",
    period_end: Optional[datetime] = None,
    **overrides,
) -> Subscription:
    now = datetime.now(timezone.utc)
    values = {
        "user_id": user_id,
        "stripe_customer_id": "cus_test",
        "stripe_subscription_id": "sub_test",
        "status": status,
        "price_id": "price_test_monthly",
        "current_period_start": now - timedelta(days=1),
        "current_period_end": period_end or now + timedelta(days=29),
    }
    values.update(overrides)
    return Subscription(**values)

