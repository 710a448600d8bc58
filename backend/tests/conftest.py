"""
Test configuration and fixtures for FinCharts AI.

Provides shared fixtures for unit and integration tests.
"""

import json
import os
from typing import Any, Optional
from unittest.mock import MagicMock

# Settings are read once at import time, so test values must be in place
# before anything under ``app`` is imported.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_PRICE_ID", "price_test_monthly")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes!")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")

import jwt
import pytest
from fastapi.testclient import TestClient

from app.infrastructure.payments.seen_events import SeenEventCache
from app.infrastructure.payments.webhook_processor import WebhookProcessor
from tests.helpers import (
    TEST_USER_ID,
    FakeSubscriptionRepository,
    make_access_token,
    sign_stripe_payload,
)


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def no_jwks(monkeypatch):
    """Keep JWT verification offline: JWKS lookups fail, HS256 applies."""
    jwks_client = MagicMock()
    jwks_client.get_signing_key_from_jwt.side_effect = jwt.exceptions.PyJWKClientError(
        "JWKS unavailable in tests"
    )
    monkeypatch.setattr("app.api.dependencies._get_jwks_client", lambda: jwks_client)
    return jwks_client


@pytest.fixture
def app():
    """Get the FastAPI application."""
    from app.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


# =============================================================================
# Subscription Fixtures
# =============================================================================

@pytest.fixture
def fake_repo():
    """Empty in-memory subscription store."""
    return FakeSubscriptionRepository()


@pytest.fixture
def processor(fake_repo):
    """Webhook processor writing to the in-memory store."""
    return WebhookProcessor(repo=fake_repo, seen_cache=SeenEventCache(100))


@pytest.fixture
def webhook_client(app, fake_repo, processor):
    """Client whose webhook route verifies real signatures against the test secret."""
    from app.infrastructure.db.repositories.subscription_repository import (
        get_subscription_repository,
    )
    from app.infrastructure.payments.stripe_service import StripeService, get_stripe_service
    from app.infrastructure.payments.webhook_processor import get_webhook_processor

    app.dependency_overrides[get_stripe_service] = lambda: StripeService(
        api_key="sk_test_dummy",
        webhook_secret=os.environ["STRIPE_WEBHOOK_SECRET"],
    )
    app.dependency_overrides[get_webhook_processor] = lambda: processor
    app.dependency_overrides[get_subscription_repository] = lambda: fake_repo
    return TestClient(app)


@pytest.fixture
def post_event(webhook_client):
    """POST a signed event to the webhook route."""

    def _post(event: dict[str, Any], signature: Optional[str] = None):
        payload = json.dumps(event)
        return webhook_client.post(
            "/api/stripe-webhook",
            content=payload,
            headers={
                "Content-Type": "application/json",
                "Stripe-Signature": signature or sign_stripe_payload(payload),
            },
        )

    return _post


@pytest.fixture
def mock_user_id():
    return TEST_USER_ID


@pytest.fixture
def auth_headers(mock_user_id):
    """Bearer header for the test user."""
    return {"Authorization": f"Bearer {make_access_token(mock_user_id)}"}


@pytest.fixture
def repo_client(app, fake_repo):
    """Client with the subscription repository swapped for the in-memory store."""
    from app.infrastructure.db.repositories.subscription_repository import (
        get_subscription_repository,
    )

    app.dependency_overrides[get_subscription_repository] = lambda: fake_repo
    return TestClient(app)


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def subscription_created_event():
    """The canonical created event, with a flattened data payload."""
    return {
        "id": "evt_1",
        "type": "customer.subscription.created",
        "data": {
            "id": "sub_A",
            "customer": "cus_X",
            "status": "active",
            "current_period_start": 1700000000,
            "current_period_end": 1702592000,
            "metadata": {"userId": "u-1"},
        },
    }


@pytest.fixture
def subscription_object():
    """A Stripe subscription object as nested under ``data.object``."""
    return {
        "id": "sub_123",
        "object": "subscription",
        "customer": "cus_123",
        "status": "active",
        "current_period_start": 1700000000,
        "current_period_end": 1702592000,
        "cancel_at_period_end": False,
        "canceled_at": None,
        "cancel_at": None,
        "items": {
            "data": [
                {
                    "id": "si_123",
                    "price": {"id": "price_test_monthly"},
                    "current_period_start": 1700000000,
                    "current_period_end": 1702592000,
                }
            ]
        },
        "metadata": {"userId": TEST_USER_ID},
    }
