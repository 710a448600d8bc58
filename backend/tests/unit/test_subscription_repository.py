"""
Unit tests for SubscriptionRepository.

The session is replaced with a recorder; statements are compiled against
the PostgreSQL dialect to check the SQL that would be sent.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import Insert

from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository
from tests.helpers import make_subscription


class RecordingSession:
    """Captures executed statements and returns a canned row.

    ``upsert_model`` is what an INSERT returns; None mimics a skipped
    conflict update.
    """

    def __init__(self, model):
        self.model = model
        self.upsert_model = model
        self.statements = []

    async def execute(self, statement):
        self.statements.append(statement)
        row = self.upsert_model if isinstance(statement, Insert) else self.model
        result = MagicMock()
        result.scalars.return_value.one.return_value = row
        result.scalars.return_value.first.return_value = row
        return result


def _sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


@pytest.fixture
def stored_model():
    now = datetime.now(timezone.utc)
    return SubscriptionModel(
        id=uuid4(),
        user_id="u1",
        stripe_customer_id="cus_1",
        stripe_subscription_id="sub_1",
        status="active",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def session(stored_model):
    recorder = RecordingSession(stored_model)

    @asynccontextmanager
    async def _context():
        yield recorder

    with patch(
        "app.infrastructure.db.repositories.subscription_repository.get_session_context",
        _context,
    ):
        yield recorder


class TestSubscriptionRepository:

    @pytest.mark.asyncio
    async def test_upsert_conflicts_on_user_id(self, session):
        result = await SubscriptionRepository().upsert(make_subscription(user_id="u1"))

        sql = _sql(session.statements[0])
        assert "INSERT INTO subscriptions" in sql
        assert "ON CONFLICT (user_id) DO UPDATE SET" in sql

        update_clause = sql.split("DO UPDATE SET")[1].split("RETURNING")[0]
        assert "stripe_subscription_id = excluded.stripe_subscription_id" in update_clause
        assert "created_at" not in update_clause
        assert "updated_at" in update_clause

        assert result.user_id == "u1"
        assert len(session.statements) == 1

    @pytest.mark.asyncio
    async def test_upsert_skips_unchanged_row(self, session):
        await SubscriptionRepository().upsert(make_subscription(user_id="u1"))
        sql = _sql(session.statements[0])

        where_clause = sql.split("DO UPDATE SET")[1].split("RETURNING")[0].split("WHERE")[1]
        assert "subscriptions.status IS DISTINCT FROM excluded.status" in where_clause
        assert "subscriptions.current_period_end IS DISTINCT FROM excluded.current_period_end" in where_clause
        assert "updated_at" not in where_clause

    @pytest.mark.asyncio
    async def test_unchanged_upsert_returns_stored_row(self, session, stored_model):
        """No row comes back from a skipped conflict update; the stored one is read instead."""
        session.upsert_model = None

        result = await SubscriptionRepository().upsert(make_subscription(user_id="u1"))

        assert len(session.statements) == 2
        assert _sql(session.statements[1]).startswith("SELECT")
        assert result.id == str(stored_model.id)
        assert result.updated_at == stored_model.updated_at

    @pytest.mark.asyncio
    async def test_patch_for_subscription_matches_user_and_subscription(self, session):
        await SubscriptionRepository().apply_patch_for_subscription(
            "u1", "sub_1", {"status": "canceled"}
        )

        sql = _sql(session.statements[0])
        assert "subscriptions.user_id =" in sql
        assert "AND subscriptions.stripe_subscription_id =" in sql

    @pytest.mark.asyncio
    async def test_patch_for_other_subscription_returns_none(self, session):
        session.model = None

        result = await SubscriptionRepository().apply_patch_for_subscription(
            "u1", "sub_old", {"status": "canceled"}
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_patch_is_single_update(self, session, stored_model):
        now = datetime.now(timezone.utc)

        result = await SubscriptionRepository().apply_patch(
            "u1", {"status": "canceled", "canceled_at": now}
        )

        sql = _sql(session.statements[0])
        assert sql.startswith("UPDATE subscriptions SET")
        assert "WHERE subscriptions.user_id =" in sql
        assert result.user_id == stored_model.user_id
        assert len(session.statements) == 1

    @pytest.mark.asyncio
    async def test_patch_by_subscription_id(self, session):
        await SubscriptionRepository().apply_patch_by_subscription_id("sub_1", {"status": "past_due"})

        assert "WHERE subscriptions.stripe_subscription_id =" in _sql(session.statements[0])

    @pytest.mark.asyncio
    async def test_patch_by_customer_id(self, session):
        await SubscriptionRepository().apply_patch_by_customer_id("cus_1", {"status": "past_due"})

        assert "WHERE subscriptions.stripe_customer_id =" in _sql(session.statements[0])

    @pytest.mark.asyncio
    async def test_patch_rejects_unmirrored_fields(self, session):
        with pytest.raises(ValueError):
            await SubscriptionRepository().apply_patch("u1", {"user_id": "someone-else"})

        assert session.statements == []

    @pytest.mark.asyncio
    async def test_patch_missing_row(self, session):
        session.model = None

        assert await SubscriptionRepository().apply_patch("nobody", {"status": "canceled"}) is None

    @pytest.mark.asyncio
    async def test_get_by_user_id_maps_to_domain(self, session, stored_model):
        subscription = await SubscriptionRepository().get_by_user_id("u1")

        assert subscription.id == str(stored_model.id)
        assert subscription.stripe_customer_id == "cus_1"
        assert subscription.cancel_at_period_end is False
