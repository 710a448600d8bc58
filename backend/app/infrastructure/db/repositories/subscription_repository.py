"""
Subscription Repository

Data access layer for subscription persistence.
Follows Repository pattern for Clean Architecture.

Every write is a single statement: upserts conflict on ``user_id`` and
patches are plain ``UPDATE ... WHERE``. There is no read-then-write path,
so concurrent redeliveries of the same Stripe event cannot race each other
into duplicate rows.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlmodel import select
from sqlalchemy import and_, or_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from app.infrastructure.db.database import get_session_context
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.domain.subscription import Subscription


logger = logging.getLogger(__name__)

# Columns a webhook projection is allowed to write
MIRRORED_FIELDS = (
    "stripe_customer_id",
    "stripe_subscription_id",
    "status",
    "price_id",
    "current_period_start",
    "current_period_end",
    "cancel_at_period_end",
    "canceled_at",
    "cancel_at",
)


class SubscriptionRepository:
    """
    Repository for subscription data access.

    Implements lookups and atomic writes with domain model mapping.
    Uses async SQLModel for database operations.
    """

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        """
        Get subscription by user ID.

        Args:
            user_id: Local (identity provider) user ID

        Returns:
            Subscription domain model or None
        """
        return await self._get_one(SubscriptionModel.user_id == user_id)

    async def get_by_stripe_customer_id(
        self,
        stripe_customer_id: str,
    ) -> Optional[Subscription]:
        """Get subscription by Stripe customer ID."""
        return await self._get_one(
            SubscriptionModel.stripe_customer_id == stripe_customer_id
        )

    async def get_by_stripe_subscription_id(
        self,
        stripe_subscription_id: str,
    ) -> Optional[Subscription]:
        """Get subscription by Stripe subscription ID."""
        return await self._get_one(
            SubscriptionModel.stripe_subscription_id == stripe_subscription_id
        )

    async def _get_one(self, clause) -> Optional[Subscription]:
        async with get_session_context() as session:
            statement = select(SubscriptionModel).where(clause)
            result = await session.execute(statement)
            model = result.scalars().first()

            if model:
                return self._to_domain(model)

            return None

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def upsert(self, subscription: Subscription) -> Subscription:
        """
        Create or update subscription by user_id.

        Uses PostgreSQL ``INSERT ... ON CONFLICT (user_id) DO UPDATE`` so
        the write is atomic. ``created_at`` is only set on insert, and the
        conflicting row is left untouched (``updated_at`` included) when no
        mirrored column would change.

        Args:
            subscription: Fully projected subscription

        Returns:
            The stored subscription
        """
        now = datetime.now(timezone.utc)

        values = {
            field: getattr(subscription, field) for field in MIRRORED_FIELDS
        }
        values.update(
            id=uuid4(),
            user_id=subscription.user_id,
            created_at=now,
            updated_at=now,
        )

        stmt = pg_insert(SubscriptionModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                **{field: getattr(stmt.excluded, field) for field in MIRRORED_FIELDS},
                "updated_at": now,
            },
            where=or_(*[
                getattr(SubscriptionModel, field).is_distinct_from(getattr(stmt.excluded, field))
                for field in MIRRORED_FIELDS
            ]),
        ).returning(SubscriptionModel)

        async with get_session_context() as session:
            result = await session.execute(stmt)
            model = result.scalars().first()

            # Skipped conflict update returns no row
            if model is None:
                existing = await session.execute(
                    select(SubscriptionModel).where(
                        SubscriptionModel.user_id == subscription.user_id
                    )
                )
                model = existing.scalars().one()

        logger.info(
            f"Upserted subscription {subscription.stripe_subscription_id} "
            f"for user {subscription.user_id} (status={subscription.status})"
        )
        return self._to_domain(model)

    async def apply_patch(
        self,
        user_id: str,
        patch: dict[str, Any],
    ) -> Optional[Subscription]:
        """
        Apply a partial update to the row owned by ``user_id``.

        Returns:
            Updated subscription, or None if the user has no row
        """
        return await self._patch_where(SubscriptionModel.user_id == user_id, patch)

    async def apply_patch_by_subscription_id(
        self,
        stripe_subscription_id: str,
        patch: dict[str, Any],
    ) -> Optional[Subscription]:
        """Apply a partial update to the row mirroring a Stripe subscription."""
        return await self._patch_where(
            SubscriptionModel.stripe_subscription_id == stripe_subscription_id,
            patch,
        )

    async def apply_patch_for_subscription(
        self,
        user_id: str,
        stripe_subscription_id: str,
        patch: dict[str, Any],
    ) -> Optional[Subscription]:
        """
        Apply a partial update to the user's row only while it still mirrors
        ``stripe_subscription_id``.

        Returns:
            Updated subscription, or None if the user has no row or the row
            now mirrors a different subscription
        """
        return await self._patch_where(
            and_(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.stripe_subscription_id == stripe_subscription_id,
            ),
            patch,
        )

    async def apply_patch_by_customer_id(
        self,
        stripe_customer_id: str,
        patch: dict[str, Any],
    ) -> Optional[Subscription]:
        """Apply a partial update to the row owned by a Stripe customer."""
        return await self._patch_where(
            SubscriptionModel.stripe_customer_id == stripe_customer_id,
            patch,
        )

    async def _patch_where(
        self,
        clause,
        patch: dict[str, Any],
    ) -> Optional[Subscription]:
        unknown = set(patch) - set(MIRRORED_FIELDS)
        if unknown:
            raise ValueError(f"Cannot patch non-mirrored fields: {sorted(unknown)}")

        stmt = (
            update(SubscriptionModel)
            .where(clause)
            .values(**patch, updated_at=datetime.now(timezone.utc))
            .returning(SubscriptionModel)
        )

        async with get_session_context() as session:
            result = await session.execute(stmt)
            model = result.scalars().first()

        if model is None:
            return None

        return self._to_domain(model)

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=model.user_id,
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            status=model.status,
            price_id=model.price_id,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            canceled_at=model.canceled_at,
            cancel_at=model.cancel_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# =============================================================================
# Singleton Instance
# =============================================================================

_subscription_repo_instance: Optional[SubscriptionRepository] = None


def get_subscription_repository() -> SubscriptionRepository:
    """Get or create subscription repository singleton."""
    global _subscription_repo_instance

    if _subscription_repo_instance is None:
        _subscription_repo_instance = SubscriptionRepository()

    return _subscription_repo_instance
