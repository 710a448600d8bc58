"""
Subscription Database Model

SQLModel table for subscription data persistence.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionModel(SQLModel, table=True):
    """
    Subscription table for storing user subscription data.

    Maps to the 'subscriptions' table in PostgreSQL. ``user_id`` is the
    conflict key for upserts, so each user has at most one row.
    """

    __tablename__ = "subscriptions"

    id: UUID = Field(default_factory=uuid4, sa_column=Column(PGUUID(as_uuid=True), primary_key=True))
    user_id: str = Field(sa_column=Column(String(255), unique=True, index=True, nullable=False))

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, index=True)

    # Subscription details
    status: str = Field(default="incomplete")
    price_id: Optional[str] = Field(default=None)

    # Billing period dates
    current_period_start: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    current_period_end: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )

    # Cancellation markers
    cancel_at_period_end: bool = Field(default=False)
    canceled_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    cancel_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )

    # Timestamps
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
