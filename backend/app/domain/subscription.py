"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and the access predicate for the subscription bounded context.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status, as defined by Stripe."""
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    PAUSED = "paused"


# =============================================================================
# Domain Entities
# =============================================================================

class Subscription(BaseModel):
    """
    Local mirror of a Stripe subscription.

    One row per user. ``status`` is stored verbatim from Stripe, so it is
    kept as a plain string rather than coerced into ``SubscriptionStatus``.
    """
    id: Optional[str] = None
    user_id: str
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    status: str = SubscriptionStatus.INCOMPLETE.value
    price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    cancel_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CheckoutSessionRequest(BaseModel):
    """Request DTO for creating a checkout session."""
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionResponse(BaseModel):
    """Response DTO for checkout session creation."""
    session_id: str = Field(alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


class PortalSessionRequest(BaseModel):
    """Request DTO for creating a billing portal session."""
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class PortalSessionResponse(BaseModel):
    """Response DTO for portal session creation."""
    url: str


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for the subscription status check."""
    subscription: Optional[dict[str, Any]] = None
    is_active: bool = Field(alias="isActive")
    current_time: datetime = Field(alias="currentTime")
    user: dict[str, Any]

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Access Rules (Business Logic)
# =============================================================================

def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never raise."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_active(
    subscription: Optional[Subscription],
    now: Optional[datetime] = None,
) -> bool:
    """
    Check whether a subscription currently grants access to gated features.

    Access requires ``status == "active"`` and ``now < current_period_end``.
    ``cancel_at_period_end`` alone does not revoke access; the paid period
    still runs to its end.
    """
    if subscription is None or subscription.current_period_end is None:
        return False

    if subscription.status != SubscriptionStatus.ACTIVE.value:
        return False

    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return now < _as_utc(subscription.current_period_end)
