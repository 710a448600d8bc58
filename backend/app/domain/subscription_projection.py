"""
Subscription Projection

Maps Stripe subscription and invoice objects onto the local subscription
row. Pure functions: no I/O, no clock unless one is passed in.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from app.domain.subscription import Subscription, SubscriptionStatus


USER_ID_METADATA_KEYS = ("userId", "user_id")


def from_epoch(value: Optional[float]) -> Optional[datetime]:
    """Convert Stripe epoch seconds to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def resolve_user_id(stripe_object: dict[str, Any]) -> Optional[str]:
    """
    Read the local user id from the object's metadata.

    The Stripe customer id is deliberately NOT used as a stand-in: the two
    ids live in different namespaces.
    """
    metadata = stripe_object.get("metadata") or {}
    for key in USER_ID_METADATA_KEYS:
        value = metadata.get(key)
        if value:
            return str(value)
    return None


def _first_item(stripe_object: dict[str, Any]) -> dict[str, Any]:
    items = (stripe_object.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _price_id(stripe_object: dict[str, Any]) -> Optional[str]:
    item = _first_item(stripe_object)
    price = item.get("price") or stripe_object.get("plan") or {}
    if isinstance(price, str):
        return price
    return price.get("id")


def _period_bound(stripe_object: dict[str, Any], key: str) -> Optional[datetime]:
    # Newer API versions only carry period bounds on subscription items
    value = stripe_object.get(key)
    if value is None:
        value = _first_item(stripe_object).get(key)
    return from_epoch(value)


def _customer_id(stripe_object: dict[str, Any]) -> Optional[str]:
    customer = stripe_object.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer


def project_subscription(stripe_object: dict[str, Any], user_id: str) -> Subscription:
    """
    Build the full local row for a created/updated subscription event.

    Args:
        stripe_object: Stripe subscription object
        user_id: Resolved local user id

    Returns:
        Subscription ready for upsert
    """
    return Subscription(
        user_id=user_id,
        stripe_customer_id=_customer_id(stripe_object),
        stripe_subscription_id=stripe_object.get("id"),
        status=stripe_object.get("status") or SubscriptionStatus.INCOMPLETE.value,
        price_id=_price_id(stripe_object),
        current_period_start=_period_bound(stripe_object, "current_period_start"),
        current_period_end=_period_bound(stripe_object, "current_period_end"),
        cancel_at_period_end=bool(stripe_object.get("cancel_at_period_end", False)),
        canceled_at=from_epoch(stripe_object.get("canceled_at")),
        cancel_at=from_epoch(stripe_object.get("cancel_at")),
    )


def project_deletion(now: datetime) -> dict[str, Any]:
    """Soft-delete patch: the row stays, only status and canceled_at change."""
    return {
        "status": SubscriptionStatus.CANCELED.value,
        "canceled_at": now,
    }


def project_payment_failure() -> dict[str, Any]:
    """Patch for a failed renewal payment."""
    return {"status": SubscriptionStatus.PAST_DUE.value}


def invoice_subscription_id(invoice: dict[str, Any]) -> Optional[str]:
    """Subscription id an invoice belongs to, across API versions."""
    subscription = invoice.get("subscription")
    if isinstance(subscription, dict):
        return subscription.get("id")
    if subscription:
        return subscription

    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return details.get("subscription")


def invoice_customer_id(invoice: dict[str, Any]) -> Optional[str]:
    return _customer_id(invoice)
