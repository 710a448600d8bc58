"""
Webhook Event Domain Models

Classification of verified Stripe events into the small set of event
types this application acts on. Anything else is acknowledged and ignored.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EventType(str, Enum):
    """Stripe event types that change local subscription state."""
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


@dataclass(frozen=True)
class WebhookEvent:
    """A recognized event, tagged by type, with its data object unwrapped."""
    event_type: EventType
    object: dict[str, Any] = field(default_factory=dict)
    event_id: Optional[str] = None

    @property
    def object_id(self) -> Optional[str]:
        return self.object.get("id")

    @property
    def idempotency_key(self) -> str:
        """Event id when present, otherwise ``type:object_id``."""
        if self.event_id:
            return self.event_id
        return f"{self.event_type.value}:{self.object_id}"


def extract_object(event: dict[str, Any]) -> dict[str, Any]:
    """
    Return the event's data object.

    Stripe nests it under ``data.object``; a flattened ``data`` payload is
    accepted as well.
    """
    data = event.get("data") or {}
    if not isinstance(data, dict):
        return {}

    inner = data.get("object")
    if isinstance(inner, dict):
        return inner
    return data


def classify_event(event: dict[str, Any]) -> Optional[WebhookEvent]:
    """
    Classify a verified event.

    Returns:
        WebhookEvent for recognized types, None for everything else.
        Unknown or future types are normal input, not errors.
    """
    try:
        event_type = EventType(event.get("type"))
    except ValueError:
        return None

    return WebhookEvent(
        event_type=event_type,
        object=extract_object(event),
        event_id=event.get("id"),
    )
