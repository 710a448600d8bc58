"""
Stripe Webhook Processor

Applies verified Stripe events to the local subscription store.

Flow per event:
    classify -> seen-cache check -> project -> persist -> mark seen

Events are only marked as seen after they were applied, so a failed
attempt is retried when Stripe redelivers it.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from app.config.settings import get_settings
from app.domain.subscription import Subscription
from app.domain.subscription_projection import (
    invoice_customer_id,
    invoice_subscription_id,
    project_deletion,
    project_payment_failure,
    project_subscription,
    resolve_user_id,
)
from app.domain.webhook_events import EventType, WebhookEvent, classify_event
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from app.infrastructure.exceptions import MissingCorrelationError
from app.infrastructure.payments.seen_events import SeenEventCache


logger = logging.getLogger(__name__)


class ProcessOutcome(str, Enum):
    """What happened to an event."""
    APPLIED = "applied"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    DROPPED = "dropped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebhookProcessor:
    """
    Dispatches recognized events to one handler per event type.

    Repository errors propagate to the caller; uncorrelatable events are
    logged and dropped.
    """

    def __init__(
        self,
        repo: SubscriptionRepository,
        seen_cache: Optional[SeenEventCache] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._repo = repo
        self._seen = seen_cache if seen_cache is not None else SeenEventCache()
        self._clock = clock
        self._handlers: dict[EventType, Callable[[WebhookEvent], Awaitable[bool]]] = {
            EventType.SUBSCRIPTION_CREATED: self._handle_subscription_upsert,
            EventType.SUBSCRIPTION_UPDATED: self._handle_subscription_upsert,
            EventType.SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            EventType.INVOICE_PAYMENT_FAILED: self._handle_payment_failed,
        }

    async def process(self, event: dict[str, Any]) -> ProcessOutcome:
        """
        Apply one verified event.

        Returns:
            ProcessOutcome describing the effect on the store
        """
        webhook_event = classify_event(event)
        if webhook_event is None:
            logger.debug(f"Ignoring unhandled event type: {event.get('type')}")
            return ProcessOutcome.IGNORED

        key = webhook_event.idempotency_key
        if self._seen.seen(key):
            logger.info(f"Event {key} already processed, skipping")
            return ProcessOutcome.DUPLICATE

        handler = self._handlers[webhook_event.event_type]
        try:
            applied = await handler(webhook_event)
        except MissingCorrelationError as e:
            logger.warning(f"Dropping {webhook_event.event_type.value}: {e.message}")
            self._seen.mark(key)
            return ProcessOutcome.DROPPED

        self._seen.mark(key)
        return ProcessOutcome.APPLIED if applied else ProcessOutcome.DROPPED

    # =========================================================================
    # Correlation
    # =========================================================================

    async def _resolve_user_id(self, webhook_event: WebhookEvent) -> str:
        """Metadata first, then the locally mirrored subscription id."""
        user_id = resolve_user_id(webhook_event.object)
        if user_id:
            return user_id

        subscription_id = webhook_event.object_id
        if subscription_id:
            existing = await self._repo.get_by_stripe_subscription_id(subscription_id)
            if existing:
                return existing.user_id

        raise MissingCorrelationError(webhook_event.event_type.value, subscription_id)

    # =========================================================================
    # Event Handlers
    # =========================================================================

    async def _handle_subscription_upsert(self, webhook_event: WebhookEvent) -> bool:
        """created/updated: project the whole row and upsert it by user_id."""
        user_id = await self._resolve_user_id(webhook_event)
        subscription: Subscription = project_subscription(webhook_event.object, user_id)
        await self._repo.upsert(subscription)

        logger.info(
            f"Synced {webhook_event.event_type.value} for user {user_id} "
            f"(status={subscription.status})"
        )
        return True

    async def _handle_subscription_deleted(self, webhook_event: WebhookEvent) -> bool:
        """
        deleted: soft-delete, keeping every other column as it was.

        Only the row still mirroring the deleted subscription is canceled; a
        late deletion of a user's previous subscription leaves the newer one
        alone.
        """
        patch = project_deletion(self._clock())
        user_id = resolve_user_id(webhook_event.object)
        subscription_id = webhook_event.object_id

        if user_id and subscription_id:
            updated = await self._repo.apply_patch_for_subscription(
                user_id, subscription_id, patch
            )
        elif user_id:
            updated = await self._repo.apply_patch(user_id, patch)
        elif subscription_id:
            updated = await self._repo.apply_patch_by_subscription_id(subscription_id, patch)
        else:
            raise MissingCorrelationError(webhook_event.event_type.value)

        if updated is None:
            logger.warning(
                f"No local row mirrors {subscription_id} for user {user_id}, "
                f"deletion ignored"
            )
            return False

        logger.info(f"Marked subscription canceled for user {updated.user_id}")
        return True

    async def _handle_payment_failed(self, webhook_event: WebhookEvent) -> bool:
        """invoice.payment_failed: flag the subscription as past_due."""
        invoice = webhook_event.object
        patch = project_payment_failure()
        subscription_id = invoice_subscription_id(invoice)
        customer_id = invoice_customer_id(invoice)

        if subscription_id:
            updated = await self._repo.apply_patch_by_subscription_id(subscription_id, patch)
        elif customer_id:
            updated = await self._repo.apply_patch_by_customer_id(customer_id, patch)
        else:
            raise MissingCorrelationError(webhook_event.event_type.value, invoice.get("id"))

        if updated is None:
            logger.warning(
                f"Payment failed for unknown subscription {subscription_id or customer_id}"
            )
            return False

        logger.warning(f"Payment failed for user {updated.user_id}, set to past_due")
        return True


# =============================================================================
# Background execution
# =============================================================================

def log_background_failure(event: dict[str, Any], error: Exception) -> None:
    """
    Error sink for events that failed after Stripe was acknowledged.

    Stripe will not redeliver these on its own, so the log line carries
    everything needed to replay the event from the Stripe dashboard.
    """
    logger.error(
        f"Background processing failed for event {event.get('id')} "
        f"({event.get('type')}): {error}",
        exc_info=error,
    )


async def process_in_background(processor: "WebhookProcessor", event: dict[str, Any]) -> None:
    """Run ``processor.process`` after the response, routing failures to the sink."""
    try:
        await processor.process(event)
    except Exception as e:
        log_background_failure(event, e)


# =============================================================================
# Singleton Instance
# =============================================================================

_webhook_processor_instance: Optional[WebhookProcessor] = None


def get_webhook_processor() -> WebhookProcessor:
    """Get or create the webhook processor singleton."""
    global _webhook_processor_instance

    if _webhook_processor_instance is None:
        settings = get_settings()
        _webhook_processor_instance = WebhookProcessor(
            repo=get_subscription_repository(),
            seen_cache=SeenEventCache(settings.webhook_seen_cache_size),
        )

    return _webhook_processor_instance
