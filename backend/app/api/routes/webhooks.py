"""
Stripe Webhook Handler

Receives Stripe subscription lifecycle events.

Two phases:
1. Signature verification over the raw body. Synchronous; a failure is
   answered with 400 and nothing is processed.
2. Projection and persistence. Runs after the 200 acknowledgment in
   ``background`` mode, or before it in ``inline`` mode.

Stripe delivers at least once, so duplicates are routine input.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse

from app.config.settings import get_settings
from app.infrastructure.payments.stripe_service import (
    StripeService,
    WebhookSignatureError,
    get_stripe_service,
)
from app.infrastructure.payments.webhook_processor import (
    WebhookProcessor,
    get_webhook_processor,
    process_in_background,
)


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_service: StripeService = Depends(get_stripe_service),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Handle Stripe webhook events.

    Returns ``{"received": true}`` once the signature checks out, even when
    the event type is not one this application acts on.
    """
    # Raw bytes: re-serialized JSON would not match the signature
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        logger.warning("Webhook request without Stripe-Signature header")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No signature"},
        )

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except WebhookSignatureError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid signature"},
        )

    logger.info(f"Received webhook event: {event.get('type')} ({event.get('id')})")

    if get_settings().webhook_processing_mode == "inline":
        try:
            await processor.process(event)
        except Exception as e:
            logger.exception(f"Error processing webhook {event.get('type')}: {e}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Webhook processing failed"},
            )
    else:
        background_tasks.add_task(process_in_background, processor, event)

    return {"received": True}


@router.get("/stripe-webhook")
async def stripe_webhook_get():
    """Webhooks are POST-only."""
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": "Method not allowed"},
    )
