"""
Subscription API Routes

Checkout, billing portal and subscription status endpoints.
Card data and subscription management stay on Stripe-hosted pages.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.config.settings import get_settings
from app.domain.subscription import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    SubscriptionStatusResponse,
    is_subscription_active,
)
from app.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    get_stripe_service,
)
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from app.api.dependencies import get_current_user_id, get_optional_user_id


logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_same_user(requested_user_id: str, token_user_id: Optional[str]) -> None:
    """A signed-in caller may only act for themselves."""
    if token_user_id and token_user_id != requested_user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on behalf of another user",
        )


# =============================================================================
# Checkout Endpoints
# =============================================================================

@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    response_model_by_alias=True,
)
async def create_checkout_session(
    body: CheckoutSessionRequest,
    request: Request,
    token_user_id: Optional[str] = Depends(get_optional_user_id),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Create a Stripe Checkout session for the subscription.

    Returns the session id for a client-side redirect to Stripe Checkout;
    the subscription itself arrives later through the webhook.
    """
    if not body.user_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "User ID is required"},
        )

    _ensure_same_user(body.user_id, token_user_id)

    # Origin header supports multiple environments
    origin = request.headers.get("origin") or get_settings().app_url

    try:
        session = await stripe_service.create_checkout_session(
            user_id=body.user_id,
            success_url=f"{origin}/dashboard?success=true",
            cancel_url=f"{origin}/dashboard?canceled=true",
        )
    except StripeServiceError as e:
        logger.error(f"Stripe session creation error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to create checkout session"},
        )

    return CheckoutSessionResponse(session_id=session.id)


# =============================================================================
# Portal Endpoints
# =============================================================================

@router.post("/create-portal-session", response_model=PortalSessionResponse)
async def create_portal_session(
    body: PortalSessionRequest,
    token_user_id: Optional[str] = Depends(get_optional_user_id),
    stripe_service: StripeService = Depends(get_stripe_service),
    repo: SubscriptionRepository = Depends(get_subscription_repository),
):
    """
    Create a Stripe Customer Portal session.

    Allows customers to:
    - Update payment method
    - Cancel subscription
    - View invoices
    """
    if not body.user_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "User ID is required"},
        )

    _ensure_same_user(body.user_id, token_user_id)

    try:
        subscription = await repo.get_by_user_id(body.user_id)

        if not subscription or not subscription.stripe_customer_id:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "No subscription found"},
            )

        session = await stripe_service.create_portal_session(
            customer_id=subscription.stripe_customer_id,
            return_url=f"{get_settings().app_url}/dashboard",
        )

    except Exception as e:
        logger.error(f"Portal session error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    return PortalSessionResponse(url=session.url)


# =============================================================================
# Status Endpoints
# =============================================================================

@router.get(
    "/subscription-status",
    response_model=SubscriptionStatusResponse,
    response_model_by_alias=True,
)
async def get_subscription_status(
    user_id: str = Depends(get_current_user_id),
    repo: SubscriptionRepository = Depends(get_subscription_repository),
):
    """
    Get the current user's subscription and whether it grants access.
    """
    try:
        subscription = await repo.get_by_user_id(user_id)
    except Exception as e:
        logger.error(f"Subscription query error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch subscription"},
        )

    now = datetime.now(timezone.utc)
    return SubscriptionStatusResponse(
        subscription=subscription.model_dump(mode="json") if subscription else None,
        is_active=is_subscription_active(subscription, now),
        current_time=now,
        user={"id": user_id},
    )
