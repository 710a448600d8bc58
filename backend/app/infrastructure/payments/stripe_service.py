"""
Stripe Payment Service

Clean Architecture infrastructure service for Stripe payment processing.
Handles checkout sessions, billing portal and webhook verification.

- Hosted Checkout: card data never touches this application
- Customer Portal for subscription management
- Webhook signatures verified over the exact raw request bytes
"""

import asyncio
import json
import logging
from typing import Any, Optional
import stripe
from stripe import StripeError

from app.config.settings import get_settings


logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Base exception for Stripe service errors."""
    pass


class WebhookSignatureError(StripeServiceError):
    """Raised when an inbound webhook cannot be authenticated."""
    pass


class StripeService:
    """
    Stripe payment processing service.

    Credentials are held on the instance and passed per request, so the
    ``stripe`` module's global configuration is never mutated.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        price_id: Optional[str] = None,
        api_version: Optional[str] = None,
        webhook_tolerance: Optional[int] = None,
    ):
        """Initialize with explicit values, falling back to settings."""
        settings = get_settings()
        self._api_key = api_key or settings.stripe_secret_key
        self._webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self._price_id = price_id or settings.stripe_price_id
        self._api_version = api_version or settings.stripe_api_version
        self._webhook_tolerance = (
            webhook_tolerance
            if webhook_tolerance is not None
            else settings.stripe_webhook_tolerance
        )

    @property
    def _request_options(self) -> dict[str, Any]:
        return {"api_key": self._api_key, "stripe_version": self._api_version}

    # =========================================================================
    # Checkout Session
    # =========================================================================

    async def create_checkout_session(
        self,
        user_id: str,
        success_url: str,
        cancel_url: str,
    ) -> stripe.checkout.Session:
        """
        Create a Stripe Checkout Session for the monthly subscription.

        ``userId`` is written to both the session and the subscription
        metadata; webhook processing relies on the latter to find the
        local user.

        Args:
            user_id: Local user ID
            success_url: Redirect after successful payment
            cancel_url: Redirect after cancelled payment

        Returns:
            stripe.checkout.Session
        """
        if not self._price_id:
            raise StripeServiceError("No subscription price configured")

        try:
            session = await asyncio.to_thread(
                lambda: stripe.checkout.Session.create(
                    payment_method_types=["card"],
                    line_items=[
                        {
                            "price": self._price_id,
                            "quantity": 1,
                        }
                    ],
                    mode="subscription",
                    success_url=success_url,
                    cancel_url=cancel_url,
                    metadata={"userId": user_id},
                    subscription_data={
                        "metadata": {"userId": user_id},
                    },
                    allow_promotion_codes=True,
                    **self._request_options,
                )
            )

            logger.info(f"Created checkout session {session.id} for user {user_id}")
            return session

        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise StripeServiceError(f"Failed to create checkout: {e.user_message}")

    # =========================================================================
    # Customer Portal
    # =========================================================================

    async def create_portal_session(
        self,
        customer_id: str,
        return_url: str,
    ) -> stripe.billing_portal.Session:
        """
        Create a Billing Portal session for self-service management.

        Args:
            customer_id: Stripe customer ID
            return_url: URL to return to after portal session

        Returns:
            stripe.billing_portal.Session with portal URL
        """
        try:
            session = await asyncio.to_thread(
                lambda: stripe.billing_portal.Session.create(
                    customer=customer_id,
                    return_url=return_url,
                    **self._request_options,
                )
            )

            logger.info(f"Created portal session for customer {customer_id}")
            return session

        except StripeError as e:
            logger.error(f"Failed to create portal session: {e}")
            raise StripeServiceError(f"Failed to create portal: {e.user_message}")

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify a webhook signature and decode the event.

        The signature is checked against ``payload`` exactly as received;
        the body is only parsed after it has been authenticated.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            The event as a plain dict

        Raises:
            WebhookSignatureError: missing secret, bad signature, stale
                timestamp or undecodable body
        """
        if not self._webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WebhookSignatureError(f"Invalid payload encoding: {e}")

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self._webhook_secret,
                self._webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid signature: {e}")

        try:
            event = json.loads(body)
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}")

        if not isinstance(event, dict):
            raise WebhookSignatureError("Invalid payload: event is not an object")

        return event


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance
