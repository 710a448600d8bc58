"""
Payments Infrastructure Module

Stripe payment processing and webhook synchronization services.
"""

from app.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    WebhookSignatureError,
)

__all__ = ["StripeService", "StripeServiceError", "WebhookSignatureError"]
