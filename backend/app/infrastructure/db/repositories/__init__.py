"""
Repository Layer for FinCharts AI

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)


__all__ = [
    "SubscriptionRepository",
    "get_subscription_repository",
]
