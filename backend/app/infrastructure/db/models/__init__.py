"""
SQLModel ORM Models for FinCharts AI

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.subscription import SubscriptionModel


__all__ = [
    "SubscriptionModel",
]
