# API Routes Module
from app.api.routes import (
    auth,
    finance,
    subscriptions,
    webhooks,
)

__all__ = [
    "auth",
    "finance",
    "subscriptions",
    "webhooks",
]
