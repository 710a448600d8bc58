"""
Auth Infrastructure Module

Supabase identity operations (password sign-in, OAuth code exchange).
"""

from app.infrastructure.auth.identity_service import AuthSession, IdentityService

__all__ = ["AuthSession", "IdentityService"]
