"""
Supabase Identity Service

Thin wrapper over Supabase Auth for email/password sign-in and the OAuth
(Google) authorization-code exchange. Sessions, users and OAuth state all
live in Supabase; nothing here persists them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from app.config.settings import get_settings
from app.infrastructure.exceptions import AuthenticationError, ConfigurationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """Tokens issued by Supabase for one signed-in user."""
    access_token: str
    refresh_token: str
    expires_in: Optional[int]
    user_id: str
    email: Optional[str] = None


class IdentityService:
    """
    Supabase Auth operations.

    Each call gets its own client: a Supabase client keeps the signed-in
    session on itself, and one user's session must never be visible to
    another request.
    """

    def __init__(self, supabase_url: Optional[str] = None, anon_key: Optional[str] = None):
        settings = get_settings()
        self._supabase_url = supabase_url or settings.supabase_url
        self._anon_key = anon_key or settings.supabase_anon_key

    def _new_client(self) -> Client:
        if not self._anon_key:
            raise ConfigurationError(
                "Missing SUPABASE_ANON_KEY environment variable",
                missing_keys=["SUPABASE_ANON_KEY"],
            )
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            flow_type="pkce",
        )
        return create_client(self._supabase_url, self._anon_key, options)

    @staticmethod
    def _to_session(response) -> AuthSession:
        session = getattr(response, "session", None)
        if session is None:
            raise AuthenticationError("Identity provider returned no session")

        user = getattr(session, "user", None) or getattr(response, "user", None)
        if user is None or not user.id:
            raise AuthenticationError("Identity provider returned a session without a user")

        return AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
            user_id=user.id,
            email=user.email,
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Sign a user in with email and password.

        Raises:
            AuthenticationError: credentials rejected
        """
        client = self._new_client()
        try:
            response = await asyncio.to_thread(
                lambda: client.auth.sign_in_with_password(
                    {"email": email, "password": password}
                )
            )
        except Exception as e:
            logger.warning(f"Password sign-in failed for {email}: {e}")
            raise AuthenticationError("Invalid email or password", original_error=e)

        session = self._to_session(response)
        logger.info(f"User {session.user_id} signed in with password")
        return session

    async def exchange_code_for_session(
        self,
        code: str,
        code_verifier: Optional[str] = None,
    ) -> AuthSession:
        """
        Exchange an OAuth authorization code for a session.

        Raises:
            AuthenticationError: code invalid, expired or already used
        """
        client = self._new_client()
        params = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier

        try:
            response = await asyncio.to_thread(
                lambda: client.auth.exchange_code_for_session(params)
            )
        except Exception as e:
            logger.error(f"Error exchanging code for session: {e}")
            raise AuthenticationError(str(e), original_error=e)

        session = self._to_session(response)
        logger.info(f"Session created for user {session.user_id} via OAuth callback")
        return session


# =============================================================================
# Singleton Instance
# =============================================================================

_identity_service_instance: Optional[IdentityService] = None


def get_identity_service() -> IdentityService:
    """Get or create identity service singleton."""
    global _identity_service_instance

    if _identity_service_instance is None:
        _identity_service_instance = IdentityService()

    return _identity_service_instance
