"""
Authentication Routes

Email/password sign-in and the Google OAuth callback, both delegated to
Supabase Auth. Successful sign-ins leave the session tokens in HTTP-only
cookies that the API dependencies accept in place of a bearer header.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from app.api.dependencies import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from app.config.settings import get_settings
from app.infrastructure.auth.identity_service import (
    AuthSession,
    IdentityService,
    get_identity_service,
)
from app.infrastructure.exceptions import AuthenticationError


logger = logging.getLogger(__name__)

router = APIRouter()

# Cookie the browser client leaves behind when it starts a PKCE flow
CODE_VERIFIER_COOKIE = "sb-code-verifier"


# ============================================================================
# Request/Response Models
# ============================================================================

class LoginRequest(BaseModel):
    """Email/password credentials."""
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Session issued after a successful sign-in."""
    access_token: str
    refresh_token: str
    expires_in: Optional[int] = None
    user_id: str


# ============================================================================
# Helpers
# ============================================================================

def _set_session_cookies(response: Response, session: AuthSession) -> None:
    settings = get_settings()
    cookie_options = {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
    }
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        **cookie_options,
    )
    response.set_cookie(REFRESH_TOKEN_COOKIE, session.refresh_token, **cookie_options)


def _login_redirect(error: str, details: Optional[str] = None) -> RedirectResponse:
    url = f"{get_settings().app_url}/auth/login?error={error}"
    if details:
        url += f"&details={quote(details)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
):
    """
    Sign in with email and password.

    Raises:
        AuthenticationError (401): credentials rejected by Supabase
    """
    session = await identity.sign_in_with_password(body.email, body.password)
    _set_session_cookies(response, session)

    return LoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        user_id=session.user_id,
    )


@router.get("/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = None,
    identity: IdentityService = Depends(get_identity_service),
):
    """
    OAuth redirect target.

    Exchanges the authorization code for a session and redirects to the
    dashboard; any failure lands on the login page with an error code.
    """
    logger.info(f"Auth callback route hit (has_code={bool(code)})")

    if not code:
        return _login_redirect("no_code")

    try:
        session = await identity.exchange_code_for_session(
            code,
            code_verifier=request.cookies.get(CODE_VERIFIER_COOKIE),
        )
    except AuthenticationError as e:
        return _login_redirect("session_error", e.message)
    except Exception as e:
        logger.error(f"Callback route error: {e}")
        return _login_redirect("callback_error")

    redirect = RedirectResponse(
        f"{get_settings().app_url}/dashboard",
        status_code=status.HTTP_302_FOUND,
    )
    _set_session_cookies(redirect, session)
    redirect.delete_cookie(CODE_VERIFIER_COOKIE)
    return redirect


@router.post("/logout")
async def logout(response: Response):
    """Drop the session cookies."""
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    response.delete_cookie(REFRESH_TOKEN_COOKIE)
    return {"status": "signed_out"}
