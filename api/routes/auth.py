"""
api/routes/auth.py -- HTTP surface of the auth library, mounted at /api/auth.

Routes:
  POST /api/auth/sign-up/email             -- register, set session cookie
  POST /api/auth/sign-in/email             -- password sign-in, set session cookie
  POST /api/auth/sign-out                  -- revoke session, clear cookie
  GET  /api/auth/get-session               -- {session, user} or null
  GET  /api/auth/providers                 -- configured social providers
  GET  /api/auth/sign-in/social/{provider} -- browser redirect to the provider
  GET  /api/auth/callback/{provider}       -- provider callback, set session cookie

Every rule lives in auth/service.py; these handlers translate HTTP to calls
and AuthError to the error envelope (see the AuthError handler in api/main.py).

Security:
  POST /sign-in/email is rate-limited per client address (SIGN_IN_RATE_LIMIT,
  see api/limiter.py).
  State-changing POSTs reject a browser Origin that is not in TRUSTED_ORIGINS.
  Cache-Control: no-store on every response that carries a session cookie.
  Social callback targets are relative paths only (open redirect guard).
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import client_address, limiter, sign_in_limit
from api.models import (
    AuthResponse,
    GetSessionResponse,
    ProviderInfo,
    SessionResponse,
    SignInRequest,
    SignOutResponse,
    SignUpRequest,
    UserResponse,
)
from auth.dependencies import check_origin, session_cookie_value, try_get_current_session
from auth.oauth import get_enabled_providers, get_oauth_user_info
from auth.service import AuthError, IssuedSession, sign_in_email, sign_in_social, sign_out, sign_up_email
from auth.store import AuthStore
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("meetai.api.auth")

_settings = get_settings()

router = APIRouter()

_CALLBACK_KEY = "auth_callback_url"
_ERROR_CALLBACK_KEY = "auth_error_callback_url"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_path(url: Optional[str], default: str) -> str:
    """Accept only server-local paths: "/x" but not "//host" or "https://host"."""
    if url and url.startswith("/") and not url.startswith("//"):
        return url
    return default


def _with_error(url: str, code: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}error={code}"


def _client_meta(request: Request) -> tuple[Optional[str], Optional[str]]:
    return client_address(request), request.headers.get("user-agent")


def _auth_response(issued: IssuedSession) -> JSONResponse:
    resp = JSONResponse(
        content=AuthResponse(
            token=issued.cookie_value,
            user=UserResponse.from_user(issued.user),
        ).model_dump(),
    )
    set_auth_cookie(resp, issued.cookie_value)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------


@router.post("/sign-up/email", response_model=AuthResponse, dependencies=[Depends(check_origin)])
def sign_up(request: Request, body: SignUpRequest) -> JSONResponse:
    """Create a user with a credential account and start a session."""
    store: AuthStore = request.app.state.auth_store
    ip, user_agent = _client_meta(request)
    issued = sign_up_email(store, body.name, body.email, body.password, ip, user_agent)
    return _auth_response(issued)


@router.post("/sign-in/email", response_model=AuthResponse, dependencies=[Depends(check_origin)])
@limiter.limit(sign_in_limit)
def sign_in(request: Request, body: SignInRequest) -> JSONResponse:
    """Check email and password and start a session.

    Unknown email and wrong password produce the same INVALID_EMAIL_OR_PASSWORD
    error so the response does not reveal which emails are registered.
    """
    store: AuthStore = request.app.state.auth_store
    ip, user_agent = _client_meta(request)
    issued = sign_in_email(store, body.email, body.password, ip, user_agent)
    return _auth_response(issued)


@router.post("/sign-out", response_model=SignOutResponse, dependencies=[Depends(check_origin)])
def sign_out_route(request: Request) -> JSONResponse:
    """Revoke the current session (if any) and clear the cookie. Always succeeds."""
    store: AuthStore = request.app.state.auth_store
    sign_out(store, session_cookie_value(request))
    resp = JSONResponse(content=SignOutResponse().model_dump())
    clear_auth_cookie(resp)
    return resp


@router.get("/get-session", response_model=Optional[GetSessionResponse])
def get_session_route(request: Request) -> Optional[GetSessionResponse]:
    """Return the current session and user, or null when signed out."""
    current = try_get_current_session(request)
    if current is None:
        return None
    session, user = current
    return GetSessionResponse(
        session=SessionResponse.from_session(session),
        user=UserResponse.from_user(user),
    )


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------


@router.get("/providers", response_model=list[ProviderInfo])
async def list_providers() -> list[ProviderInfo]:
    """Return the configured social providers. Empty when none are set up."""
    return [ProviderInfo(**p) for p in get_enabled_providers()]


@router.get("/sign-in/social/{provider}")
async def social_sign_in(
    request: Request,
    provider: str,
    callbackURL: str = "/",  # noqa: N803 -- public query parameter name
    errorCallbackURL: str = "/sign-in",  # noqa: N803
) -> RedirectResponse:
    """Redirect the browser to the provider's authorization page.

    The success and error targets are kept in the Starlette session until the
    callback, next to authlib's OAuth state.
    """
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        raise HTTPException(
            status_code=404,
            detail={"code": "PROVIDER_NOT_FOUND", "message": f"Provider {provider!r} is not configured."},
        )

    request.session[_CALLBACK_KEY] = _safe_path(callbackURL, "/")
    request.session[_ERROR_CALLBACK_KEY] = _safe_path(errorCallbackURL, "/sign-in")
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = f"{_settings.base_url}/api/auth/callback/{provider}"
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/callback/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish the provider handshake and start a session.

    Flow:
      1. Exchange the authorization code (authlib checks the state).
      2. Extract the verified identity -- ValueError if unverified,
         httpx.HTTPError if the provider API fails.
      3. sign_in_social(): returning account, link by email, or new user.
      4. Set cookie, redirect to the stored callback path.
    Any failure redirects to the stored error path with ?error=oauth_failed.
    """
    callback_url = _safe_path(request.session.pop(_CALLBACK_KEY, None), "/")
    error_url = _with_error(_safe_path(request.session.pop(_ERROR_CALLBACK_KEY, None), "/sign-in"), "oauth_failed")

    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        return RedirectResponse(error_url, status_code=302)

    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return RedirectResponse(error_url, status_code=302)

    try:
        info = await get_oauth_user_info(client, provider, token)
    except ValueError:
        logger.warning("Social sign-in rejected: unverified or missing email from %r", provider)
        return RedirectResponse(error_url, status_code=302)
    except httpx.HTTPError as exc:
        logger.warning("Profile lookup failed for provider %r: %s", provider, exc)
        return RedirectResponse(error_url, status_code=302)

    store: AuthStore = request.app.state.auth_store
    ip, user_agent = _client_meta(request)
    try:
        issued = sign_in_social(
            store,
            provider,
            info["subject"],
            info["email"],
            name=info.get("name"),
            image=info.get("image"),
            ip_address=ip,
            user_agent=user_agent,
        )
    except AuthError as exc:
        logger.warning("Social sign-in failed for %r: %s", provider, exc.code)
        return RedirectResponse(error_url, status_code=302)

    resp = RedirectResponse(callback_url, status_code=302)
    set_auth_cookie(resp, issued.cookie_value)
    resp.headers["Cache-Control"] = "no-store"
    return resp
