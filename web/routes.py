"""
web/routes.py -- Jinja2 template routes for the meetai web UI.

These routes serve server-rendered HTML. Every auth operation goes through
web.auth_client.auth_client; this module never imports the auth store or
service, only the cookie helpers and the Origin check.

Submit flow (both forms):
  1. Validate the form locally (web/forms.py). Invalid -> re-render with the
     field messages, no request issued.
  2. Call the facade with on_success / on_error. Exactly one fires.
  3. on_success -> 303 to "/" with the session cookie.
     on_error   -> re-render with the server's message in an alert.
  The password is never echoed back into the re-rendered form.

Handlers are async: the facade awaits the auth API, whose routes run in the
worker pool. Every POST carries the same Origin check as the JSON API.

Routes:
  GET  /                   -- landing page, gated on the session
  GET  /sign-in            -- sign-in form
  POST /sign-in            -- handle sign-in
  GET  /sign-up            -- sign-up form
  POST /sign-up            -- handle sign-up
  POST /social/{provider}  -- start social sign-in
  POST /sign-out           -- end the session, redirect to /sign-in
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from auth.dependencies import check_origin
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import get_settings
from core.models import SESSION_COOKIE, SOCIAL_PROVIDERS
from web.auth_client import ErrorContext, SuccessContext, auth_client
from web.forms import SignInForm, SignUpForm, field_errors

logger = logging.getLogger("meetai.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals["social_providers"] = SOCIAL_PROVIDERS
router = APIRouter()

# Whitelist for ?error= on the auth pages. The raw query value is never
# rendered, only the message from this dict.
_ERROR_MESSAGES: dict[str, str] = {
    "oauth_failed": "Social sign-in failed. Please try again.",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=None)
def _announce_page(name: str) -> None:
    """Log a page shell the first time it is served in this process."""
    logger.info("%s page", name)


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _signed_in_redirect(data: Optional[dict]) -> RedirectResponse:
    """303 to the landing page, carrying the session issued by the auth API."""
    resp = RedirectResponse("/", status_code=303)
    token = (data or {}).get("token")
    if token:
        set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _render_sign_in(
    request: Request,
    form_data: Optional[dict] = None,
    errors: Optional[dict] = None,
    alert: Optional[str] = None,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "sign_in.html",
        {
            "form_data": form_data or {},
            "errors": errors or {},
            "alert": alert,
        },
    )


def _render_sign_up(
    request: Request,
    form_data: Optional[dict] = None,
    errors: Optional[dict] = None,
    alert: Optional[str] = None,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "sign_up.html",
        {
            "form_data": form_data or {},
            "errors": errors or {},
            "alert": alert,
        },
    )


# ---------------------------------------------------------------------------
# GET / -- landing page
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
async def home(request: Request) -> HTMLResponse:
    """Show the signed-in user with a sign-out button, or links to the auth pages."""
    current = await auth_client.get_session(session_token=request.cookies.get(SESSION_COOKIE))
    user = current.get("user") if current else None
    return templates.TemplateResponse(request, "home.html", {"user": user})


# ---------------------------------------------------------------------------
# Sign in
# ---------------------------------------------------------------------------


@router.get("/sign-in", response_class=HTMLResponse)
async def sign_in_page(request: Request) -> HTMLResponse:
    _announce_page("Sign In")
    alert = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return _render_sign_in(request, alert=alert)


@router.post("/sign-in", response_class=HTMLResponse, dependencies=[Depends(check_origin)])
async def sign_in_submit(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
) -> HTMLResponse:
    """Validate, then sign in through the auth client."""
    form_data = {"email": email}
    try:
        form = SignInForm(email=email, password=password)
    except ValidationError as exc:
        return _render_sign_in(request, form_data, errors=field_errors(exc))

    result: dict = {}

    def on_success(ctx: SuccessContext) -> None:
        result["response"] = _signed_in_redirect(ctx.data)

    def on_error(ctx: ErrorContext) -> None:
        result["response"] = _render_sign_in(request, form_data, alert=ctx.error.message)

    await auth_client.sign_in.email(
        form.credentials(), on_success=on_success, on_error=on_error, client_ip=_client_ip(request)
    )
    return result.get("response") or _render_sign_in(request, form_data)


# ---------------------------------------------------------------------------
# Sign up
# ---------------------------------------------------------------------------


@router.get("/sign-up", response_class=HTMLResponse)
async def sign_up_page(request: Request) -> HTMLResponse:
    _announce_page("Sign Up")
    alert = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return _render_sign_up(request, alert=alert)


@router.post("/sign-up", response_class=HTMLResponse, dependencies=[Depends(check_origin)])
async def sign_up_submit(
    request: Request,
    name: str = Form(default=""),
    email: str = Form(default=""),
    password: str = Form(default=""),
    confirm_password: str = Form(default=""),
) -> HTMLResponse:
    """Validate every field, then register through the auth client."""
    form_data = {"name": name, "email": email}
    try:
        form = SignUpForm(name=name, email=email, password=password, confirm_password=confirm_password)
    except ValidationError as exc:
        return _render_sign_up(request, form_data, errors=field_errors(exc))

    result: dict = {}

    def on_success(ctx: SuccessContext) -> None:
        result["response"] = _signed_in_redirect(ctx.data)

    def on_error(ctx: ErrorContext) -> None:
        result["response"] = _render_sign_up(request, form_data, alert=ctx.error.message)

    await auth_client.sign_up.email(
        form.credentials(), on_success=on_success, on_error=on_error, client_ip=_client_ip(request)
    )
    return result.get("response") or _render_sign_up(request, form_data)


# ---------------------------------------------------------------------------
# Social sign-in and sign-out
# ---------------------------------------------------------------------------


@router.post("/social/{provider}", dependencies=[Depends(check_origin)])
async def social_sign_in(request: Request, provider: str) -> RedirectResponse:
    """Hand the browser to the provider flow.

    A provider without credentials lands back on the sign-in page with the
    social error message instead of the auth API's 404.
    """
    enabled = {p["name"] for p in get_settings().enabled_social_providers()}
    if provider not in enabled:
        logger.info("Social sign-in requested for unavailable provider %r", provider)
        return RedirectResponse("/sign-in?error=oauth_failed", status_code=303)
    return RedirectResponse(auth_client.sign_in.social(provider=provider, callback_url="/"), status_code=303)


@router.post("/sign-out", dependencies=[Depends(check_origin)])
async def sign_out(request: Request) -> RedirectResponse:
    """End the session and return to the sign-in page. The cookie is cleared either way."""
    await auth_client.sign_out(session_token=request.cookies.get(SESSION_COOKIE))
    resp = RedirectResponse("/sign-in", status_code=303)
    clear_auth_cookie(resp)
    return resp
