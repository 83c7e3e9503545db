"""
auth/dependencies.py -- FastAPI request helpers for session authentication.

Two places can carry the signed session reference, checked in order:
  1. The "session_token" cookie -- set by the sign-in/sign-up responses.
  2. Authorization: Bearer <value> header -- non-browser clients.

try_get_current_session() never raises: a missing or invalid session is None.

check_origin() guards every state-changing POST, both the JSON API and the
HTML form handlers, against cross-site submissions.

Layer rule: no imports from api/ or web/. fastapi is allowed because this
module is part of the dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import Session, User
from auth.service import get_session
from core.config import get_settings
from core.models import SESSION_COOKIE

logger = logging.getLogger("meetai.auth")


def check_origin(request: Request) -> None:
    """Reject cross-site browser POSTs from origins outside TRUSTED_ORIGINS.

    Requests without an Origin header (server-side callers such as the auth
    client facade, curl) pass; browsers always send one on POST.

    Raises:
        HTTPException: 403 INVALID_ORIGIN for an untrusted Origin.
    """
    origin = request.headers.get("origin")
    if origin is None:
        return
    settings = get_settings()
    trusted = {o.rstrip("/") for o in settings.trusted_origins} | {settings.base_url}
    if origin.rstrip("/") not in trusted:
        logger.warning("Rejected %s %s from untrusted origin %r", request.method, request.url.path, origin)
        raise HTTPException(
            status_code=403,
            detail={"code": "INVALID_ORIGIN", "message": "Invalid origin"},
        )


def session_cookie_value(request: Request) -> str | None:
    """Return the signed session reference from the cookie or Bearer header, if any."""
    value: str | None = request.cookies.get(SESSION_COOKIE)
    if not value:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            value = auth_header[7:]
    return value or None


def try_get_current_session(request: Request) -> tuple[Session, User] | None:
    """Resolve the request's session, or None when signed out."""
    return get_session(request.app.state.auth_store, session_cookie_value(request))
