"""
auth/tokens.py -- Password hashing, session tokens and the session cookie.

Security design decisions:
  Passwords: bcrypt, used directly. Its cost factor makes brute-force of
       low-entropy secrets expensive. _DUMMY_HASH lets the sign-in path run
       bcrypt even for unknown emails so response time does not reveal whether
       an account exists.

  Session tokens: secrets.token_urlsafe(32) is stored in the sessions table.
       The browser receives a python-jose HS256 JWT carrying that token as the
       "sid" claim plus user_id and expiry. Both must be valid: the JWT
       signature and exp, and a matching unexpired session row. Deleting the
       row (sign-out) revokes the cookie immediately.

  SECRET_KEY: sourced from core.config.get_settings(), which validates length
       and presence at startup.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings
from core.models import SESSION_COOKIE

logger = logging.getLogger("meetai.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


# bcrypt reads at most this many bytes of the password.
BCRYPT_MAX_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Sign-up refuses passwords over BCRYPT_MAX_BYTES in UTF-8 before calling
    this, so the slice below never drops anything a user typed.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Input longer than BCRYPT_MAX_BYTES never matches, even when its first
    BCRYPT_MAX_BYTES bytes do.
    """
    encoded = plain.encode("utf-8")
    try:
        matched = bcrypt.checkpw(encoded[:BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except ValueError:
        return False
    return matched and len(encoded) <= BCRYPT_MAX_BYTES


# Computed once at module load so the first sign-in attempt is not measurably
# slower than later ones.
DUMMY_HASH: str = hash_password("meetai_timing_dummy")


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    """Return a new opaque session token (256 bits of entropy)."""
    return secrets.token_urlsafe(32)


def session_expiry(expire_seconds: int = 0) -> datetime:
    """Return the absolute UTC expiry for a session issued now."""
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    return datetime.now(timezone.utc) + timedelta(seconds=duration)


def encode_session_cookie(session_token: str, user_id: int, expires_at: datetime) -> str:
    """Sign the session reference that the browser carries."""
    payload = {
        "sid": session_token,
        "user_id": user_id,
        "exp": expires_at,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_cookie(value: str) -> dict | None:
    """Verify a signed session cookie. Returns the payload dict or None on any failure.

    Returning None keeps callers simple: any invalid value is treated as
    "no session".
    """
    try:
        payload = jwt.decode(value, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "sid" not in payload or "user_id" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, value: str, expire_seconds: int = 0) -> None:
    """Write the signed session reference as an httpOnly cookie on the response.

    httponly=True: scripts cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the session expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    response.set_cookie(
        SESSION_COOKIE,
        value=value,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE)
