"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and api/routes/auth.py (to
apply per-route limits with @limiter.limit()). A single shared instance keeps
one in-memory counter store; separate instances would never trigger.

Limits are keyed by client address. The web pages reach the API from the
server itself and pass the browser's address in X-Forwarded-For; that header
is honoured only from a peer listed in TRUSTED_PROXIES, so other callers
cannot pick their own bucket.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from core.config import get_settings


def client_address(request: Request) -> str:
    """Return the address a request is rate-limited under."""
    peer = get_remote_address(request)
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in get_settings().trusted_proxies:
        return forwarded.split(",")[0].strip() or peer
    return peer


def sign_in_limit() -> str:
    """Current SIGN_IN_RATE_LIMIT, read per request."""
    return get_settings().sign_in_rate_limit


limiter = Limiter(key_func=client_address, storage_uri="memory://")
