"""
web/auth_client.py -- Process-wide handle to the auth API.

The web pages never touch the auth library directly. They go through
auth_client, constructed once at import and pointed at Settings.base_url:

    await auth_client.sign_in.email({"email": ..., "password": ...}, on_success=..., on_error=...)
    await auth_client.sign_up.email({"name": ..., "email": ..., "password": ...}, on_success=..., on_error=...)
    auth_client.sign_in.social(provider="github")           # -> browser URL
    await auth_client.sign_out(session_token=...)
    await auth_client.get_session(session_token=...)        # -> dict | None

Every request ends by calling exactly one of on_success / on_error, exactly
once. Non-2xx answers and transport failures both arrive at on_error as an
AuthClientError carrying the server's message; the facade does not classify
causes. Nothing is retried.

Calls are async (httpx.AsyncClient, one per call). The pages run on the event
loop and the API routes they call run in the worker pool, so a page waiting on
the API never holds a worker thread the API needs.

client_ip is forwarded as X-Forwarded-For so the sign-in rate limit counts the
browser, not this server (see api/limiter.py).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote, urlencode

import httpx

from core.config import get_settings
from core.models import SESSION_COOKIE

logger = logging.getLogger("meetai.client")

_TIMEOUT = 10  # seconds


class AuthClientError(Exception):
    """An error reported by the auth API (status > 0) or the transport (status 0)."""

    def __init__(self, message: str, status: int = 0, code: Optional[str] = None) -> None:
        self.message = message
        self.status = status
        self.code = code
        super().__init__(message)


@dataclass
class SuccessContext:
    data: Any
    response: Any


@dataclass
class ErrorContext:
    error: AuthClientError
    response: Any = None


SuccessCallback = Callable[[SuccessContext], None]
ErrorCallback = Callable[[ErrorContext], None]


def _error_from_response(response) -> AuthClientError:
    """Read the {"error": {"code", "message"}} envelope, falling back to the HTTP reason."""
    code = None
    message = f"Request failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
        message = body["error"].get("message") or message
    return AuthClientError(message, status=response.status_code, code=code)


class AuthClient:
    """Thin pass-through to the /api/auth endpoints at base_url.

    transport is handed to httpx.AsyncClient; tests pass httpx.MockTransport
    or httpx.ASGITransport(app=...) to stay in-process.
    """

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = _TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.sign_in = _SignIn(self)
        self.sign_up = _SignUp(self)

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict] = None,
        session_token: Optional[str] = None,
        client_ip: Optional[str] = None,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Any:
        """Issue one request and dispatch exactly one callback.

        Returns the decoded JSON body on success, None on failure.
        """
        headers = {"Accept": "application/json"}
        if session_token:
            headers["Cookie"] = f"{SESSION_COOKIE}={session_token}"
        if client_ip:
            headers["X-Forwarded-For"] = client_ip
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(method, url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Auth request %s %s failed: %s", method, path, exc)
            if on_error is not None:
                on_error(ErrorContext(error=AuthClientError("Unable to reach the authentication service.")))
            return None

        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.info("Auth request %s %s returned %d (%s)", method, path, response.status_code, error.code)
            if on_error is not None:
                on_error(ErrorContext(error=error, response=response))
            return None

        try:
            data = response.json()
        except ValueError:
            data = None
        if on_success is not None:
            on_success(SuccessContext(data=data, response=response))
        return data

    async def sign_out(
        self,
        session_token: Optional[str] = None,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Any:
        return await self._request(
            "POST", "/api/auth/sign-out", session_token=session_token, on_success=on_success, on_error=on_error
        )

    async def get_session(self, session_token: Optional[str] = None) -> Optional[dict]:
        """Return {"session", "user"} for the given cookie value, or None.

        No cookie means no session, so no request is made.
        """
        if not session_token:
            return None
        return await self._request("GET", "/api/auth/get-session", session_token=session_token)


class _SignIn:
    def __init__(self, client: AuthClient) -> None:
        self._client = client

    async def email(
        self,
        credentials: dict,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        client_ip: Optional[str] = None,
    ) -> Any:
        payload = {"email": credentials["email"], "password": credentials["password"]}
        return await self._client._request(
            "POST", "/api/auth/sign-in/email", payload, client_ip=client_ip, on_success=on_success, on_error=on_error
        )

    def social(self, provider: str, callback_url: str = "/", error_callback_url: str = "/sign-in") -> str:
        """Return the URL that starts the provider handshake in the browser.

        The handshake must run in the browser so the OAuth state lands in the
        user's own session cookie; the facade only builds the address.
        """
        query = urlencode({"callbackURL": callback_url, "errorCallbackURL": error_callback_url})
        return f"{self._client.base_url}/api/auth/sign-in/social/{quote(provider, safe='')}?{query}"


class _SignUp:
    def __init__(self, client: AuthClient) -> None:
        self._client = client

    async def email(
        self,
        credentials: dict,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        client_ip: Optional[str] = None,
    ) -> Any:
        payload = {
            "name": credentials["name"],
            "email": credentials["email"],
            "password": credentials["password"],
        }
        return await self._client._request(
            "POST", "/api/auth/sign-up/email", payload, client_ip=client_ip, on_success=on_success, on_error=on_error
        )


auth_client = AuthClient(base_url=get_settings().base_url)
