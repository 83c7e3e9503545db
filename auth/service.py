"""
auth/service.py -- Sign-up, sign-in, sign-out and session lookup.

This is the auth library proper: the api/ layer exposes these operations over
HTTP and never re-implements any of their rules.

Every failure is raised as AuthError carrying a stable code, the message shown
to the user verbatim, and the HTTP status the API should answer with. Success
returns an IssuedSession holding the signed cookie value for the browser.

Security:
  sign_in_email() always runs bcrypt, against DUMMY_HASH when the email is
  unknown or the user has no password, so response time does not reveal
  which emails are registered. Wrong email and wrong password produce the
  same error.

  sign_in_social() only receives emails the provider has verified
  (auth/oauth.py enforces that), which is what makes linking a social account
  to an existing user by email safe.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.models import Account, Session, User
from auth.store import AuthStore
from auth.tokens import (
    BCRYPT_MAX_BYTES,
    DUMMY_HASH,
    decode_session_cookie,
    encode_session_cookie,
    generate_session_token,
    hash_password,
    session_expiry,
    verify_password,
)
from core.models import MAX_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH

logger = logging.getLogger("meetai.auth")

# code -> (message, HTTP status)
ERROR_CODES: dict[str, tuple[str, int]] = {
    "USER_ALREADY_EXISTS": ("User already exists", 422),
    "INVALID_EMAIL_OR_PASSWORD": ("Invalid email or password", 401),
    "PASSWORD_TOO_SHORT": ("Password too short", 400),
    "PASSWORD_TOO_LONG": ("Password too long", 400),
    "FAILED_TO_CREATE_USER": ("Failed to create user", 422),
    "FAILED_TO_CREATE_SESSION": ("Failed to create session", 500),
}


class AuthError(Exception):
    """A sign-in/sign-up failure the user can act on."""

    def __init__(self, code: str, message: str | None = None, status_code: int | None = None) -> None:
        default_message, default_status = ERROR_CODES.get(code, (code, 400))
        self.code = code
        self.message = message or default_message
        self.status_code = status_code or default_status
        super().__init__(self.message)


@dataclass
class IssuedSession:
    user: User
    session: Session
    cookie_value: str  # signed JWT for the session cookie


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_password_length(password: str) -> None:
    """Characters are capped at MAX_PASSWORD_LENGTH, UTF-8 bytes at bcrypt's limit."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError("PASSWORD_TOO_SHORT")
    if len(password) > MAX_PASSWORD_LENGTH or len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise AuthError("PASSWORD_TOO_LONG")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def issue_session(
    store: AuthStore,
    user: User,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    """Create a session row for user and sign the cookie that references it."""
    expires_at = session_expiry()
    session = Session(
        user_id=user.id,
        token=generate_session_token(),
        expires_at=expires_at.isoformat(),
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    try:
        session.id = store.create_session(session)
    except IntegrityError as exc:
        raise AuthError("FAILED_TO_CREATE_SESSION") from exc
    cookie_value = encode_session_cookie(session.token, user.id, expires_at)
    return IssuedSession(user=user, session=session, cookie_value=cookie_value)


def get_session(store: AuthStore, cookie_value: str | None) -> tuple[Session, User] | None:
    """Resolve a session cookie to its (Session, User). Returns None if absent or invalid.

    The cookie must verify, its session row must exist and be unexpired, and
    the row must belong to the user named in the cookie.
    """
    if not cookie_value:
        return None
    payload = decode_session_cookie(cookie_value)
    if payload is None:
        return None
    session = store.get_session_by_token(payload["sid"])
    if session is None or session.user_id != payload["user_id"]:
        return None
    if datetime.fromisoformat(session.expires_at) <= datetime.now(timezone.utc):
        store.delete_session(session.token)
        return None
    user = store.get_user_by_id(session.user_id)
    if user is None:
        return None
    return session, user


def sign_out(store: AuthStore, cookie_value: str | None) -> bool:
    """Revoke the session behind cookie_value. Returns True if a session was removed."""
    payload = decode_session_cookie(cookie_value) if cookie_value else None
    if payload is None:
        return False
    return store.delete_session(payload["sid"])


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------


def sign_up_email(
    store: AuthStore,
    name: str,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    """Register a user with a credential account and sign them in.

    Raises AuthError USER_ALREADY_EXISTS when the email is taken (checked up
    front, and again via the UNIQUE constraint for concurrent sign-ups).
    """
    _check_password_length(password)
    email = normalize_email(email)
    if store.get_user_by_email(email) is not None:
        raise AuthError("USER_ALREADY_EXISTS")

    user = User(name=name.strip(), email=email)
    try:
        user.id = store.create_user_with_credential(user, hash_password(password))
    except IntegrityError as exc:
        raise AuthError("USER_ALREADY_EXISTS") from exc
    created = store.get_user_by_id(user.id)
    if created is None:
        raise AuthError("FAILED_TO_CREATE_USER")
    logger.info("User %d signed up with email", created.id)
    return issue_session(store, created, ip_address, user_agent)


def authenticate(store: AuthStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization. Returns the User or None."""
    user = store.get_user_by_email(normalize_email(email))
    account = store.get_credential_account(user.id) if user is not None else None
    if account is None or account.hashed_password is None:
        verify_password(password, DUMMY_HASH)
        return None
    if not verify_password(password, account.hashed_password):
        return None
    return user


def sign_in_email(
    store: AuthStore,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    """Sign in with email and password. Raises AuthError INVALID_EMAIL_OR_PASSWORD."""
    user = authenticate(store, email, password)
    if user is None:
        raise AuthError("INVALID_EMAIL_OR_PASSWORD")
    return issue_session(store, user, ip_address, user_agent)


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------


def sign_in_social(
    store: AuthStore,
    provider: str,
    subject: str,
    email: str,
    name: str | None = None,
    image: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    """Sign in (or up) with a verified social identity.

    Lookup order:
      1. (provider, subject) already linked -- returning user.
      2. A user with the same email exists -- link this provider to it.
      3. Otherwise create the user and link the provider.
    """
    account = store.get_account(provider, subject)
    if account is not None:
        user = store.get_user_by_id(account.user_id)
        if user is None:
            raise AuthError("FAILED_TO_CREATE_USER")
        return issue_session(store, user, ip_address, user_agent)

    email = normalize_email(email)
    user = store.get_user_by_email(email)
    if user is None:
        new_user = User(
            name=(name or email.split("@")[0]).strip(),
            email=email,
            email_verified=True,
            image=image,
        )
        try:
            user_id = store.create_user(new_user)
        except IntegrityError as exc:
            raise AuthError("USER_ALREADY_EXISTS") from exc
        logger.info("User %d signed up with %s", user_id, provider)
    else:
        user_id = user.id
        if not user.email_verified:
            store.update_user(user_id, email_verified=True)
        logger.info("Linking %s account to user %d", provider, user_id)

    try:
        store.create_account(Account(user_id=user_id, provider_id=provider, account_id=subject))
    except IntegrityError as exc:
        raise AuthError("FAILED_TO_CREATE_USER") from exc

    user = store.get_user_by_id(user_id)
    if user is None:
        raise AuthError("FAILED_TO_CREATE_USER")
    return issue_session(store, user, ip_address, user_agent)
