"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store owns
persistence, the service owns the sign-in/sign-up rules.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An identity that can hold sessions.

    email is stored lower-cased and is unique. A user has one or more
    accounts: a "credential" account for email/password sign-in and one
    account per linked social provider.
    """

    name: str
    email: str
    id: int | None = None
    email_verified: bool = False
    image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Account:
    """Links a User to a sign-in method.

    provider_id is "credential" for email/password accounts, in which case
    hashed_password holds the bcrypt hash and account_id repeats the user id.
    For social providers account_id is the provider's stable subject and
    hashed_password is None.
    """

    user_id: int
    provider_id: str
    account_id: str
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None


@dataclass
class Session:
    """A server-side session record.

    The browser never sees token directly: it receives a signed JWT whose
    "sid" claim is this token. Deleting the row revokes the session even if
    the JWT has not yet expired.
    """

    user_id: int
    token: str
    expires_at: str
    id: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: str | None = None
