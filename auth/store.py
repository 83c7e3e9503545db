"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
AuthStore is the repository; _row_to_user / _row_to_account / _row_to_session
are the mappers. Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Any SQLAlchemy URL works (PostgreSQL in deployment). The default is a SQLite
file next to this module so a fresh checkout runs without a database server.

Timestamps are ISO 8601 UTC strings. All writers use _now_iso(), so string
comparison orders them correctly (purge_expired_sessions relies on this).

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import Account, Session, User
from core.models import CREDENTIAL_PROVIDER

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'meetai_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("email_verified", Integer, nullable=False, server_default="0"),
    Column("image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("provider_id", String(30), nullable=False),  # "credential", "github", "google"
    Column("account_id", String(255), nullable=False),  # provider subject, or user id for credential
    Column("hashed_password", Text),  # credential accounts only
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("provider_id", "account_id", name="uq_accounts_provider_account"),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("ip_address", String(64)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for User, Account and Session entities.

    Usage:
        store = AuthStore()
        user_id = store.create_user_with_credential(User(name="Ada", email="ada@example.com"), hashed)
        user = store.get_user_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str = "") -> None:
        db_url = db_url or _DEFAULT_DB_URL
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a user without any account and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.begin() as conn:
            return _insert_user(conn, user)

    def create_user_with_credential(self, user: User, hashed_password: str) -> int:
        """Insert a user and its credential account in one transaction.

        Raises sqlalchemy.exc.IntegrityError if the email already exists; in
        that case neither row is written.
        """
        with self.engine.begin() as conn:
            user_id = _insert_user(conn, user)
            conn.execute(
                _accounts.insert().values(
                    user_id=user_id,
                    provider_id=CREDENTIAL_PROVIDER,
                    account_id=str(user_id),
                    hashed_password=hashed_password,
                    created_at=_now_iso(),
                )
            )
        return user_id

    def get_user_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str) -> User | None:
        """Look up a user by email. Callers pass the normalized (lower-cased) form."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields (name, image, email_verified) and stamp updated_at.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "email_verified" in fields:
            fields["email_verified"] = 1 if fields["email_verified"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert an account row and return its ID.

        Raises sqlalchemy.exc.IntegrityError if (provider_id, account_id) is
        already linked.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    user_id=account.user_id,
                    provider_id=account.provider_id,
                    account_id=account.account_id,
                    hashed_password=account.hashed_password,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_account(self, provider_id: str, account_id: str) -> Account | None:
        """Look up an account by its (provider_id, account_id) pair."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where(
                    (_accounts.c.provider_id == provider_id) & (_accounts.c.account_id == account_id)
                )
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_credential_account(self, user_id: int) -> Account | None:
        """Return the email/password account for a user, or None for social-only users."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where(
                    (_accounts.c.user_id == user_id) & (_accounts.c.provider_id == CREDENTIAL_PROVIDER)
                )
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    # ------------------------------------------------------------------
    # Session queries
    # ------------------------------------------------------------------

    def create_session(self, session: Session) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                _sessions.insert().values(
                    user_id=session.user_id,
                    token=session.token,
                    expires_at=session.expires_at,
                    ip_address=session.ip_address,
                    user_agent=session.user_agent,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def get_session_by_token(self, token: str) -> Session | None:
        """Return the session row for token, expired or not. Expiry is the caller's check."""
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_session(self, token: str) -> bool:
        """Revoke a session. Returns True if a row was deleted."""
        with self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.token == token))
        return result.rowcount > 0

    def purge_expired_sessions(self) -> int:
        """Delete every session whose expires_at is in the past. Returns rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at < _now_iso()))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _insert_user(conn, user: User) -> int:
    now = _now_iso()
    result = conn.execute(
        _users.insert().values(
            name=user.name,
            email=user.email,
            email_verified=1 if user.email_verified else 0,
            image=user.image,
            created_at=now,
            updated_at=now,
        )
    )
    return result.inserted_primary_key[0]


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        email_verified=bool(row.email_verified),
        image=row.image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        user_id=row.user_id,
        provider_id=row.provider_id,
        account_id=row.account_id,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=row.expires_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )
