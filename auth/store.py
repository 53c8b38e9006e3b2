"""
auth/store.py -- Account Store: the persistence boundary of the auth core.

Pattern: Repository + Data Mapper.
AccountStore is the protocol the verifier and provisioner depend on.
SqlAccountStore is the SQLAlchemy Core repository behind it; _row_to_account /
_row_to_role are the mappers. Core logic never touches SQL directly, and tests
can swap in an in-memory fake.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(username) on the accounts table is the source of truth for username
  uniqueness. The provisioner's existence check is advisory; under a race the
  losing insert fails here and surfaces as StoreConflict.

  insert() writes the account row and its role links in one transaction
  (engine.begin()), so a failure never leaves a half-provisioned account.

Error translation:
  IntegrityError   -> StoreConflict
  other SQLAlchemy -> StoreUnavailable
  No retries here -- the caller decides.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StoreConflict, StoreUnavailable
from auth.models import Account, Role

logger = logging.getLogger("matricula.auth.store")

class AccountStore(Protocol):
    """What the auth core needs from persistence. Nothing more."""

    def find_by_username(self, username: str) -> Account | None: ...

    def find_role_by_name(self, name: str) -> Role | None: ...

    def insert(self, account: Account) -> Account: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(64), nullable=False, unique=True),
)

_account_roles = Table(
    "account_roles",
    _metadata,
    Column("account_id", Integer, ForeignKey("accounts.id"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    UniqueConstraint("account_id", "role_id"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise StoreConflict(f"{operation}: uniqueness constraint violated.") from exc
    except SQLAlchemyError as exc:
        logger.error("Account store %s failed: %s", operation, type(exc).__name__)
        raise StoreUnavailable(f"{operation}: account store unavailable.") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlAccountStore:
    """SQLAlchemy Core implementation of AccountStore.

    Usage:
        store = SqlAccountStore(get_settings().database_url)
        store.create_role("user")
        account = store.find_by_username("ana")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive), roles included."""
        with _translate_errors("find_by_username"), self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.username == username)).fetchone()
            if row is None:
                return None
            roles = self._roles_for(conn, row.id)
        return _row_to_account(row, roles)

    def insert(self, account: Account) -> Account:
        """Persist a new account and its role links atomically.

        Returns a copy of the account carrying the store-assigned id. Raises
        StoreConflict if the username already exists.
        """
        with _translate_errors("insert"), self.engine.begin() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    username=account.username,
                    email=account.email,
                    password_hash=account.password_hash,
                    is_active=1 if account.is_active else 0,
                    created_at=_now_iso(),
                )
            )
            account_id = result.inserted_primary_key[0]
            role_ids = {role.id for role in account.roles if role.id is not None}
            if role_ids:
                conn.execute(
                    _account_roles.insert(),
                    [{"account_id": account_id, "role_id": role_id} for role_id in sorted(role_ids)],
                )
        return Account(
            id=account_id,
            username=account.username,
            email=account.email,
            password_hash=account.password_hash,
            is_active=account.is_active,
            roles=list(account.roles),
        )

    # ------------------------------------------------------------------
    # Role queries
    # ------------------------------------------------------------------

    def find_role_by_name(self, name: str) -> Role | None:
        """Look up a role by exact name. Returns None if the role is not seeded."""
        with _translate_errors("find_role_by_name"), self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def create_role(self, name: str) -> Role:
        """Seed a role. Admin tooling only -- the login/register flows never call this.

        Raises StoreConflict if the role already exists.
        """
        with _translate_errors("create_role"), self.engine.begin() as conn:
            result = conn.execute(_roles.insert().values(name=name))
        return Role(name=name, id=result.inserted_primary_key[0])

    def grant_role(self, username: str, role_name: str) -> bool:
        """Attach an existing role to an existing account. Admin tooling only.

        Returns False if either side does not exist. Granting a role the
        account already holds is a no-op, including when a concurrent grant
        inserts the same link first.
        """
        account = self.find_by_username(username)
        role = self.find_role_by_name(role_name)
        if account is None or role is None:
            return False
        if role.name in account.role_names():
            return True
        try:
            with _translate_errors("grant_role"), self.engine.begin() as conn:
                conn.execute(_account_roles.insert().values(account_id=account.id, role_id=role.id))
        except StoreConflict:
            logger.info("Role %r already granted to %r", role_name, username)
        return True

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()

    def _roles_for(self, conn: Connection, account_id: int) -> list[Role]:
        rows = conn.execute(
            select(_roles.c.id, _roles.c.name)
            .select_from(_roles.join(_account_roles, _roles.c.id == _account_roles.c.role_id))
            .where(_account_roles.c.account_id == account_id)
            .order_by(_roles.c.name)
        ).fetchall()
        return [_row_to_role(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row, roles: list[Role]) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        is_active=bool(row.is_active),
        roles=roles,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name)
