"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route, service, and strategy code never touches SQL directly.

The store is synchronous. AuthService calls it through Starlette's worker
threadpool so a slow database never blocks the event loop.

Security:
  All queries use bound parameters. No f-strings in SQL.

  password_hash is excluded from every lookup by default. Only
  find_by_email(..., include_password_hash=True) loads it -- the one caller is
  credential validation at login.

  refresh_token_hash is the single piece of server-side session state.
  compare_and_set_refresh_hash() updates it only when the stored value still
  equals the hash the caller verified, which closes the concurrent-refresh
  race (two requests presenting the same refresh token).

Soft delete:
  delete stamps deleted_at and clears the refresh hash. Soft-deleted rows are
  invisible to every finder. hard_delete() removes the row outright.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import Role, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("name", String(255), nullable=False),
    Column("role", String(16), nullable=False, server_default=Role.CLIENT.value),
    Column("refresh_token_hash", Text),  # NULL = no active session
    Column("profile_image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),  # NULL = live row
    Index("ix_users_role", "role"),
    Index("ix_users_created_at", "created_at"),
    Index("ix_users_deleted_at", "deleted_at"),
)

# Columns callers may change through update_fields(). id, created_at and
# deleted_at are owned by the store.
_UPDATABLE_FIELDS = frozenset({"email", "name", "role", "password_hash", "refresh_token_hash", "profile_image"})


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


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///nexstack.db")
        user_id = store.create_user(User(email="a@x.com", name="A", role=Role.ADMIN, password_hash=h))
        user = store.find_by_email("a@x.com", include_password_hash=True)
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
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        password_hash must already be a bcrypt hash. Raises
        sqlalchemy.exc.IntegrityError if the email already exists (soft-deleted
        rows keep their email reserved).
        """
        user_id = str(uuid.uuid4())
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    password_hash=user.password_hash,
                    name=user.name,
                    role=Role(user.role).value,
                    refresh_token_hash=None,
                    profile_image=user.profile_image,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def update_fields(self, user_id: str, **fields) -> bool:
        """Update mutable fields on a live user.

        Accepted fields: email, name, role, password_hash, refresh_token_hash,
        profile_image. Unknown fields raise ValueError before any SQL runs.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
                .values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
        return result.rowcount > 0

    def compare_and_set_refresh_hash(self, user_id: str, expected: str, new: str | None) -> bool:
        """Atomically replace the refresh hash only if it still equals expected.

        Returns False when another request rotated (or cleared) the hash first.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & (_users.c.refresh_token_hash == expected)
                    & _users.c.deleted_at.is_(None)
                )
                .values(refresh_token_hash=new, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def soft_delete(self, user_id: str) -> bool:
        """Stamp deleted_at and drop the active session. Returns False if not found."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
                .values(deleted_at=now, updated_at=now, refresh_token_hash=None)
            )
            conn.commit()
        return result.rowcount > 0

    def hard_delete(self, user_id: str) -> bool:
        """Permanently delete a user row (live or soft-deleted)."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str, include_password_hash: bool = False) -> User | None:
        """Look up a live user by exact email (case-preserved, case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.email == email) & _users.c.deleted_at.is_(None))
            ).fetchone()
        return _row_to_user(row, include_password_hash) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a live user by primary key. The password hash is never loaded."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_password_hash(self, user_id: str) -> str | None:
        """Return the stored password hash for a live user (password change only)."""
        with self.engine.connect() as conn:
            return conn.execute(
                select(_users.c.password_hash).where((_users.c.id == user_id) & _users.c.deleted_at.is_(None))
            ).scalar()

    def list_users(self) -> list[User]:
        """Return all live users, newest first. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.deleted_at.is_(None)).order_by(_users.c.created_at.desc())
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, include_password_hash: bool = False) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        password_hash=row.password_hash if include_password_hash else None,
        refresh_token_hash=row.refresh_token_hash,
        profile_image=row.profile_image,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )
