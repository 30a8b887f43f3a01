"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as org/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and service
code never touches SQL directly.

Schema:
  users       -- one row per identity. username and email are UNIQUE at the
                 DB level as the backstop for the uniqueness guard.
  user_roles  -- one row per (user, role). Replaces a comma-separated role
                 column: roles are parsed into Role members by the mapper and
                 nowhere else.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The users table is never exposed through a response model; routes map
  User -> UserResponse explicitly so hashed_password cannot leak.

Layer rule: no imports from api/, org/, or notify/.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import Role, User, parse_roles
from core.config import get_settings
from core.uniqueness import UniqueField

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(100), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50), nullable=False, server_default=""),
    Column("last_name", String(50), nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("role", String(20), nullable=False),
    PrimaryKeyConstraint("user_id", "role", name="pk_user_roles"),
)

USERNAME_FIELD = UniqueField(kind="User", table=_users, column="username")
EMAIL_FIELD = UniqueField(kind="User", table=_users, column="email")
USER_UNIQUE_FIELDS = (USERNAME_FIELD, EMAIL_FIELD)


# ---------------------------------------------------------------------------
# Connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    WAL lets readers proceed without blocking during writes. Both PRAGMAs are
    per-connection because SQLite does not persist them across the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        store.create_user(User(username="admin", email="a@x.io", hashed_password=hash_password("secret")))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside BEGIN ... COMMIT (ROLLBACK on exception)."""
        with self.engine.begin() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_user(self, conn: Connection, user: User) -> int:
        """Insert a user and its role rows on the caller's transaction.

        Raises sqlalchemy.exc.IntegrityError if username or email is taken.
        """
        if not user.roles:
            raise ValueError("A user must hold at least one role.")
        result = conn.execute(
            _users.insert().values(
                username=user.username,
                email=user.email,
                hashed_password=user.hashed_password,
                first_name=user.first_name,
                last_name=user.last_name,
                created_at=_now_iso(),
            )
        )
        user_id = result.inserted_primary_key[0]
        conn.execute(_user_roles.insert(), [{"user_id": user_id, "role": r.value} for r in sorted(user.roles)])
        return user_id

    def create_user(self, user: User) -> int:
        """Insert a new user in its own transaction and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the username or email exists.
        The registration flow uses insert_user() inside a guarded transaction
        instead; this method serves the admin CLI and test fixtures.
        """
        with self.transaction() as conn:
            return self.insert_user(conn, user)

    def grant_role(self, user_id: int, role: Role) -> bool:
        """Add a role to an existing user. Returns False if already held."""
        with self.transaction() as conn:
            held = conn.execute(
                select(_user_roles.c.role).where((_user_roles.c.user_id == user_id) & (_user_roles.c.role == role.value))
            ).fetchone()
            if held is not None:
                return False
            conn.execute(_user_roles.insert().values(user_id=user_id, role=role.value))
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
            return self._load(conn, row)

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            return self._load(conn, row)

    def has_admin(self) -> bool:
        """Return True if at least one identity holds the ADMIN role."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_user_roles.c.user_id).where(_user_roles.c.role == Role.ADMIN.value).limit(1))
            return row.fetchone() is not None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()

    @staticmethod
    def _load(conn: Connection, row) -> User | None:
        if row is None:
            return None
        roles = conn.execute(select(_user_roles.c.role).where(_user_roles.c.user_id == row.id)).scalars().all()
        return _row_to_user(row, roles)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, role_names) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        roles=parse_roles(role_names),
        created_at=row.created_at,
    )
