"""
User-Record Store
=================
Connection management and queries for the DuckDB user-record database.

One record per authentication-provider identity. Records are created on
first sign-in, touched (lastLogin refreshed) on every later sign-in, and
never deleted.
"""

import duckdb
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
import logging
import threading

from animeworld.config.settings import (
    DEFAULT_COUNTRY_CODE,
    DEFAULT_FIRST_NAME,
    DEFAULT_ROLE,
    USER_DB_PATH,
    USER_TABLE,
)
from animeworld.exceptions import UserStoreError
from animeworld.models import UserCreateRequest, UserRecord, derive_display_name, derive_username

logger = logging.getLogger(__name__)

USER_COLUMNS = [
    'external_id',
    'username',
    'first_name',
    'last_name',
    'display_name',
    'email',
    'phone',
    'country_code',
    'google_auth',
    'phone_auth',
    'role',
    'created_at',
    'last_login',
]

SCHEMA_SQL = f"""
    CREATE TABLE IF NOT EXISTS {USER_TABLE} (
        external_id VARCHAR PRIMARY KEY,
        username VARCHAR NOT NULL,
        first_name VARCHAR NOT NULL,
        last_name VARCHAR NOT NULL,
        display_name VARCHAR NOT NULL,
        email VARCHAR,
        phone VARCHAR,
        country_code VARCHAR NOT NULL,
        google_auth BOOLEAN NOT NULL DEFAULT FALSE,
        phone_auth BOOLEAN NOT NULL DEFAULT FALSE,
        role VARCHAR NOT NULL DEFAULT '{DEFAULT_ROLE}',
        created_at TIMESTAMP NOT NULL,
        last_login TIMESTAMP NOT NULL
    )
"""

SELECT_USERS = f"SELECT {', '.join(USER_COLUMNS)} FROM {USER_TABLE}"


class UserStore:
    """
    Manages the connection to the user-record database
    Provides the create-or-touch, list and lookup operations for the API
    """

    def __init__(self, db_path: str = None):
        """
        Initialize user store

        Args:
            db_path: Path to DuckDB database file (or ':memory:'). If None, uses USER_DB_PATH.
        """
        if db_path is None:
            db_path = USER_DB_PATH

        self.db_path = str(db_path)
        self.conn = None
        self._lock = threading.Lock()
        self._connect_lock = threading.Lock()

        logger.info(f"Initialized UserStore for {self.db_path}")

    @property
    def database_name(self) -> str:
        """Name reported by the health check."""
        if self.db_path == ':memory:':
            return 'memory'
        return Path(self.db_path).stem

    def connect(self):
        """Open database connection and make sure the schema exists"""
        with self._connect_lock:
            if self.conn is not None:
                return

            with self._translate_errors("connect"):
                if self.db_path != ':memory:':
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = duckdb.connect(self.db_path)
                conn.execute(SCHEMA_SQL)
                self.conn = conn
            logger.debug("Connected to user store")

    def close(self):
        """Close database connection"""
        with self._connect_lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Closed user store connection")

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()

    @contextmanager
    def _translate_errors(self, action: str):
        try:
            yield
        except (duckdb.Error, OSError) as e:
            logger.error(f"User store failed to {action}: {e}")
            raise UserStoreError(f"Failed to {action}: {e}") from e

    @contextmanager
    def _cursor(self):
        """A per-call cursor; DuckDB connections must not be shared across threads."""
        self.connect()
        cursor = self.conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @staticmethod
    def _to_record(row: Tuple) -> UserRecord:
        return UserRecord(**dict(zip(USER_COLUMNS, row)))

    # ========================================================================
    # Operations
    # ========================================================================

    def create_or_touch(self, request: UserCreateRequest, now: Optional[datetime] = None) -> Tuple[UserRecord, bool]:
        """
        Register a sign-in

        A record matching by external id, or by email when one is given, is
        only touched (lastLogin refreshed). An external id match wins over an
        email match. Otherwise a new record is created with derived defaults.

        Args:
            request: Sign-in payload
            now: Timestamp to record (defaults to the current time)

        Returns:
            (record, created) where created is False for an existing record

        Raises:
            ValueError: If the external id is missing
            UserStoreError: On database failure
        """
        if not request.external_id:
            raise ValueError("User ID (externalId) is required")

        now = now or datetime.now()

        with self._lock, self._translate_errors("save user"), self._cursor() as cur:
            row = cur.execute(
                f"""
                {SELECT_USERS}
                WHERE external_id = ? OR (email IS NOT NULL AND email = ?)
                ORDER BY (external_id = ?) DESC, created_at
                LIMIT 1
                """,
                [request.external_id, request.email, request.external_id],
            ).fetchone()

            if row is not None:
                existing = self._to_record(row)
                last_login = max(now, existing.last_login)
                cur.execute(
                    f"UPDATE {USER_TABLE} SET last_login = ? WHERE external_id = ?",
                    [last_login, existing.external_id],
                )
                logger.info(f"User login updated: {existing.external_id}")
                return existing.model_copy(update={'last_login': last_login}), False

            record = UserRecord(
                external_id=request.external_id,
                username=derive_username(request.external_id, request.username, request.email),
                first_name=request.first_name or DEFAULT_FIRST_NAME,
                last_name=request.last_name or '',
                display_name=derive_display_name(request.display_name, request.first_name, request.last_name),
                email=request.email or None,
                phone=request.phone or None,
                country_code=request.country_code or DEFAULT_COUNTRY_CODE,
                google_auth=bool(request.google_auth),
                phone_auth=bool(request.phone_auth),
                role=DEFAULT_ROLE,
                created_at=now,
                last_login=now,
            )

            values = [getattr(record, column) for column in USER_COLUMNS]
            cur.execute(
                f"INSERT INTO {USER_TABLE} ({', '.join(USER_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in USER_COLUMNS)})",
                values,
            )
            logger.info(f"New user created: {record.external_id}")
            return record, True

    def list_users(self) -> List[UserRecord]:
        """
        Get all user records

        Returns:
            Records ordered by creation time, newest first
        """
        with self._translate_errors("fetch users"), self._cursor() as cur:
            rows = cur.execute(f"{SELECT_USERS} ORDER BY created_at DESC").fetchall()

        logger.debug(f"Retrieved {len(rows)} users")
        return [self._to_record(row) for row in rows]

    def get_user(self, external_id: str) -> Optional[UserRecord]:
        """
        Get a specific user by external id

        Returns:
            The record, or None if not found
        """
        with self._translate_errors("fetch user"), self._cursor() as cur:
            row = cur.execute(f"{SELECT_USERS} WHERE external_id = ?", [external_id]).fetchone()

        return self._to_record(row) if row is not None else None

    def set_role(self, external_id: str, role: str) -> Optional[UserRecord]:
        """Change a user's role (e.g. grant 'admin'). Returns the updated record or None."""
        with self._lock, self._translate_errors("update role"), self._cursor() as cur:
            cur.execute(f"UPDATE {USER_TABLE} SET role = ? WHERE external_id = ?", [role, external_id])

        logger.info(f"Role of {external_id} set to {role}")
        return self.get_user(external_id)

    def ping(self) -> bool:
        """True when the database answers a trivial query."""
        try:
            with self._translate_errors("ping"), self._cursor() as cur:
                cur.execute("SELECT 1").fetchone()
        except UserStoreError:
            return False
        return True
