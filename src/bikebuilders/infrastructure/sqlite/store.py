"""
SQLite-backed store for the garage dataset.

Owns the connection lifecycle and schema initialization. All access goes
through one connection guarded by a re-entrant lock, so a background sync
worker and the foreground caller never interleave statements.

Uses stdlib sqlite3 with no ORM.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from bikebuilders.domain.errors import StoreUnavailable
from bikebuilders.infrastructure.sqlite.schema import initialize_schema

logger = logging.getLogger(__name__)


class GarageStore:
    """
    SQLite connection owner.

    Usage:
        store = GarageStore(Path("data/bikeBuilders.db"))
        store.initialize_schema()

        with store.transaction() as conn:
            conn.execute("INSERT INTO CommonServices ...")

        rows = store.fetch_all("SELECT * FROM Customers")
    """

    def __init__(self, db_path: Path | str) -> None:
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file (created if not exists).
                ``":memory:"`` gives a private in-memory database.
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0
        logger.info("GarageStore initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                if isinstance(self.db_path, Path):
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                # Autocommit mode; transaction() issues BEGIN/COMMIT itself
                self._connection = sqlite3.connect(
                    str(self.db_path),
                    isolation_level=None,
                    check_same_thread=False,
                )
                self._connection.execute("PRAGMA foreign_keys = ON")
                self._connection.row_factory = sqlite3.Row
            except (sqlite3.Error, OSError) as e:
                self._connection = None
                logger.error("Cannot open database %s: %s", self.db_path, e)
                raise StoreUnavailable(f"Cannot open database {self.db_path}: {e}") from e
            logger.debug("Database connection established")
        return self._connection

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.debug("Database connection closed")

    def initialize_schema(self) -> None:
        """
        Create tables and the profile row.

        Raises:
            StoreUnavailable: If the schema cannot be created
        """
        with self._lock:
            conn = self._get_connection()
            try:
                initialize_schema(conn)
            except sqlite3.Error as e:
                logger.error("Schema initialization failed: %s", e)
                raise StoreUnavailable(f"Schema initialization failed: {e}") from e

    # ========================================================================
    # Access
    # ========================================================================

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block of statements atomically.

        Nested use joins the outer transaction; only the outermost block
        commits or rolls back.
        """
        with self._lock:
            conn = self._get_connection()
            outermost = self._depth == 0
            if outermost:
                conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield conn
            except BaseException:
                self._depth -= 1
                if outermost and conn.in_transaction:
                    conn.execute("ROLLBACK")
                    logger.debug("Transaction rolled back")
                raise
            else:
                self._depth -= 1
                if outermost:
                    conn.execute("COMMIT")

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Run a query and return every row."""
        with self._lock:
            return self._get_connection().execute(sql, params).fetchall()

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        """Run a query and return the first row or None."""
        with self._lock:
            return self._get_connection().execute(sql, params).fetchone()
