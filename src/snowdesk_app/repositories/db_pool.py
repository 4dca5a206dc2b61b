"""Thread-local database connections for the customer store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from snowdesk_app.core.config import DatabaseConfig, get_required_env

try:
    from pysqlcipher3 import dbapi2 as sqlcipher

    SQLCIPHER_AVAILABLE = True
except ImportError:
    sqlcipher = None
    SQLCIPHER_AVAILABLE = False

logger = logging.getLogger(__name__)


class ThreadLocalConnection:
    """One connection per thread; workers and the UI never share a handle."""

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._local = threading.local()

    def _open_connection(self) -> sqlite3.Connection:
        db_path = Path(self._config.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        if SQLCIPHER_AVAILABLE:
            connection = sqlcipher.connect(str(db_path), check_same_thread=False)
            key = get_required_env(self._config.key_env).replace("'", "''")
            connection.execute(f"PRAGMA key = '{key}'")
            connection.execute("PRAGMA cipher_compatibility = 4")
        elif self._config.allow_sqlite_fallback:
            logger.warning("SQLCipher unavailable; opening %s as plain SQLite", db_path)
            connection = sqlite3.connect(str(db_path), check_same_thread=False)
        else:
            raise RuntimeError(
                "SQLCipher is required but unavailable. Install pysqlcipher3 or enable fallback."
            )

        connection.row_factory = sqlite3.Row
        return connection

    def get_connection(self) -> sqlite3.Connection:
        """Return current thread's connection, creating it when needed."""
        connection = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._open_connection()
            self._local.connection = connection
        return connection

    def close_connection(self) -> None:
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Execute one statement and commit it."""
        connection = self.get_connection()
        cursor = connection.execute(query, params)
        connection.commit()
        return cursor

    def fetchall(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        return self.get_connection().execute(query, params).fetchall()

    def fetchone(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        return self.get_connection().execute(query, params).fetchone()
