"""SQLite layer for the definition stores.

Raw SQL via sqlite3, no ORM. Each call opens its own connection with
check_same_thread=False, so store calls can run on worker threads
(asyncio.to_thread) concurrently.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TILE_TABLE = "tile_definitions"
STREAM_TABLE = "stream_definitions"

_DDL_TEMPLATE = """
CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    definition_dir_name TEXT,
    name TEXT,
    data TEXT NOT NULL DEFAULT '{{}}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_{table}_dir ON {table}(definition_dir_name);
"""


def _json_dumps(data: Any) -> str:
    """Serialize data to JSON string for storage."""
    if data is None:
        return "{}"
    return json.dumps(data, ensure_ascii=False, default=str)


def _json_loads(text: str) -> Any:
    """Deserialize JSON string from storage."""
    if not text:
        return {}
    return json.loads(text)


class Database:
    """A SQLite file holding the tile and activity-stream tables."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._initialized = False

    @contextmanager
    def get_connection(self):
        """Get a database connection.

        Usage:
            with db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(...)
                conn.commit()
        """
        conn = sqlite3.connect(str(self.path), check_same_thread=False, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = (), fetch: str = "none") -> Any:
        """Execute a SQL statement.

        Args:
            sql: SQL statement with ? placeholders
            params: Parameters tuple
            fetch: "none", "one", "all"

        Returns:
            None for "none", dict for "one", list[dict] for "all"
        """
        self.init_db()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)

            if fetch == "one":
                row = cursor.fetchone()
                return dict(row) if row is not None else None
            elif fetch == "all":
                return [dict(row) for row in cursor.fetchall()]

            conn.commit()
            return None

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        if self._initialized:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)

        ddl = "".join(
            _DDL_TEMPLATE.format(table=table) for table in (TILE_TABLE, STREAM_TABLE)
        )
        with self.get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(ddl)
            conn.commit()

        self._initialized = True
        logger.info(f"Definition database initialized: SQLite ({self.path})")
