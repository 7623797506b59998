"""Definition stores - persisted tile and activity-stream definition records.

Both stores share one SQLite file (one table each) and expose the same
async API: save, find_all, get, remove, count. Blocking SQL runs on a
worker thread via asyncio.to_thread.
"""

import asyncio
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from tilehost.errors import StoreError
from tilehost.persistence.db import (
    STREAM_TABLE,
    TILE_TABLE,
    Database,
    _json_dumps,
    _json_loads,
)

logger = logging.getLogger(__name__)


class DefinitionStore:
    """Persisted definition records for one definition category."""

    def __init__(self, db: Database, table: str):
        if table not in (TILE_TABLE, STREAM_TABLE):
            raise ValueError(f"Unknown definition table: {table}")
        self.db = db
        self.table = table

    async def save(self, record: dict[str, Any]) -> dict[str, Any]:
        """Insert or update a record and return it with its id.

        A record carrying an id is upserted in place. A record without one
        takes the id of the stored record with the same definitionDirName,
        if any, so re-scanning an unchanged tree never duplicates records;
        otherwise a fresh id is assigned.
        """
        return await asyncio.to_thread(self._save, dict(record))

    async def find_all(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._find_all)

    async def get(self, record_id: str) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self._get, record_id)

    async def remove(self, record_id: str) -> None:
        await asyncio.to_thread(self._remove, record_id)

    async def count(self) -> int:
        return await asyncio.to_thread(self._count)

    def _save(self, record: dict[str, Any]) -> dict[str, Any]:
        try:
            record_id = record.get("id")
            dir_name = record.get("definitionDirName")
            if not record_id and dir_name:
                row = self.db.execute(
                    f"SELECT id FROM {self.table} WHERE definition_dir_name = ? "
                    "ORDER BY created_at LIMIT 1",
                    (dir_name,),
                    fetch="one",
                )
                if row is not None:
                    record_id = row["id"]
            if not record_id:
                record_id = uuid.uuid4().hex
            record["id"] = record_id
            name = record.get("name")
            if not isinstance(name, str):
                name = None

            now = datetime.now(timezone.utc).isoformat()
            self.db.execute(
                f"""INSERT INTO {self.table}
                   (id, definition_dir_name, name, data, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       definition_dir_name = excluded.definition_dir_name,
                       name = excluded.name,
                       data = excluded.data,
                       updated_at = excluded.updated_at""",
                (record_id, dir_name, name, _json_dumps(record), now, now),
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to save definition in {self.table}: {e}") from e

        logger.debug(f"Saved {self.table} record {record_id} ({dir_name})")
        return record

    def _find_all(self) -> list[dict[str, Any]]:
        try:
            rows = self.db.execute(
                f"SELECT id, data FROM {self.table} ORDER BY created_at, id",
                fetch="all",
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list definitions in {self.table}: {e}") from e
        return [self._row_to_record(row) for row in rows]

    def _get(self, record_id: str) -> Optional[dict[str, Any]]:
        try:
            row = self.db.execute(
                f"SELECT id, data FROM {self.table} WHERE id = ?",
                (record_id,),
                fetch="one",
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read definition {record_id}: {e}") from e
        return self._row_to_record(row) if row is not None else None

    def _remove(self, record_id: str) -> None:
        try:
            self.db.execute(f"DELETE FROM {self.table} WHERE id = ?", (record_id,))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to remove definition {record_id}: {e}") from e
        logger.info(f"Removed {self.table} record {record_id}")

    def _count(self) -> int:
        try:
            row = self.db.execute(f"SELECT COUNT(*) AS n FROM {self.table}", fetch="one")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to count definitions in {self.table}: {e}") from e
        return row["n"] if row else 0

    @staticmethod
    def _row_to_record(row: dict) -> dict[str, Any]:
        record = _json_loads(row["data"])
        record["id"] = row["id"]
        return record


@dataclass
class DefinitionStores:
    """The tile store and the activity-stream store."""

    tiles: DefinitionStore
    streams: DefinitionStore


def open_stores(database_path: Path) -> DefinitionStores:
    """Open (and create if needed) both stores backed by *database_path*."""
    db = Database(database_path)
    db.init_db()
    return DefinitionStores(
        tiles=DefinitionStore(db, TILE_TABLE),
        streams=DefinitionStore(db, STREAM_TABLE),
    )
