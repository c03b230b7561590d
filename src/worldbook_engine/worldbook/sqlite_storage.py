"""SQLite-backed snapshot storage for worldbooks.

Keeps one row per store key holding the whole snapshot as JSON.
"""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
from loguru import logger
from .models import Snapshot, now_ms


class SQLiteSnapshotStorage:
    """
    Keyed snapshot store on top of a single SQLite database file.
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize the SQLite snapshot store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False

    async def initialize(self) -> None:
        """Create the snapshot table if it doesn't exist."""
        if self._initialized:
            return

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS worldbook_snapshots (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT
                )
                """
            )
            await db.commit()

        self._initialized = True
        logger.info(f"✅ SQLite worldbook store initialized at: {self.db_path}")

    async def load(self, key: str) -> Snapshot | None:
        """
        Load the snapshot stored under a key.

        Returns:
            The stored snapshot, None if the key has no row, or an empty
            snapshot if the row cannot be decoded. An undecodable row is
            copied to a backup key first so the next save does not lose it.
        """
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT payload FROM worldbook_snapshots WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        try:
            data = json.loads(row[0])
            if not isinstance(data, dict):
                raise ValueError("stored payload is not an object")
            return Snapshot.from_record(data)
        except ValueError as e:
            backup_key = f"{key}.unreadable-{now_ms()}"
            await self._write(backup_key, row[0])
            logger.error(f"❌ Failed to decode worldbook '{key}': {e}. Kept the row as '{backup_key}'")
            return Snapshot()

    async def save(self, key: str, snapshot: Snapshot) -> None:
        """Replace the row for a key with the given snapshot."""
        await self._write(key, json.dumps(snapshot.to_dict(), ensure_ascii=False))
        logger.debug(f"💾 Saved worldbook '{key}' to {self.db_path.name}")

    async def _write(self, key: str, payload: str) -> None:
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO worldbook_snapshots (key, payload, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (key, payload),
            )
            await db.commit()
