"""
File-backed snapshot storage for worldbooks.

Each store key owns one JSON record on disk that is read and written wholesale.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Optional

from loguru import logger
from .models import Snapshot, now_ms


class WorldbookStorageManager:
    """
    Persists worldbook snapshots as JSON files.

    Directory structure:
        worldbook/{key}/
            worldbook.json  # {"groups": [...], "entries": [...]}
    """

    def __init__(self, base_dir: str | Path = "worldbook"):
        """
        Initialize the worldbook storage manager.

        Args:
            base_dir: Base directory for all worldbook records (default: "worldbook")
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"📚 Worldbook storage initialized at: {self.base_dir}")

    def _sanitize_key(self, key: str) -> str:
        """
        Sanitize a store key to prevent path traversal attacks.

        Args:
            key: Store key

        Returns:
            The key, unchanged, if it is safe for filesystem use

        Raises:
            ValueError: If the key is empty or contains dangerous characters
        """
        if not key:
            raise ValueError("key cannot be empty")

        sanitized = re.sub(r'[<>:"|?*\\/]', "", key)
        sanitized = sanitized.strip(". ")

        if not sanitized or sanitized != key:
            raise ValueError(
                f"Invalid key: '{key}'. Must not contain path separators or special characters."
            )

        return sanitized

    def get_store_dir(self, key: str) -> Path:
        store_dir = self.base_dir / self._sanitize_key(key)
        store_dir.mkdir(parents=True, exist_ok=True)
        return store_dir

    def get_snapshot_path(self, key: str) -> Path:
        """Get path to worldbook.json for this key."""
        return self.get_store_dir(key) / "worldbook.json"

    async def load(self, key: str) -> Optional[Snapshot]:
        """
        Load the snapshot stored under a key.

        Args:
            key: Store key

        Returns:
            The stored snapshot, None if nothing was stored yet, or an empty
            snapshot if the stored record cannot be read. An unreadable file
            is moved aside first so the next save does not overwrite it.
        """
        snapshot_path = self.get_snapshot_path(key)

        if not snapshot_path.exists():
            return None

        try:
            content = await asyncio.to_thread(snapshot_path.read_text, encoding="utf-8")
            data = json.loads(content)
            if not isinstance(data, dict):
                raise ValueError("stored record is not an object")
            return Snapshot.from_record(data)
        except ValueError as e:
            backup_path = snapshot_path.with_name(f"{snapshot_path.name}.unreadable-{now_ms()}")
            await asyncio.to_thread(snapshot_path.replace, backup_path)
            logger.error(
                f"❌ Failed to load worldbook '{key}': {e}. Kept the record as {backup_path.name}"
            )
            return Snapshot()

    async def save(self, key: str, snapshot: Snapshot) -> None:
        """
        Write a snapshot under a key, replacing the previous record.

        Args:
            key: Store key
            snapshot: Snapshot to persist
        """
        snapshot_path = self.get_snapshot_path(key)
        tmp_path = snapshot_path.with_suffix(".json.tmp")

        try:
            content = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
            await asyncio.to_thread(tmp_path.write_text, content, encoding="utf-8")
            await asyncio.to_thread(tmp_path.replace, snapshot_path)
            logger.debug(
                f"💾 Saved worldbook '{key}' ({len(snapshot.groups)} groups, {len(snapshot.entries)} entries)"
            )
        except Exception as e:
            logger.error(f"❌ Failed to save worldbook '{key}': {e}")
            raise
