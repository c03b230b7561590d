"""
Main worldbook manager interface.

Coordinates storage, import, batch organization and association resolution.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from loguru import logger

from ..config_manager.worldbook import WorldbookConfig
from .batch import BatchSession, MoveTarget
from .ingestion import ImportKind, IngestionPipeline, kind_from_filename
from .resolver import AssociationResolver
from .sqlite_storage import SQLiteSnapshotStorage
from .storage_manager import WorldbookStorageManager
from .store import EntryStore, SnapshotStorage


def create_storage(config: WorldbookConfig) -> SnapshotStorage:
    """Build the snapshot storage backend selected in the config."""
    if config.storage_backend == "sqlite":
        return SQLiteSnapshotStorage(Path(config.base_dir) / "worldbook.db")
    return WorldbookStorageManager(config.base_dir)


class WorldbookManager:
    """
    High-level manager for one worldbook.

    Every mutating call loads the snapshot, applies the change and saves it
    back while holding a single lock, so concurrent callers never overwrite
    each other's changes.
    """

    def __init__(
        self,
        config: Optional[WorldbookConfig] = None,
        storage: Optional[SnapshotStorage] = None,
    ):
        """
        Initialize the worldbook manager.

        Args:
            config: Worldbook settings (defaults apply if omitted)
            storage: Snapshot storage; built from the config if omitted
        """
        self.config = config or WorldbookConfig()
        self.storage = storage or create_storage(self.config)
        self.ingestion = IngestionPipeline(group_suffix=self.config.character_group_suffix)
        self._lock = asyncio.Lock()

        logger.info("🧠 Worldbook Manager initialized")

    async def _load_store(self) -> EntryStore:
        store = EntryStore(self.storage, self.config.storage_key)
        await store.load()
        return store

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[EntryStore]:
        """Yield a freshly loaded store and save it if the block completes."""
        async with self._lock:
            store = await self._load_store()
            yield store
            await store.save()

    async def get_snapshot(self) -> Dict[str, Any]:
        store = await self._load_store()
        return store.snapshot.to_dict()

    async def create_group(self, name: str) -> Dict[str, Any]:
        async with self._mutation() as store:
            group = store.create_group(name)
        return group.to_dict()

    async def rename_group(self, group_id: str, name: str) -> Dict[str, Any]:
        async with self._mutation() as store:
            group = store.rename_group(group_id, name)
        return group.to_dict()

    async def delete_group(self, group_id: str) -> Optional[int]:
        """
        Delete a group; its entries become ungrouped.

        Returns:
            Number of entries ungrouped, or None if the group does not exist
        """
        async with self._lock:
            store = await self._load_store()
            if store.get_group(group_id) is None:
                return None
            moved = store.delete_group(group_id)
            await store.save()
        return moved

    async def create_entry(self, **fields: Any) -> Dict[str, Any]:
        async with self._mutation() as store:
            entry = store.create_entry(**fields)
        return entry.to_dict()

    async def update_entry(self, entry_id: str, **changes: Any) -> Optional[Dict[str, Any]]:
        """
        Edit an entry.

        Returns:
            The updated entry, or None if it does not exist
        """
        async with self._lock:
            store = await self._load_store()
            if store.get_entry(entry_id) is None:
                return None
            entry = store.update_entry(entry_id, **changes)
            await store.save()
        return entry.to_dict()

    async def delete_entry(self, entry_id: str) -> bool:
        async with self._lock:
            store = await self._load_store()
            deleted = store.delete_entries({entry_id})
            if deleted:
                await store.save()
                logger.info(f"🗑️ Deleted entry '{entry_id}'")
        return deleted > 0

    async def batch_move(self, scope: str, entry_ids: Iterable[str], target: MoveTarget) -> int:
        """
        Move the selected entries of one view to a target.

        Args:
            scope: Group id of the view, or UNGROUPED
            entry_ids: Selected entry ids; ids outside the view are ignored
            target: Group id, UNGROUPED, or NewGroup(name)

        Returns:
            Number of entries moved
        """
        async with self._mutation() as store:
            session = BatchSession(store, scope)
            session.select(entry_ids)
            moved = session.move_selection(target)
        return moved

    async def batch_delete(self, scope: str, entry_ids: Iterable[str]) -> int:
        async with self._mutation() as store:
            session = BatchSession(store, scope)
            session.select(entry_ids)
            deleted = session.delete_selection()
        return deleted

    async def import_file(
        self,
        data: bytes,
        kind: ImportKind,
        filename: str,
        target_group_id: Optional[str] = None,
        new_group_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Import a file into the worldbook.

        Args:
            data: File content as bytes
            kind: Declared kind ("image", "document" or "json")
            filename: Original filename
            target_group_id: Optional group receiving every imported entry
            new_group_name: Optional name of a new group receiving every entry

        Returns:
            Dictionary with 'entry_ids', 'group_ids' and 'count'

        Raises:
            ParseError: If JSON data is malformed
            EmptyImportError: If the file holds no usable entries
        """
        logger.info(f"📥 Importing '{filename}' as {kind} ({len(data)} bytes)")
        async with self._mutation() as store:
            result = self.ingestion.ingest(
                store,
                data,
                kind,
                filename,
                target_group_id=target_group_id,
                new_group_name=new_group_name,
            )
        return result

    async def import_path(self, file_path: str | Path, **options: Any) -> Dict[str, Any]:
        """Read a file from disk and import it, deriving the kind from its suffix."""
        file_path = Path(file_path)
        kind = kind_from_filename(file_path.name)
        data = await asyncio.to_thread(file_path.read_bytes)
        return await self.import_file(data, kind, file_path.name, **options)

    async def resolve(self, worldbook_ids: List[str]) -> str:
        """
        Resolve an agent's associated entry ids into prompt text.

        Args:
            worldbook_ids: The agent's ordered `worldbookIds`

        Returns:
            Formatted world info text ("" if nothing resolves)
        """
        if not worldbook_ids:
            return ""
        store = await self._load_store()
        return AssociationResolver(store, header=self.config.entry_header).resolve(
            worldbook_ids
        )
