"""
In-memory worldbook store over a loaded snapshot.

Mutations are synchronous and operate on `EntryStore.snapshot`; `load()` and
`save()` move the whole snapshot to and from the persistent keyed store.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from loguru import logger

from .models import (
    UNGROUPED,
    Entry,
    Group,
    Snapshot,
    coerce_keywords,
    create_entry,
    create_group,
    now_ms,
)


class SnapshotStorage(Protocol):
    async def load(self, key: str) -> Optional[Snapshot]: ...

    async def save(self, key: str, snapshot: Snapshot) -> None: ...


class EntryStore:
    """Owns the groups and entries of one worldbook and keeps their invariants.

    - every entry's `group_id` is None or the id of an existing group
    - deleting a group moves its entries to the ungrouped bucket
    """

    def __init__(self, storage: SnapshotStorage, key: str, snapshot: Optional[Snapshot] = None):
        self.storage = storage
        self.key = key
        self.snapshot = snapshot or Snapshot()

    async def load(self) -> Snapshot:
        """Replace the in-memory snapshot with the stored one (empty if none)."""
        stored = await self.storage.load(self.key)
        self.snapshot = stored if stored is not None else Snapshot()
        return self.snapshot

    async def save(self, snapshot: Optional[Snapshot] = None) -> None:
        if snapshot is not None:
            self.snapshot = snapshot
        await self.storage.save(self.key, self.snapshot)

    # Lookups

    def get_group(self, group_id: Optional[str]) -> Optional[Group]:
        if not group_id:
            return None
        return next((g for g in self.snapshot.groups if g.id == group_id), None)

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        return next((e for e in self.snapshot.entries if e.id == entry_id), None)

    def entries_in(self, scope: str) -> list[Entry]:
        """Return the entries of a group, or of the ungrouped bucket for `UNGROUPED`."""
        if scope == UNGROUPED:
            return [e for e in self.snapshot.entries if e.group_id is None]
        return [e for e in self.snapshot.entries if e.group_id == scope]

    def require_group(self, group_id: str) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise ValueError(f"Group '{group_id}' does not exist")
        return group

    # Mutations

    def create_group(self, name: str) -> Group:
        name = (name or "").strip()
        if not name:
            raise ValueError("Group name cannot be empty")
        group = create_group(name)
        self.snapshot.groups.append(group)
        logger.info(f"📁 Created group '{name}' ({group.id})")
        return group

    def create_entry(
        self,
        name: Optional[str] = None,
        content: Optional[str] = None,
        group_id: Optional[str] = None,
        keywords=None,
        enabled: bool = True,
    ) -> Entry:
        if group_id:
            self.require_group(group_id)
        entry = create_entry(
            name=name,
            content=content,
            group_id=group_id,
            keywords=keywords,
            enabled=enabled,
        )
        self.snapshot.entries.append(entry)
        return entry

    def update_entry(self, entry_id: str, **changes) -> Entry:
        """
        Edit an entry's name, content, group, enabled flag or keywords.

        A blank name keeps the current one. Unknown entry ids raise KeyError.
        """
        entry = self.get_entry(entry_id)
        if entry is None:
            raise KeyError(entry_id)

        if "group_id" in changes:
            group_id = changes["group_id"] or None
            if group_id is not None:
                self.require_group(group_id)
            entry.group_id = group_id
        if (changes.get("name") or "").strip():
            entry.name = changes["name"].strip()
        if changes.get("content") is not None:
            entry.content = changes["content"]
        if changes.get("enabled") is not None:
            entry.enabled = bool(changes["enabled"])
        if changes.get("keywords") is not None:
            entry.keywords = coerce_keywords(changes["keywords"])

        entry.updated_at = now_ms()
        return entry

    def rename_group(self, group_id: str, name: str) -> Group:
        name = (name or "").strip()
        if not name:
            raise ValueError("Group name cannot be empty")
        group = self.require_group(group_id)
        group.name = name
        return group

    def delete_group(self, group_id: str) -> int:
        """
        Delete a group, moving its entries to the ungrouped bucket.

        Returns:
            Number of entries that were ungrouped (0 if the group was unknown)
        """
        if self.get_group(group_id) is None:
            return 0

        moved = 0
        for entry in self.snapshot.entries:
            if entry.group_id == group_id:
                entry.group_id = None
                moved += 1
        self.snapshot.groups = [g for g in self.snapshot.groups if g.id != group_id]

        logger.info(f"🗑️ Deleted group '{group_id}', {moved} entries now ungrouped")
        return moved

    def delete_entries(self, ids: Iterable[str]) -> int:
        ids = set(ids)
        before = len(self.snapshot.entries)
        self.snapshot.entries = [e for e in self.snapshot.entries if e.id not in ids]
        return before - len(self.snapshot.entries)

    def reassign_entries(self, ids: Iterable[str], target_group_id: Optional[str]) -> int:
        """
        Move exactly the given entries to a group (or ungrouped for None).

        Returns:
            Number of entries reassigned
        """
        if target_group_id is not None:
            self.require_group(target_group_id)

        ids = set(ids)
        moved = 0
        for entry in self.snapshot.entries:
            if entry.id in ids:
                entry.group_id = target_group_id
                moved += 1
        return moved

    def merge(self, groups: Iterable[Group], entries: Iterable[Entry]) -> list[Entry]:
        """
        Add imported groups and entries to the snapshot.

        Groups whose id already exists are not added twice. Entries pointing at
        a group that exists neither in the store nor in `groups` are ungrouped.

        Returns:
            The entries that were added
        """
        known = {g.id for g in self.snapshot.groups}
        for group in groups:
            if group.id not in known:
                self.snapshot.groups.append(group)
                known.add(group.id)

        added = []
        for entry in entries:
            if entry.group_id is not None and entry.group_id not in known:
                logger.debug(
                    f"Entry '{entry.name}' references unknown group '{entry.group_id}', ungrouping"
                )
                entry.group_id = None
            self.snapshot.entries.append(entry)
            added.append(entry)
        return added
