"""
Selection-scoped batch operations over a worldbook store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from loguru import logger

from .models import UNGROUPED
from .store import EntryStore


@dataclass(frozen=True)
class NewGroup:
    """Move target asking for a freshly created group."""

    name: str


MoveTarget = Union[str, NewGroup]


class BatchSession:
    """
    Selection state for one organizing view: a group's members or the
    ungrouped bucket (`UNGROUPED`).

    The selection lives only as long as the session and is cleared whenever
    the view changes.
    """

    def __init__(self, store: EntryStore, scope: str = UNGROUPED):
        self.store = store
        self.scope = scope
        self.selected: set[str] = set()

    def visible_ids(self) -> list[str]:
        return [e.id for e in self.store.entries_in(self.scope)]

    def set_scope(self, scope: str) -> None:
        self.scope = scope
        self.selected.clear()

    def toggle_one(self, entry_id: str) -> None:
        """Flip one entry's selection. Ids outside the view are ignored."""
        if entry_id in self.selected:
            self.selected.discard(entry_id)
        elif entry_id in self.visible_ids():
            self.selected.add(entry_id)

    def toggle_all(self) -> None:
        """Select every visible entry, or clear if they are all selected already."""
        visible = set(self.visible_ids())
        if self.selected == visible:
            self.selected.clear()
        else:
            self.selected = visible

    def select(self, entry_ids: Iterable[str]) -> None:
        """Add the given ids to the selection, ignoring ids outside the view."""
        visible = set(self.visible_ids())
        self.selected.update(i for i in entry_ids if i in visible)

    def _visible_selection(self) -> set[str]:
        return self.selected & set(self.visible_ids())

    def move_selection(self, target: MoveTarget) -> int:
        """
        Reassign the selected entries and clear the selection.

        Args:
            target: A group id, `UNGROUPED`, or `NewGroup(name)`

        Returns:
            Number of entries moved
        """
        selection = self._visible_selection()
        if not selection:
            self.selected.clear()
            return 0

        if isinstance(target, NewGroup):
            target_group_id = self.store.create_group(target.name).id
        elif target == UNGROUPED:
            target_group_id = None
        else:
            target_group_id = target

        moved = self.store.reassign_entries(selection, target_group_id)
        self.selected.clear()
        logger.info(f"📦 Moved {moved} entries to {target_group_id or 'ungrouped'}")
        return moved

    def delete_selection(self) -> int:
        selection = self._visible_selection()
        if not selection:
            self.selected.clear()
            return 0
        deleted = self.store.delete_entries(selection)
        self.selected.clear()
        logger.info(f"📦 Deleted {deleted} entries")
        return deleted
