"""
Resolve an agent's associated entry ids into prompt text.
"""

from __future__ import annotations

from typing import Iterable

from .store import EntryStore


class AssociationResolver:
    """Concatenate the enabled entries an agent references, in reference order."""

    def __init__(self, store: EntryStore, header: str = "【{name}】"):
        self.store = store
        self.header = header

    def resolve(self, ids: Iterable[str]) -> str:
        """
        Format the referenced entries as labeled blocks.

        Unknown ids, disabled entries and repeated ids are skipped.

        Args:
            ids: Entry ids from the agent's `worldbookIds`

        Returns:
            Blocks of "header\\ncontent" joined by blank lines, or "" if none
        """
        entries = {e.id: e for e in self.store.snapshot.entries}
        blocks = []
        seen: set[str] = set()

        for entry_id in ids or []:
            entry = entries.get(entry_id)
            if entry is None or not entry.enabled or entry_id in seen:
                continue
            seen.add(entry_id)
            blocks.append(f"{self.header.replace('{name}', entry.name)}\n{entry.content}")

        return "\n\n".join(blocks)
