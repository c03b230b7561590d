"""
Import the embedded world info ("character book") of a character card.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from loguru import logger

from .normalizer import KEYED_ALIASES, entry_from_item, is_disabled
from .store import EntryStore


def _card_data(card: Any) -> Mapping[str, Any]:
    """Return the card body, unwrapping V2/V3 cards that nest it under `data`."""
    if not isinstance(card, Mapping):
        return {}
    data = card.get("data")
    if isinstance(data, Mapping) and "character_book" in data:
        return data
    return card


def book_items(card: Any) -> list[tuple[str, Mapping[str, Any]]]:
    """List `(index, entry)` pairs from `character_book.entries` (object or array)."""
    book = _card_data(card).get("character_book")
    entries = book.get("entries") if isinstance(book, Mapping) else None

    if isinstance(entries, Mapping):
        pairs = list(entries.items())
    elif isinstance(entries, list):
        pairs = [(str(i), item) for i, item in enumerate(entries)]
    else:
        return []
    return [(key, item) for key, item in pairs if isinstance(item, Mapping)]


def display_name_for(card: Any, fallback: str) -> str:
    """Pick the character name from a card, falling back to e.g. the file stem."""
    if not isinstance(card, Mapping):
        return fallback
    for source in (card.get("data"), card):
        if isinstance(source, Mapping):
            name = source.get("name")
            if isinstance(name, str) and name.strip():
                return name.strip()
    return fallback


class CharacterImportPipeline:
    """
    Turn a card's character book into one new group of entries.

    The group is created before any entry is added and removed again if the
    card yields no usable entries, so a failed import leaves no empty group.
    """

    def __init__(self, store: EntryStore, group_suffix: str = " World Info"):
        self.store = store
        self.group_suffix = group_suffix
        # group created by the last import; None if it was rolled back
        self.group_id: Optional[str] = None

    def import_character(self, card: Any, display_name: str) -> list[str]:
        """
        Import enabled, non-empty book entries of a card.

        Args:
            card: Parsed card JSON
            display_name: Character name used for the new group

        Returns:
            Ids of the created entries (empty if nothing was imported)
        """
        self.group_id = None
        group = self.store.create_group(f"{display_name}{self.group_suffix}")

        entry_ids: list[str] = []
        for key, item in book_items(card):
            if is_disabled(item):
                continue
            entry = entry_from_item(
                item, KEYED_ALIASES, default_name=f"设定 {key}", group_id=group.id
            )
            if not entry.content.strip():
                continue
            self.store.merge([], [entry])
            entry_ids.append(entry.id)

        if not entry_ids:
            self.store.delete_group(group.id)
            logger.info(f"📥 Card '{display_name}' has no usable world info, group rolled back")
            return []

        self.group_id = group.id
        logger.info(
            f"📥 Imported {len(entry_ids)} world info entries for '{display_name}' into '{group.name}'"
        )
        return entry_ids
