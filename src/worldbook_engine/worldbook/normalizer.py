"""
Normalize the JSON world-info dialects we accept into groups and entries.

Recognized shapes, checked in this order:

1. SillyTavern world info: ``{"entries": {"0": {...}, "1": {...}}}``
2. A bare list of entry objects: ``[{...}, {...}]``
3. Our own export: ``{"entries": [...], "groups": [...]}``
4. Any other object: a single entry

Field names differ between dialects, so each one declares an ordered list of
aliases per canonical field; the first alias holding a non-empty value wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from .models import Entry, Group, create_entry, create_group


@dataclass(frozen=True)
class FieldAliases:
    name: Sequence[str]
    content: Sequence[str]
    keywords: Sequence[str]


KEYED_ALIASES = FieldAliases(
    name=("comment", "name", "title"),
    content=("content", "description"),
    keywords=("key", "keys", "keywords"),
)
LIST_ALIASES = FieldAliases(
    name=("name", "title", "key", "comment"),
    content=("content", "description", "value", "text"),
    keywords=("keywords", "keys", "key"),
)
EXPORT_ALIASES = FieldAliases(
    name=("name", "title", "comment"),
    content=("content", "description"),
    keywords=("keywords", "key"),
)
SINGLE_ALIASES = EXPORT_ALIASES

UNNAMED = "未命名"


@dataclass
class NormalizedImport:
    groups: list[Group] = field(default_factory=list)
    entries: list[Entry] = field(default_factory=list)


def pick(item: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    """Return the value of the first alias present with a non-empty value."""
    for alias in aliases:
        value = item.get(alias)
        if value not in (None, "", [], {}):
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def is_disabled(item: Mapping[str, Any]) -> bool:
    return item.get("disable") is True or item.get("enabled") is False


def entry_from_item(
    item: Mapping[str, Any],
    aliases: FieldAliases,
    default_name: str = UNNAMED,
    group_id: Optional[str] = None,
) -> Entry:
    return create_entry(
        name=_text(pick(item, aliases.name)) or default_name,
        content=_text(pick(item, aliases.content)),
        group_id=group_id,
        keywords=pick(item, aliases.keywords),
    )


def entries_from_keyed(entries: Mapping[str, Any], aliases: FieldAliases = KEYED_ALIASES) -> list[Entry]:
    """Convert an index-keyed entries object, skipping disabled and non-object values."""
    result = []
    for key, item in entries.items():
        if not isinstance(item, Mapping) or is_disabled(item):
            continue
        result.append(entry_from_item(item, aliases, default_name=f"设定 {key}"))
    return result


def entries_from_list(items: Sequence[Any], aliases: FieldAliases = LIST_ALIASES) -> list[Entry]:
    return [entry_from_item(item, aliases) for item in items if isinstance(item, Mapping)]


class DialectNormalizer:
    """Turn any recognized import document into store records."""

    def normalize(self, data: Any) -> NormalizedImport:
        if isinstance(data, Mapping) and isinstance(data.get("entries"), Mapping):
            return NormalizedImport(entries=entries_from_keyed(data["entries"]))

        if isinstance(data, list):
            return NormalizedImport(entries=entries_from_list(data))

        if isinstance(data, Mapping) and isinstance(data.get("entries"), list):
            return self._normalize_export(data)

        if isinstance(data, Mapping):
            return NormalizedImport(entries=[entry_from_item(data, SINGLE_ALIASES)])

        return NormalizedImport()

    def _normalize_export(self, data: Mapping[str, Any]) -> NormalizedImport:
        raw_groups = data.get("groups")
        groups = [
            create_group(
                _text(g.get("name")) or None,
                group_id=_text(g.get("id")) or None,
                created_at=g.get("createdAt") if isinstance(g.get("createdAt"), int) else None,
            )
            for g in (raw_groups if isinstance(raw_groups, list) else [])
            if isinstance(g, Mapping)
        ]
        entries = [
            entry_from_item(
                e, EXPORT_ALIASES, group_id=_text(e.get("groupId")) or None
            )
            for e in data["entries"]
            if isinstance(e, Mapping)
        ]
        return NormalizedImport(groups=groups, entries=entries)
