"""
Data model for worldbook groups and entries.

Records are persisted and exchanged with camelCase field names (`groupId`,
`createdAt`, ...) and timestamps in epoch milliseconds.
"""

from __future__ import annotations

import secrets
import time
from typing import Any, Mapping, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_GROUP_NAME = "未命名分组"
DEFAULT_ENTRY_NAME = "未命名设定"

# The virtual "ungrouped" bucket. Never stored as a Group record.
UNGROUPED = "__ungrouped__"


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id(prefix: str = "wb") -> str:
    """Return a new id of the form `{prefix}-{epoch ms}-{6 hex chars}`."""
    return f"{prefix}-{now_ms()}-{secrets.token_hex(3)}"


def coerce_keywords(value: Any) -> list[str]:
    """Normalize a keyword field from any import source into a list of strings."""
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item)]
    return [str(value)]


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class Group(_Record):
    id: str
    name: str
    created_at: int = Field(default_factory=now_ms, alias="createdAt")


class Entry(_Record):
    id: str
    name: str
    content: str = ""
    group_id: Optional[str] = Field(None, alias="groupId")
    keywords: list[str] = Field(default_factory=list)
    enabled: bool = True
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    updated_at: int = Field(default_factory=now_ms, alias="updatedAt")

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> list[str]:
        return coerce_keywords(value)


RecordT = TypeVar("RecordT", bound=_Record)


def _valid_records(model: Type[RecordT], items: Any, kind: str) -> list[RecordT]:
    """Validate stored records one at a time, dropping only the invalid ones."""
    if not isinstance(items, list):
        return []
    records = []
    for index, item in enumerate(items):
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"⚠️ Dropping unreadable stored {kind} #{index}: {e.error_count()} errors")
    return records


class Snapshot(_Record):
    groups: list[Group] = Field(default_factory=list)
    entries: list[Entry] = Field(default_factory=list)

    @field_validator("groups", "entries", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "Snapshot":
        """
        Build a snapshot from a stored record.

        Each group and entry is validated on its own, so one bad record does
        not take the rest of the worldbook with it.
        """
        return cls(
            groups=_valid_records(Group, data.get("groups"), "group"),
            entries=_valid_records(Entry, data.get("entries"), "entry"),
        )


def create_group(name: Optional[str] = None, *, group_id: Optional[str] = None,
                 created_at: Optional[int] = None) -> Group:
    return Group(
        id=group_id or generate_id("group"),
        name=name or DEFAULT_GROUP_NAME,
        created_at=created_at or now_ms(),
    )


def create_entry(
    name: Optional[str] = None,
    content: Optional[str] = None,
    group_id: Optional[str] = None,
    keywords: Any = None,
    enabled: bool = True,
) -> Entry:
    """Build a new entry with a fresh id and both timestamps set to now."""
    timestamp = now_ms()
    return Entry(
        id=generate_id("entry"),
        name=name or DEFAULT_ENTRY_NAME,
        content=content or "",
        group_id=group_id or None,
        keywords=coerce_keywords(keywords),
        enabled=enabled,
        created_at=timestamp,
        updated_at=timestamp,
    )
