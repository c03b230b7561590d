"""
Import pipeline for worldbook files.

Routes uploaded bytes by declared kind (PNG character card, DOCX document,
JSON world info) to the matching extractor and merges the result into the store.
"""

import json
import re
from pathlib import Path
from typing import Any, Literal, Optional

from loguru import logger

from .character_import import CharacterImportPipeline, display_name_for
from .errors import EmptyImportError, ParseError
from .image_metadata import ImageMetadataExtractor
from .models import Entry, create_entry
from .normalizer import DialectNormalizer
from .store import EntryStore

ImportKind = Literal["image", "document", "json"]

SUFFIX_KINDS: dict[str, ImportKind] = {
    ".png": "image",
    ".docx": "document",
    ".json": "json",
}

_RUN_RE = re.compile(r"<w:t[^>]*>([^<]*)</w:t>")
_PARAGRAPH_RE = re.compile(r"<w:p[^>]*>[\s\S]*?</w:p>")


def kind_from_filename(filename: str) -> ImportKind:
    """
    Map a file name to its declared import kind.

    Raises:
        ValueError: If the suffix is not one we import
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in SUFFIX_KINDS:
        raise ValueError(
            f"Unsupported file format: {suffix or filename}. Currently supported: .json, .docx, .png"
        )
    return SUFFIX_KINDS[suffix]


def parse_json_bytes(data: bytes, source: str = "upload") -> Any:
    """
    Parse user-supplied JSON.

    Raises:
        ParseError: If the bytes are not valid UTF-8 JSON
    """
    try:
        return json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Malformed JSON in '{source}': {e}") from e


class DocumentTextExtractor:
    """
    Best-effort text recovery from a DOCX container.

    The raw container bytes are scanned as text for `<w:t>` runs. The ZIP
    archive is not inflated, so this only finds text in documents whose
    `word/document.xml` is stored uncompressed; a typical DEFLATE-compressed
    file yields "".
    """

    def extract(self, data: bytes) -> str:
        text = data.decode("utf-8", errors="replace")

        runs = _RUN_RE.findall(text)
        if runs:
            joined = "".join(runs)
            if joined.strip():
                return joined

        # Paragraph pass reuses the run pattern on a subset of the text, so it
        # cannot find runs the pass above missed. Kept as the documented
        # fallback of the DOCX heuristic; not a real second strategy.
        paragraphs = []
        for paragraph in _PARAGRAPH_RE.findall(text):
            paragraph_text = "".join(_RUN_RE.findall(paragraph))
            if paragraph_text.strip():
                paragraphs.append(paragraph_text)
        result = "\n".join(paragraphs)
        if result.strip():
            return result

        logger.warning("DOCX extraction found no text runs")
        return ""


class IngestionPipeline:
    """
    Coordinates an import: extraction, normalization, and merging into a store.
    """

    def __init__(self, group_suffix: str = " World Info"):
        self.group_suffix = group_suffix
        self.image_extractor = ImageMetadataExtractor()
        self.document_extractor = DocumentTextExtractor()
        self.normalizer = DialectNormalizer()

    def ingest(
        self,
        store: EntryStore,
        data: bytes,
        kind: ImportKind,
        filename: str,
        target_group_id: Optional[str] = None,
        new_group_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Import one file into the store.

        Document and JSON imports go to `target_group_id`, to a group created
        from `new_group_name`, or keep their own grouping when neither is given.
        Character cards always get a group of their own.

        Args:
            store: Loaded store to merge into
            data: File bytes
            kind: Declared kind ("image", "document" or "json")
            filename: Original filename
            target_group_id: Optional existing group for all imported entries
            new_group_name: Optional name of a group to create for the import

        Returns:
            Dictionary with 'entry_ids', 'group_ids' and 'count'

        Raises:
            ParseError: If a JSON file is malformed
            EmptyImportError: If nothing usable was found
            ValueError: If the kind is unknown or the target group does not exist
        """
        if kind == "image":
            return self._ingest_card(store, data, filename)

        if kind == "document":
            entries = self._entries_from_document(data, filename)
            groups = []
        elif kind == "json":
            normalized = self.normalizer.normalize(parse_json_bytes(data, filename))
            entries, groups = normalized.entries, normalized.groups
        else:
            raise ValueError(f"Unknown import kind: {kind}")

        if not entries:
            raise EmptyImportError(filename)

        if target_group_id:
            store.require_group(target_group_id)
            groups = []
        elif new_group_name and new_group_name.strip():
            target_group_id = store.create_group(new_group_name).id
            groups = []

        if target_group_id:
            for entry in entries:
                entry.group_id = target_group_id

        added = store.merge(groups, entries)
        group_ids = sorted({e.group_id for e in added if e.group_id})
        logger.success(f"✅ Imported {len(added)} entries from '{filename}'")
        return {
            "entry_ids": [e.id for e in added],
            "group_ids": group_ids,
            "count": len(added),
        }

    def _entries_from_document(self, data: bytes, filename: str) -> list[Entry]:
        content = self.document_extractor.extract(data)
        if not content:
            return []
        return [create_entry(name=Path(filename).stem, content=content)]

    def _ingest_card(self, store: EntryStore, data: bytes, filename: str) -> dict[str, Any]:
        card = self.image_extractor.extract(data)
        if card is None:
            logger.info(f"📥 '{filename}' carries no character card")
            raise EmptyImportError(filename)

        pipeline = CharacterImportPipeline(store, self.group_suffix)
        entry_ids = pipeline.import_character(card, display_name_for(card, Path(filename).stem))
        if not entry_ids:
            raise EmptyImportError(filename)

        return {
            "entry_ids": entry_ids,
            "group_ids": [pipeline.group_id],
            "count": len(entry_ids),
        }
