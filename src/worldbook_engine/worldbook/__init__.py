"""
World-info (worldbook) engine.

Imports character cards, documents and JSON world info into groups and
entries, reorganizes them, and resolves an agent's associated entries into
prompt text.
"""

from .batch import BatchSession, NewGroup
from .character_import import CharacterImportPipeline
from .errors import EmptyImportError, ParseError, WorldbookError
from .image_metadata import ImageMetadataExtractor
from .ingestion import DocumentTextExtractor, IngestionPipeline, kind_from_filename
from .manager import WorldbookManager, create_storage
from .models import UNGROUPED, Entry, Group, Snapshot
from .normalizer import DialectNormalizer
from .resolver import AssociationResolver
from .sqlite_storage import SQLiteSnapshotStorage
from .storage_manager import WorldbookStorageManager
from .store import EntryStore

__all__ = [
    "AssociationResolver",
    "BatchSession",
    "CharacterImportPipeline",
    "DialectNormalizer",
    "DocumentTextExtractor",
    "EmptyImportError",
    "Entry",
    "EntryStore",
    "Group",
    "ImageMetadataExtractor",
    "IngestionPipeline",
    "NewGroup",
    "ParseError",
    "SQLiteSnapshotStorage",
    "Snapshot",
    "UNGROUPED",
    "WorldbookError",
    "WorldbookManager",
    "WorldbookStorageManager",
    "create_storage",
    "kind_from_filename",
]
