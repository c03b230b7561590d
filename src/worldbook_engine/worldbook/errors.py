"""
Errors raised by the worldbook engine.

Only malformed user data (`ParseError`) and imports that recover nothing
(`EmptyImportError`) reach the caller. "Not this format", "no text found"
and dangling association ids are ordinary results (`None`, `""`, dropped).
"""


class WorldbookError(Exception):
    """Base class for worldbook errors."""


class ParseError(WorldbookError, ValueError):
    """User-supplied data is corrupt: invalid JSON or a truncated binary read."""


class EmptyImportError(WorldbookError):
    """An import recovered zero usable entries."""

    def __init__(self, source: str):
        super().__init__(f"No importable entries found in '{source}'")
        self.source = source
