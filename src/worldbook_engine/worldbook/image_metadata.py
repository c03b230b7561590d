"""
Recover character-card JSON embedded in PNG text chunks.

Cards are stored in `tEXt` or `iTXt` chunks under the keyword `chara`,
`ccv3` or `character`, usually as base64 of the UTF-8 JSON document.
"""

from __future__ import annotations

import base64
import json
import re
import struct
from typing import Any, Iterator, NamedTuple, Optional

from loguru import logger

from .errors import ParseError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
END_CHUNK = b"IEND"
TEXT_CHUNK_TYPES = (b"tEXt", b"iTXt")
CARD_KEYWORDS = frozenset({"chara", "ccv3", "character"})


class ByteCursor:
    """Sequential reader over a byte buffer that refuses to read past the end."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read(self, size: int) -> bytes:
        if size < 0 or size > self.remaining:
            raise ParseError(
                f"Read of {size} bytes at offset {self.offset} exceeds buffer of {len(self.data)} bytes"
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def read_u32(self) -> int:
        return struct.unpack(">I", self.read(4))[0]

    def skip(self, size: int) -> None:
        self.read(size)


class Chunk(NamedTuple):
    type: bytes
    payload: bytes


def iter_chunks(data: bytes) -> Iterator[Chunk]:
    """
    Yield the chunks of a PNG stream up to and including `IEND`.

    The CRC of each chunk is skipped, not verified.

    Raises:
        ParseError: If a chunk runs past the end of the buffer.
    """
    cursor = ByteCursor(data, len(PNG_SIGNATURE))
    while cursor.remaining > 0:
        length = cursor.read_u32()
        chunk_type = cursor.read(4)
        payload = cursor.read(length)
        cursor.skip(4)
        yield Chunk(chunk_type, payload)
        if chunk_type == END_CHUNK:
            return


def _split_text_chunk(chunk: Chunk) -> tuple[str, bytes]:
    keyword, _, remainder = chunk.payload.partition(b"\x00")
    if chunk.type == b"iTXt":
        # compression flag, method, language tag and translated keyword precede the text
        remainder = remainder.split(b"\x00")[-1]
    return keyword.decode("latin-1"), remainder


def _decode_card_text(raw: bytes) -> Optional[Any]:
    text = raw.decode("utf-8", errors="replace").strip()
    # writers wrap long base64 lines and some drop the trailing padding
    compact = re.sub(r"\s+", "", text)
    compact += "=" * (-len(compact) % 4)
    try:
        decoded = base64.b64decode(compact, validate=True).decode("utf-8")
    except ValueError:
        decoded = text
    try:
        return json.loads(decoded)
    except json.JSONDecodeError:
        return None


class ImageMetadataExtractor:
    """Find the first recognized text chunk whose payload decodes to JSON."""

    def __init__(self, keywords: frozenset[str] = CARD_KEYWORDS):
        self.keywords = keywords

    def extract(self, data: bytes) -> Optional[Any]:
        """
        Extract the embedded card JSON from PNG bytes.

        Args:
            data: Raw file bytes

        Returns:
            The parsed JSON value, or None if the bytes are not a PNG or carry
            no decodable card
        """
        if data[: len(PNG_SIGNATURE)] != PNG_SIGNATURE:
            return None

        try:
            for chunk in iter_chunks(data):
                if chunk.type not in TEXT_CHUNK_TYPES:
                    continue
                keyword, raw = _split_text_chunk(chunk)
                if keyword not in self.keywords:
                    continue
                card = _decode_card_text(raw)
                if card is None:
                    logger.warning(f"🧩 Skipping undecodable '{keyword}' chunk")
                    continue
                logger.debug(f"🧩 Found card payload in '{keyword}' {chunk.type.decode()} chunk")
                return card
        except ParseError as e:
            logger.warning(f"🧩 Truncated PNG stream: {e}")

        return None
