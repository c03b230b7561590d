"""Unit tests for DOCX text extraction.

The extractor scans the raw container bytes without inflating the ZIP
archive, so it only recovers text from documents stored uncompressed.
"""

from __future__ import annotations

import io
import unittest
import zipfile
from pathlib import Path
import sys


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


DOCUMENT_XML = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:body>
    <w:p><w:r><w:t>王都位于北境。</w:t></w:r></w:p>
    <w:p><w:r><w:t xml:space="preserve">The capital </w:t></w:r><w:r><w:t>never sleeps.</w:t></w:r></w:p>
  </w:body>
</w:document>
"""


def _build_docx(xml: str, compression: int) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as zf:
        zf.writestr("[Content_Types].xml", "<Types/>")
        zf.writestr("word/document.xml", xml)
    return buffer.getvalue()


class TestDocumentTextExtractor(unittest.TestCase):
    """Tests for `DocumentTextExtractor.extract`."""

    def setUp(self) -> None:
        from worldbook_engine.worldbook.ingestion import DocumentTextExtractor

        self.extractor = DocumentTextExtractor()

    def test_extracts_runs_from_stored_docx(self) -> None:
        data = _build_docx(DOCUMENT_XML, zipfile.ZIP_STORED)

        text = self.extractor.extract(data)

        self.assertEqual(text, "王都位于北境。The capital never sleeps.")

    def test_deflated_docx_yields_nothing(self) -> None:
        """Compressed documents are not inflated, so no runs are visible."""
        data = _build_docx(DOCUMENT_XML, zipfile.ZIP_DEFLATED)

        self.assertEqual(self.extractor.extract(data), "")

    def test_whitespace_only_runs_yield_nothing(self) -> None:
        xml = "<w:document><w:body><w:p><w:r><w:t> </w:t></w:r></w:p></w:body></w:document>"
        data = _build_docx(xml, zipfile.ZIP_STORED)

        self.assertEqual(self.extractor.extract(data), "")

    def test_non_zip_bytes_do_not_crash(self) -> None:
        self.assertEqual(self.extractor.extract(b"\xff\xfe\x00garbage\x80"), "")


class TestKindFromFilename(unittest.TestCase):
    def test_known_suffixes(self) -> None:
        from worldbook_engine.worldbook.ingestion import kind_from_filename

        self.assertEqual(kind_from_filename("Alice.PNG"), "image")
        self.assertEqual(kind_from_filename("notes.docx"), "document")
        self.assertEqual(kind_from_filename("lore.json"), "json")

    def test_unsupported_suffix_raises(self) -> None:
        from worldbook_engine.worldbook.ingestion import kind_from_filename

        with self.assertRaises(ValueError):
            kind_from_filename("notes.pdf")


class TestParseJsonBytes(unittest.TestCase):
    def test_malformed_json_raises_parse_error(self) -> None:
        from worldbook_engine.worldbook.errors import ParseError
        from worldbook_engine.worldbook.ingestion import parse_json_bytes

        with self.assertRaises(ParseError):
            parse_json_bytes(b'{"entries": [', "broken.json")

    def test_accepts_utf8_bom(self) -> None:
        from worldbook_engine.worldbook.ingestion import parse_json_bytes

        self.assertEqual(parse_json_bytes("\ufeff{\"name\": \"北境\"}".encode("utf-8")), {"name": "北境"})


if __name__ == "__main__":
    unittest.main()
