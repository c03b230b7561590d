"""Integration tests for `WorldbookManager` over real storage backends.

Files are synthesized in memory; no server is required.
"""

from __future__ import annotations

import asyncio
import base64
import io
import json
import struct
import tempfile
import unittest
import zipfile
import zlib
from pathlib import Path
import sys


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def _chunk(chunk_type: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + chunk_type + payload + struct.pack(">I", crc)


def _card_png(card: dict) -> bytes:
    encoded = base64.b64encode(json.dumps(card, ensure_ascii=False).encode("utf-8"))
    return (
        b"\x89PNG\r\n\x1a\n"
        + _chunk(b"IHDR", b"\x00" * 13)
        + _chunk(b"tEXt", b"chara\x00" + encoded)
        + _chunk(b"IEND", b"")
    )


def _stored_docx(text: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as zf:
        zf.writestr(
            "word/document.xml",
            f"<w:document><w:body><w:p><w:r><w:t>{text}</w:t></w:r></w:p></w:body></w:document>",
        )
    return buffer.getvalue()


CARD = {
    "spec": "chara_card_v2",
    "data": {
        "name": "Lilith",
        "character_book": {
            "entries": [
                {"comment": "Castle", "content": "A ruined castle.", "enabled": True},
                {"comment": "Hidden", "content": "Secret.", "enabled": False},
            ]
        },
    },
}


class TestWorldbookManager(unittest.IsolatedAsyncioTestCase):
    """Tests for import, organization and resolution through the manager."""

    async def asyncSetUp(self) -> None:
        from worldbook_engine.config_manager.worldbook import WorldbookConfig
        from worldbook_engine.worldbook.manager import WorldbookManager

        self._tmp = tempfile.TemporaryDirectory()
        self.config = WorldbookConfig(base_dir=self._tmp.name)
        self.manager = WorldbookManager(self.config)

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()

    async def test_json_import_persists_entries(self) -> None:
        data = json.dumps({"entries": {"0": {"comment": "王都", "content": "北境"}}}).encode()

        result = await self.manager.import_file(data, "json", "lore.json")

        self.assertEqual(result["count"], 1)
        snapshot = await self.manager.get_snapshot()
        self.assertEqual([e["name"] for e in snapshot["entries"]], ["王都"])
        self.assertIsNone(snapshot["entries"][0]["groupId"])

    async def test_json_import_into_new_group(self) -> None:
        data = json.dumps([{"name": "a", "content": "1"}, {"name": "b", "content": "2"}]).encode()

        result = await self.manager.import_file(
            data, "json", "list.json", new_group_name="Imported"
        )

        snapshot = await self.manager.get_snapshot()
        self.assertEqual([g["name"] for g in snapshot["groups"]], ["Imported"])
        group_id = snapshot["groups"][0]["id"]
        self.assertEqual(result["group_ids"], [group_id])
        self.assertTrue(all(e["groupId"] == group_id for e in snapshot["entries"]))

    async def test_json_import_into_existing_group(self) -> None:
        group = await self.manager.create_group("Target")
        data = json.dumps({"entries": [{"name": "a", "groupId": "group-elsewhere"}]}).encode()

        await self.manager.import_file(data, "json", "x.json", target_group_id=group["id"])

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(snapshot["entries"][0]["groupId"], group["id"])

    async def test_json_import_into_unknown_group_changes_nothing(self) -> None:
        data = json.dumps([{"name": "a"}]).encode()

        with self.assertRaises(ValueError):
            await self.manager.import_file(data, "json", "x.json", target_group_id="group-missing")

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(snapshot["entries"], [])

    async def test_export_import_keeps_its_groups(self) -> None:
        data = json.dumps(
            {
                "groups": [{"id": "group-a", "name": "A"}],
                "entries": [
                    {"name": "x", "groupId": "group-a"},
                    {"name": "y", "groupId": "group-gone"},
                ],
            }
        ).encode()

        await self.manager.import_file(data, "json", "export.json")

        snapshot = await self.manager.get_snapshot()
        self.assertEqual([g["id"] for g in snapshot["groups"]], ["group-a"])
        self.assertEqual([e["groupId"] for e in snapshot["entries"]], ["group-a", None])

    async def test_malformed_json_raises_parse_error(self) -> None:
        from worldbook_engine.worldbook.errors import ParseError

        with self.assertRaises(ParseError):
            await self.manager.import_file(b"{oops", "json", "bad.json")

    async def test_empty_json_import_is_reported(self) -> None:
        from worldbook_engine.worldbook.errors import EmptyImportError

        with self.assertRaises(EmptyImportError):
            await self.manager.import_file(
                b"[]", "json", "empty.json", new_group_name="Never created"
            )

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(snapshot["groups"], [])

    async def test_document_import(self) -> None:
        result = await self.manager.import_file(
            _stored_docx("Rivers flow north."), "document", "Geography.docx"
        )

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(result["count"], 1)
        self.assertEqual(snapshot["entries"][0]["name"], "Geography")
        self.assertEqual(snapshot["entries"][0]["content"], "Rivers flow north.")

    async def test_unreadable_document_is_reported(self) -> None:
        from worldbook_engine.worldbook.errors import EmptyImportError

        with self.assertRaises(EmptyImportError):
            await self.manager.import_file(b"PK\x03\x04nothing", "document", "x.docx")

    async def test_character_card_import(self) -> None:
        result = await self.manager.import_file(_card_png(CARD), "image", "lilith.png")

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(result["count"], 1)
        self.assertEqual([g["name"] for g in snapshot["groups"]], ["Lilith World Info"])
        self.assertEqual(result["group_ids"], [snapshot["groups"][0]["id"]])
        self.assertEqual(snapshot["entries"][0]["name"], "Castle")

    async def test_card_without_usable_entries_leaves_no_group(self) -> None:
        from worldbook_engine.worldbook.errors import EmptyImportError

        card = {"data": {"name": "Empty", "character_book": {"entries": [{"content": ""}]}}}

        with self.assertRaises(EmptyImportError):
            await self.manager.import_file(_card_png(card), "image", "empty.png")

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(snapshot["groups"], [])
        self.assertEqual(snapshot["entries"], [])

    async def test_plain_png_is_reported(self) -> None:
        from worldbook_engine.worldbook.errors import EmptyImportError

        with self.assertRaises(EmptyImportError):
            await self.manager.import_file(b"not a png at all", "image", "photo.png")

    async def test_import_path_reads_file(self) -> None:
        path = Path(self._tmp.name) / "lore.json"
        path.write_text(json.dumps({"name": "Moon", "content": "Two."}), encoding="utf-8")

        result = await self.manager.import_path(path)

        self.assertEqual(result["count"], 1)

    async def test_stored_keyword_string_survives_a_mutation(self) -> None:
        storage = self.manager.storage
        storage.get_snapshot_path(self.config.storage_key).write_text(
            json.dumps(
                {
                    "groups": [],
                    "entries": [
                        {"id": "entry-1", "name": "Dragon", "content": "Big.", "keywords": "dragon"},
                        {"id": "entry-2", "name": "Moon", "content": "Two.", "keywords": ["moon"]},
                    ],
                }
            ),
            encoding="utf-8",
        )

        await self.manager.create_group("New")

        snapshot = await self.manager.get_snapshot()
        self.assertEqual([e["id"] for e in snapshot["entries"]], ["entry-1", "entry-2"])
        self.assertEqual(snapshot["entries"][0]["keywords"], ["dragon"])
        self.assertEqual([g["name"] for g in snapshot["groups"]], ["New"])

    async def test_delete_group_keeps_entries(self) -> None:
        group = await self.manager.create_group("Doomed")
        for i in range(3):
            await self.manager.create_entry(name=f"e{i}", group_id=group["id"])

        moved = await self.manager.delete_group(group["id"])

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(moved, 3)
        self.assertEqual(snapshot["groups"], [])
        self.assertEqual(len(snapshot["entries"]), 3)
        self.assertTrue(all(e["groupId"] is None for e in snapshot["entries"]))
        self.assertIsNone(await self.manager.delete_group(group["id"]))

    async def test_entry_edit_and_delete(self) -> None:
        entry = await self.manager.create_entry(name="Draft", content="v1")

        updated = await self.manager.update_entry(entry["id"], content="v2", enabled=False)

        self.assertEqual(updated["content"], "v2")
        self.assertFalse(updated["enabled"])
        self.assertIsNone(await self.manager.update_entry("entry-missing", content="x"))
        self.assertTrue(await self.manager.delete_entry(entry["id"]))
        self.assertFalse(await self.manager.delete_entry(entry["id"]))

    async def test_rename_group(self) -> None:
        group = await self.manager.create_group("Old")

        renamed = await self.manager.rename_group(group["id"], "New")

        self.assertEqual(renamed["name"], "New")
        self.assertEqual(renamed["createdAt"], group["createdAt"])

    async def test_batch_move_and_delete(self) -> None:
        from worldbook_engine.worldbook.batch import NewGroup
        from worldbook_engine.worldbook.models import UNGROUPED

        entries = [await self.manager.create_entry(name=f"e{i}") for i in range(4)]
        ids = [e["id"] for e in entries]

        moved = await self.manager.batch_move(UNGROUPED, ids[:2], NewGroup("Moved"))
        deleted = await self.manager.batch_delete(UNGROUPED, [ids[0], ids[2]])

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(moved, 2)
        # ids[0] is no longer in the ungrouped view, so only ids[2] is deleted.
        self.assertEqual(deleted, 1)
        remaining = {e["id"]: e["groupId"] for e in snapshot["entries"]}
        self.assertEqual(set(remaining), {ids[0], ids[1], ids[3]})
        self.assertEqual(remaining[ids[0]], snapshot["groups"][0]["id"])
        self.assertIsNone(remaining[ids[3]])

    async def test_resolve(self) -> None:
        a = await self.manager.create_entry(name="A", content="alpha")
        b = await self.manager.create_entry(name="B", content="beta")
        c = await self.manager.create_entry(name="C", content="gamma", enabled=False)

        text = await self.manager.resolve([b["id"], c["id"], "entry-missing", a["id"]])

        self.assertEqual(text, "【B】\nbeta\n\n【A】\nalpha")
        self.assertEqual(await self.manager.resolve([]), "")

    async def test_concurrent_mutations_are_not_lost(self) -> None:
        await asyncio.gather(
            *(self.manager.create_entry(name=f"e{i}") for i in range(10)),
            self.manager.import_file(b'[{"name": "x"}, {"name": "y"}]', "json", "x.json"),
        )

        snapshot = await self.manager.get_snapshot()
        self.assertEqual(len(snapshot["entries"]), 12)


class TestSQLiteBackedManager(unittest.IsolatedAsyncioTestCase):
    async def test_sqlite_backend_persists_across_managers(self) -> None:
        from worldbook_engine.config_manager.worldbook import WorldbookConfig
        from worldbook_engine.worldbook.manager import WorldbookManager, create_storage
        from worldbook_engine.worldbook.sqlite_storage import SQLiteSnapshotStorage

        with tempfile.TemporaryDirectory() as tmp:
            config = WorldbookConfig(base_dir=tmp, storage_backend="sqlite")
            self.assertIsInstance(create_storage(config), SQLiteSnapshotStorage)

            await WorldbookManager(config).create_entry(name="Persisted", content="yes")
            snapshot = await WorldbookManager(config).get_snapshot()

        self.assertEqual([e["name"] for e in snapshot["entries"]], ["Persisted"])


if __name__ == "__main__":
    unittest.main()
