"""Tests for the export pipeline and archive inspection."""

import io
import json
import zipfile
from unittest.mock import AsyncMock

import pytest

from cms_backup.backup.archive import (
    inspect_archive,
    open_archive,
    read_entry,
    read_manifest,
    scan_table_entries,
)
from cms_backup.backup.codec import decode_rows
from cms_backup.backup.errors import ArchiveFormatError, DecodeError
from cms_backup.backup.export import export_archive, write_archive
from cms_backup.backup.registry import BACKUP_TABLE_NAMES, MANIFEST_PATH


def _make_mock_adapter(tables: dict[str, list[dict]], failing: set[str] = frozenset()) -> AsyncMock:
    """AsyncMock adapter serving fixed rows per table; other tables are empty."""
    adapter = AsyncMock()
    adapter.dialect_name = "mysql"

    async def _select(table, columns="*", filters=None, order_by=None):
        if table in failing:
            raise RuntimeError(f"relation {table} does not exist")
        return tables.get(table, [])

    adapter.select = AsyncMock(side_effect=_select)
    return adapter


# ------------------------------------------------------------------
# Export with a mock adapter
# ------------------------------------------------------------------


class TestExportArchive:
    """Archive layout and manifest contents."""

    async def test_every_catalog_table_is_queried_in_order(self):
        adapter = _make_mock_adapter({})
        await export_archive(adapter)
        queried = [call.args[0] for call in adapter.select.await_args_list]
        assert queried == list(BACKUP_TABLE_NAMES)

    async def test_layout_and_manifest(self):
        adapter = _make_mock_adapter({"posts": [{"id": "p1", "title": "Hello"}]})
        payload = await export_archive(adapter)

        with zipfile.ZipFile(io.BytesIO(payload)) as zf:
            names = zf.namelist()
            assert "mx-space-go/db/posts.bson" in names
            assert MANIFEST_PATH in names
            assert decode_rows(zf.read("mx-space-go/db/posts.bson"), "bson") == [
                {"id": "p1", "title": "Hello"}
            ]
            assert zf.read("mx-space-go/db/notes.bson") == b""
            manifest = json.loads(zf.read(MANIFEST_PATH))

        assert manifest["format"] == "mx-core-go-bson"
        assert manifest["version"] == 1
        assert manifest["engine"] == "mysql"
        assert manifest["created_at"].endswith("Z")
        assert manifest["tables"] == list(BACKUP_TABLE_NAMES)

    async def test_failed_query_skips_table(self):
        adapter = _make_mock_adapter({}, failing={"users", "webhooks"})
        manifest = await write_archive(adapter, io.BytesIO())
        assert "users" not in manifest.tables
        assert "webhooks" not in manifest.tables
        assert len(manifest.tables) == len(BACKUP_TABLE_NAMES) - 2

    async def test_failed_encode_skips_table(self):
        adapter = _make_mock_adapter({"posts": [{"id": "p1", "bad": object()}]})
        payload = await export_archive(adapter)
        with zipfile.ZipFile(io.BytesIO(payload)) as zf:
            assert "mx-space-go/db/posts.bson" not in zf.namelist()
            manifest = json.loads(zf.read(MANIFEST_PATH))
        assert "posts" not in manifest["tables"]

    async def test_write_to_path(self, tmp_path):
        adapter = _make_mock_adapter({})
        out = tmp_path / "site.zip"
        await write_archive(adapter, out)
        assert zipfile.is_zipfile(out)

    async def test_export_from_sqlite_lists_existing_tables(self, source_db):
        await source_db.execute("INSERT INTO posts (id, title) VALUES ('p1', 'Hello')")
        payload = await export_archive(source_db)

        with open_archive(payload) as archive:
            manifest = read_manifest(archive)
        assert manifest is not None
        assert manifest.engine == "sqlite"
        assert manifest.tables == ["user_sessions", "posts", "notes", "comments", "options"]


# ------------------------------------------------------------------
# Archive scanning and inspection
# ------------------------------------------------------------------


class TestArchiveScanning:
    """Entry resolution independent of any database."""

    def test_invalid_zip(self):
        with pytest.raises(ArchiveFormatError):
            open_archive(b"definitely not a zip")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArchiveFormatError):
            open_archive(tmp_path / "missing.zip")

    def test_bson_beats_json(self, make_archive):
        payload = make_archive({
            "dump/sessions.json": "[]",
            "mx-space-go/db/user_sessions.bson": b"",
        })
        with open_archive(payload) as archive:
            entries = scan_table_entries(archive)
        assert entries["user_sessions"].format == "bson"
        assert entries["user_sessions"].info.filename == "mx-space-go/db/user_sessions.bson"

    def test_first_entry_wins_within_format(self, make_archive):
        payload = make_archive({"a/posts.json": "[]", "b/posts.json": "[]"})
        with open_archive(payload) as archive:
            entries = scan_table_entries(archive)
        assert entries["posts"].info.filename == "a/posts.json"

    def test_unknown_tables_ignored(self, make_archive):
        payload = make_archive({"dump/mystery.bson": b"", "dump/posts.bson": b""})
        with open_archive(payload) as archive:
            assert set(scan_table_entries(archive)) == {"posts"}

    @pytest.mark.parametrize(
        "attr, value",
        [("compress_type", 99), ("flag_bits", 0x1)],
        ids=["unsupported-compression", "encrypted"],
    )
    def test_unreadable_entry_is_decode_error(self, make_archive, attr, value):
        payload = make_archive({"dump/posts.bson": b""})
        with open_archive(payload) as archive:
            entry = scan_table_entries(archive)["posts"]
            setattr(entry.info, attr, value)

            with pytest.raises(DecodeError) as exc_info:
                read_entry(archive, entry)

        assert exc_info.value.table == "posts"

    def test_malformed_manifest_is_not_an_error(self, make_archive):
        payload = make_archive({MANIFEST_PATH: "{not json"})
        with open_archive(payload) as archive:
            assert read_manifest(archive) is None

    def test_inspect(self, make_archive):
        payload = make_archive({
            "mx-space-go/db/posts.bson": b"",
            "dump/sessions.json": "[]",
            "dump/mystery.bson": b"",
            "Backup_Data\\Assets\\Email-Template\\Owner.Template.ejs": "<p>hi</p>",
            "README.txt": "hello",
        })
        inspection = inspect_archive(payload)
        assert inspection.manifest is None
        assert inspection.tables == {
            "posts": "mx-space-go/db/posts.bson",
            "user_sessions": "dump/sessions.json",
        }
        assert inspection.legacy_templates == ["email_template_owner"]
        assert sorted(inspection.ignored_entries) == ["README.txt", "dump/mystery.bson"]
