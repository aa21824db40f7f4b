"""Tests for the local backup directory and object storage upload."""

import zipfile
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from cms_backup.backup.local import (
    backup_filename,
    create_local_backup,
    delete_backups,
    format_size,
    list_backups,
    read_backup,
    resolve_backup_dir,
    restore_local_backup,
)
from cms_backup.backup.storage import ARCHIVE_CONTENT_TYPE, render_object_key, upload_backup
from cms_backup.config.loader import get_settings

NOW = datetime(2026, 3, 4, 5, 6, 7)


def _empty_adapter() -> AsyncMock:
    adapter = AsyncMock()
    adapter.dialect_name = "mysql"
    adapter.select.return_value = []
    return adapter


# ------------------------------------------------------------------
# Directory resolution and naming
# ------------------------------------------------------------------


class TestBackupDirectory:
    """Where local archives live and how they are named."""

    def test_default_is_backups_under_cwd(self, tmp_path):
        assert resolve_backup_dir() == tmp_path / "backups"

    def test_explicit_argument_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MX_BACKUP_DIR", str(tmp_path / "env"))
        get_settings.cache_clear()
        assert resolve_backup_dir(tmp_path / "arg") == tmp_path / "arg"

    def test_mx_backup_dir_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BACKUP_DIR", str(tmp_path / "plain"))
        monkeypatch.setenv("MX_BACKUP_DIR", str(tmp_path / "mx"))
        get_settings.cache_clear()
        assert resolve_backup_dir() == tmp_path / "mx"

    def test_backup_dir_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BACKUP_DIR", str(tmp_path / "plain"))
        get_settings.cache_clear()
        assert resolve_backup_dir() == tmp_path / "plain"

    def test_blank_argument_falls_through(self, tmp_path):
        assert resolve_backup_dir("   ") == tmp_path / "backups"

    def test_filename(self):
        assert backup_filename(NOW) == "backup-2026-03-04T05-06-07.zip"

    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1024, "1.00 KB"),
            (1536, "1.50 KB"),
            (1024 * 1024, "1.00 MB"),
            (5 * 1024 * 1024 + 512 * 1024, "5.50 MB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected


# ------------------------------------------------------------------
# Local operations
# ------------------------------------------------------------------


class TestLocalOperations:
    """Create, list, read, delete and restore archives in the directory."""

    async def test_create_writes_archive(self, tmp_path):
        artifact = await create_local_backup(_empty_adapter(), tmp_path / "out", now=NOW)

        assert artifact.filename == "backup-2026-03-04T05-06-07.zip"
        assert artifact.path == tmp_path / "out" / artifact.filename
        assert artifact.size == artifact.path.stat().st_size
        assert zipfile.is_zipfile(artifact.path)

    def test_list_creates_directory_and_sorts(self, tmp_path):
        directory = tmp_path / "backups"
        assert list_backups(directory) == []
        assert directory.is_dir()

        (directory / "b.zip").write_bytes(b"x" * 2048)
        (directory / "a.zip").write_bytes(b"x" * 10)
        (directory / "notes.txt").write_text("not a backup")
        (directory / "nested.zip").mkdir()

        items = list_backups(directory)
        assert [(i.filename, i.size) for i in items] == [("a.zip", "10 B"), ("b.zip", "2.00 KB")]

    def test_read_backup(self, tmp_path):
        (tmp_path / "a.zip").write_bytes(b"payload")
        assert read_backup("a.zip", tmp_path) == b"payload"

    def test_read_backup_rejects_other_suffixes(self, tmp_path):
        with pytest.raises(ValueError):
            read_backup("secrets.txt", tmp_path)

    def test_read_backup_confined_to_directory(self, tmp_path):
        inner = tmp_path / "backups"
        inner.mkdir()
        (tmp_path / "outside.zip").write_bytes(b"outside")
        with pytest.raises(FileNotFoundError):
            read_backup("../outside.zip", inner)

    def test_delete(self, tmp_path):
        (tmp_path / "a.zip").write_bytes(b"a")
        (tmp_path / "keep.txt").write_text("keep")

        deleted = delete_backups(["a.zip", "missing.zip", "keep.txt", "../a.zip"], tmp_path)

        assert deleted == ["a.zip"]
        assert not (tmp_path / "a.zip").exists()
        assert (tmp_path / "keep.txt").exists()

    async def test_restore_missing_backup(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await restore_local_backup(AsyncMock(), "nope.zip", tmp_path)

    async def test_backup_then_restore(self, source_db, target_db, tmp_path):
        await source_db.execute("INSERT INTO posts (id, title) VALUES ('p1', 'Hello')")

        artifact = await create_local_backup(source_db, tmp_path / "archives", now=NOW)
        summary = await restore_local_backup(target_db, artifact.filename, tmp_path / "archives")

        assert summary.tables["posts"].inserted == 1
        assert await target_db.select("posts", "id, title") == [{"id": "p1", "title": "Hello"}]


# ------------------------------------------------------------------
# Object storage
# ------------------------------------------------------------------


class TestObjectKey:
    """Path templates for uploaded archives."""

    def test_default_template(self):
        assert render_object_key(None, "b.zip", NOW) == "backups/2026/03/b.zip"
        assert render_object_key("  ", "b.zip", NOW) == "backups/2026/03/b.zip"

    def test_all_placeholders(self):
        key = render_object_key("{Y}-{m}-{d}/{H}{M}{s}/{filename}", "b.zip", NOW)
        assert key == "2026-03-04/050607/b.zip"

    def test_separators_cleaned(self):
        assert render_object_key("/a\\{d}//{filename}", "b.zip", NOW) == "a/04/b.zip"

    def test_unknown_placeholders_kept(self):
        key = render_object_key("backups/{Y}/backup-{h}{i}.zip", "b.zip", NOW)
        assert key == "backups/2026/backup-{h}{i}.zip"


class TestUploadBackup:
    """Creating and shipping an archive to object storage."""

    async def test_disabled_does_nothing(self, tmp_path):
        adapter = _empty_adapter()
        storage = AsyncMock()

        assert await upload_backup(adapter, storage, enabled=False, backup_dir=tmp_path) is None

        storage.upload.assert_not_awaited()
        adapter.select.assert_not_awaited()

    async def test_uploads_local_archive(self, tmp_path):
        storage = AsyncMock()
        storage.upload.return_value = "https://cdn.example.com/backups/2026/03/x.zip"

        url = await upload_backup(
            _empty_adapter(),
            storage,
            enabled=True,
            path_template="site/{Y}/{filename}",
            backup_dir=tmp_path,
            now=NOW,
        )

        assert url == "https://cdn.example.com/backups/2026/03/x.zip"
        key, data, content_type = storage.upload.await_args.args
        assert key == "site/2026/backup-2026-03-04T05-06-07.zip"
        assert content_type == ARCHIVE_CONTENT_TYPE
        assert data == (tmp_path / "backup-2026-03-04T05-06-07.zip").read_bytes()
