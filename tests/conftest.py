"""Shared fixtures: throwaway SQLite databases with a slice of the CMS schema."""

import io
import zipfile

import bson
import pytest

from cms_backup.adapters.sql import AsyncSqlAdapter
from cms_backup.config.loader import get_settings

SCHEMA = (
    """
    CREATE TABLE user_sessions (
        id VARCHAR(64) PRIMARY KEY,
        user_id VARCHAR(64),
        ip VARCHAR(64),
        ua TEXT,
        created_at DATETIME
    )
    """,
    """
    CREATE TABLE posts (
        id VARCHAR(64) PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        slug VARCHAR(255) UNIQUE,
        text TEXT,
        tags JSON,
        read_count INTEGER,
        like_count INTEGER,
        created_at DATETIME,
        updated_at DATETIME
    )
    """,
    """
    CREATE TABLE notes (
        id VARCHAR(64) PRIMARY KEY,
        n_id INTEGER,
        title VARCHAR(255),
        password_hash VARCHAR(255),
        created_at DATETIME,
        updated_at DATETIME
    )
    """,
    """
    CREATE TABLE comments (
        id VARCHAR(64) PRIMARY KEY,
        ref_id VARCHAR(64),
        ref_type VARCHAR(32),
        text TEXT,
        parent_id VARCHAR(64),
        created_at DATETIME
    )
    """,
    """
    CREATE TABLE options (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(255) NOT NULL UNIQUE,
        value TEXT
    )
    """,
)


async def create_schema(adapter: AsyncSqlAdapter) -> None:
    for statement in SCHEMA:
        await adapter.execute(statement)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch, tmp_path):
    """Isolate every test from the caller's environment and .env file."""
    for name in ("MX_BACKUP_DIR", "BACKUP_DIR", "DB_PROFILE", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def source_db(tmp_path):
    """Database with the test schema, used as the export side."""
    adapter = AsyncSqlAdapter(f"sqlite:///{tmp_path / 'source.db'}")
    await create_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
async def target_db(tmp_path):
    """Empty database with the test schema, used as the restore side."""
    adapter = AsyncSqlAdapter(f"sqlite:///{tmp_path / 'target.db'}")
    await create_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def make_archive():
    """Build zip bytes from a mapping of entry path to payload."""

    def _make(entries: dict[str, bytes | str]) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, payload in entries.items():
                zf.writestr(name, payload)
        return buf.getvalue()

    return _make


@pytest.fixture
def bson_stream():
    """Encode documents as a concatenated BSON stream."""

    def _encode(*docs: dict) -> bytes:
        return b"".join(bson.encode(doc) for doc in docs)

    return _encode
