"""Unit tests for the SQLite schema, the soft-delete migration, and transactions."""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiosqlite
import pytest

from src.providers.records.database import Database

_LEGACY_UPLOADED_FILES = """\
CREATE TABLE uploaded_files (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    email_id TEXT NOT NULL DEFAULT '',
    file_id TEXT NOT NULL,
    file_name TEXT NOT NULL,
    file_type TEXT,
    file_size INTEGER,
    upload_status TEXT NOT NULL DEFAULT 'uploaded',
    upload_date TEXT,
    drive_link TEXT,
    icon_link TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

# Older deployments added is_active as a nullable column and never set it.
_LEGACY_INGESTION_RECORDS = """\
CREATE TABLE ingestion_records (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    email_id TEXT NOT NULL DEFAULT '',
    file_id TEXT NOT NULL,
    file_name TEXT NOT NULL,
    file_type TEXT,
    file_size INTEGER,
    status TEXT NOT NULL,
    vector_count INTEGER NOT NULL DEFAULT 0,
    chunk_count INTEGER NOT NULL DEFAULT 0,
    ingestion_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    error_message TEXT,
    metadata TEXT,
    vector_namespace TEXT,
    is_active INTEGER
);
"""


async def _create_legacy_db(path: Path) -> None:
    async with aiosqlite.connect(str(path)) as db:
        await db.execute(_LEGACY_UPLOADED_FILES)
        await db.execute(_LEGACY_INGESTION_RECORDS)
        await db.execute(
            "INSERT INTO uploaded_files (id, user_id, file_id, file_name, created_at, updated_at) "
            "VALUES ('u1', 'user-1', 'f1', 'a.txt', 'now', 'now')"
        )
        await db.executemany(
            "INSERT INTO ingestion_records "
            "(id, user_id, file_id, file_name, status, created_at, updated_at, is_active) "
            "VALUES (?, 'user-1', ?, 'a.txt', 'ingested', 'now', 'now', NULL)",
            [("r1", "f1"), ("r2", "f2")],
        )
        await db.commit()


class TestInitialize:
    async def test_creates_tables_with_soft_delete_columns(self, tmp_path: Path) -> None:
        database = Database(tmp_path / "nested" / "dir" / "app.db")
        await database.initialize()

        assert database.initialized
        assert database.path.exists()
        schema = await database.schema()
        assert set(schema) == {"uploaded_files", "ingestion_records"}
        for columns in schema.values():
            names = {c["name"] for c in columns}
            assert {"is_active", "deleted_at", "email_id"} <= names

    async def test_fresh_database_needs_no_migration(self, tmp_path: Path) -> None:
        results = await Database(tmp_path / "app.db").initialize()
        assert all(r.columns_added == [] and r.rows_backfilled == 0 for r in results)

    async def test_initialize_is_idempotent(self, tmp_path: Path) -> None:
        database = Database(tmp_path / "app.db")
        first = await database.initialize()
        second = await database.initialize()
        assert first == second


class TestSoftDeleteMigration:
    async def test_legacy_schema_is_upgraded(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.db"
        await _create_legacy_db(path)

        results = {r.table: r for r in await Database(path).initialize()}

        assert results["uploaded_files"].columns_added == ["is_active", "deleted_at"]
        assert results["ingestion_records"].columns_added == ["deleted_at"]
        assert results["ingestion_records"].rows_backfilled == 2

        async with aiosqlite.connect(str(path)) as db:
            cursor = await db.execute("SELECT is_active FROM uploaded_files")
            assert [row[0] for row in await cursor.fetchall()] == [1]
            cursor = await db.execute("SELECT COUNT(*) FROM ingestion_records WHERE is_active = 1")
            assert (await cursor.fetchone())[0] == 2

    async def test_migration_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.db"
        await _create_legacy_db(path)
        database = Database(path)
        await database.initialize()

        rerun = await database.migrate()

        assert [r.table for r in rerun] == ["uploaded_files", "ingestion_records"]
        assert all(r.columns_added == [] and r.rows_backfilled == 0 for r in rerun)

    async def test_column_added_by_another_instance_is_tolerated(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "legacy.db"
        await _create_legacy_db(path)
        await Database(path).initialize()

        # A view of the table read before the other instance ran its ALTERs.
        async def _stale_view(db: aiosqlite.Connection, table: str) -> set[str]:
            return {"id", "user_id", "file_id"}

        monkeypatch.setattr(Database, "_column_names", staticmethod(_stale_view))

        results = await Database(path).migrate()

        assert all(r.columns_added == [] for r in results)

    async def test_concurrent_initialize_adds_each_column_once(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.db"
        await _create_legacy_db(path)

        first, second = await asyncio.gather(
            Database(path).initialize(),
            Database(path).initialize(),
        )

        added = {a.table: sorted(a.columns_added + b.columns_added) for a, b in zip(first, second)}
        assert added == {
            "uploaded_files": ["deleted_at", "is_active"],
            "ingestion_records": ["deleted_at"],
        }
        assert sum(r.rows_backfilled for r in first + second if r.table == "ingestion_records") == 2


class TestTransaction:
    async def test_commits_on_success(self, database: Database) -> None:
        async with database.transaction() as db:
            await db.execute(
                "INSERT INTO uploaded_files (id, user_id, file_id, file_name, created_at, updated_at) "
                "VALUES ('t1', 'u', 'f', 'n', 'now', 'now')"
            )
        async with database.connect() as db:
            cursor = await db.execute("SELECT COUNT(*) AS n FROM uploaded_files")
            assert (await cursor.fetchone())["n"] == 1

    async def test_rolls_back_on_error(self, database: Database) -> None:
        with pytest.raises(RuntimeError):
            async with database.transaction() as db:
                await db.execute(
                    "INSERT INTO uploaded_files "
                    "(id, user_id, file_id, file_name, created_at, updated_at) "
                    "VALUES ('t1', 'u', 'f', 'n', 'now', 'now')"
                )
                raise RuntimeError("abort")
        async with database.connect() as db:
            cursor = await db.execute("SELECT COUNT(*) AS n FROM uploaded_files")
            assert (await cursor.fetchone())["n"] == 0
