"""SQLite database lifecycle: schema creation, soft-delete migration, connections.

One :class:`Database` instance is built at startup and shared by every
record store.  :meth:`Database.initialize` runs once from the FastAPI
lifespan.  It creates the tables, applies the additive ``is_active`` /
``deleted_at`` migration to databases created before soft delete existed,
and then creates the indices (the partial unique index depends on the
migrated columns).

Connections run in autocommit mode.  Multi-statement atomic work goes
through :meth:`Database.transaction`, which issues ``BEGIN IMMEDIATE`` so
the write lock is taken up front instead of on the first write.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.models.ingestion import MigrationResult
from src.utils.errors import DatabaseError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/drivevector.db")
_DEFAULT_BUSY_TIMEOUT_MS = 5000

_CREATE_UPLOADED_FILES_SQL = """\
CREATE TABLE IF NOT EXISTS uploaded_files (
    id             TEXT    PRIMARY KEY,
    user_id        TEXT    NOT NULL,
    email_id       TEXT    NOT NULL DEFAULT '',
    file_id        TEXT    NOT NULL,
    file_name      TEXT    NOT NULL,
    file_type      TEXT,
    file_size      INTEGER,
    upload_status  TEXT    NOT NULL DEFAULT 'uploaded',
    upload_date    TEXT,
    drive_link     TEXT,
    icon_link      TEXT,
    error_message  TEXT,
    created_at     TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL,
    is_active      INTEGER NOT NULL DEFAULT 1,
    deleted_at     TEXT
);
"""

_CREATE_INGESTION_RECORDS_SQL = """\
CREATE TABLE IF NOT EXISTS ingestion_records (
    id                TEXT    PRIMARY KEY,
    user_id           TEXT    NOT NULL,
    email_id          TEXT    NOT NULL DEFAULT '',
    file_id           TEXT    NOT NULL,
    file_name         TEXT    NOT NULL,
    file_type         TEXT,
    file_size         INTEGER,
    status            TEXT    NOT NULL
                      CHECK (status IN ('pending', 'processing', 'ingested', 'failed', 'deleted')),
    vector_count      INTEGER NOT NULL DEFAULT 0,
    chunk_count       INTEGER NOT NULL DEFAULT 0,
    ingestion_date    TEXT,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL,
    error_message     TEXT,
    metadata          TEXT,
    vector_namespace  TEXT,
    is_active         INTEGER NOT NULL DEFAULT 1,
    deleted_at        TEXT
);
"""

_CREATE_TABLES_SQL = [_CREATE_UPLOADED_FILES_SQL, _CREATE_INGESTION_RECORDS_SQL]

# Tables that carry soft-delete columns, in migration order.
_SOFT_DELETE_TABLES = ("uploaded_files", "ingestion_records")

_SOFT_DELETE_COLUMNS: list[tuple[str, str]] = [
    ("is_active", "INTEGER NOT NULL DEFAULT 1"),
    ("deleted_at", "TEXT"),
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_uploaded_files_user_file ON uploaded_files(user_id, file_id);",
    "CREATE INDEX IF NOT EXISTS idx_uploaded_files_user_active ON uploaded_files(user_id, is_active);",
    "CREATE INDEX IF NOT EXISTS idx_ingestion_records_user_file ON ingestion_records(user_id, file_id);",
    # At most one live ingestion record per (user, file).
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_ingestion_records_active "
    "ON ingestion_records(user_id, file_id) "
    "WHERE is_active = 1 AND status != 'deleted';",
]


class Database:
    """Owns the SQLite file, its schema and its connections.

    Parameters
    ----------
    db_path:
        Path of the database file; parent directories are created.
    busy_timeout_ms:
        How long a connection waits for a competing writer's lock.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        busy_timeout_ms: int = _DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout_ms = busy_timeout_ms
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._last_migration: list[MigrationResult] = []

    @property
    def path(self) -> Path:
        return self._db_path

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> list[MigrationResult]:
        """Create tables, migrate, and create indices.  Later calls are no-ops."""
        async with self._init_lock:
            if self._initialized:
                return self._last_migration

            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                async with self.connect() as db:
                    for create_sql in _CREATE_TABLES_SQL:
                        await db.execute(create_sql)
                    results = [await self._migrate_table(db, t) for t in _SOFT_DELETE_TABLES]
                    for idx_sql in _CREATE_INDICES_SQL:
                        await db.execute(idx_sql)
            except aiosqlite.Error as exc:
                raise DatabaseError(
                    message=f"Database initialization failed: {exc}",
                    provider_name="sqlite",
                ) from exc

            self._initialized = True
            self._last_migration = results
            logger.info(
                "database_initialized",
                path=str(self._db_path),
                columns_added={r.table: r.columns_added for r in results},
                rows_backfilled=sum(r.rows_backfilled for r in results),
            )
            return results

    async def migrate(self) -> list[MigrationResult]:
        """Re-run the soft-delete migration on demand (admin endpoint).

        Idempotent: on an up-to-date schema nothing is added or backfilled.
        """
        try:
            async with self.connect() as db:
                results = [await self._migrate_table(db, t) for t in _SOFT_DELETE_TABLES]
        except aiosqlite.Error as exc:
            raise DatabaseError(
                message=f"Database migration failed: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.info(
            "database_migration_run",
            columns_added={r.table: r.columns_added for r in results},
            rows_backfilled=sum(r.rows_backfilled for r in results),
        )
        return results

    async def _migrate_table(self, db: aiosqlite.Connection, table: str) -> MigrationResult:
        """Add any missing soft-delete column to *table* and backfill NULLs."""
        existing = await self._column_names(db, table)
        added: list[str] = []

        for column, ddl in _SOFT_DELETE_COLUMNS:
            if column in existing:
                continue
            try:
                await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
                added.append(column)
            except aiosqlite.OperationalError as exc:
                # Another process added the column between our check and ALTER.
                if "duplicate column name" not in str(exc).lower():
                    raise
                logger.info("migration_column_already_present", table=table, column=column)

        cursor = await db.execute(f"UPDATE {table} SET is_active = 1 WHERE is_active IS NULL")
        backfilled = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0

        if added or backfilled:
            logger.info(
                "soft_delete_migration_applied",
                table=table,
                columns_added=added,
                rows_backfilled=backfilled,
            )
        return MigrationResult(table=table, columns_added=added, rows_backfilled=backfilled)

    @staticmethod
    async def _column_names(db: aiosqlite.Connection, table: str) -> set[str]:
        cursor = await db.execute(f"PRAGMA table_info({table})")
        rows = await cursor.fetchall()
        return {row["name"] for row in rows}

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an autocommit connection with ``Row`` factory and foreign keys on."""
        async with aiosqlite.connect(
            str(self._db_path),
            isolation_level=None,
            timeout=self._busy_timeout_ms / 1000,
        ) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            await db.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")
            yield db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the body in one ``BEGIN IMMEDIATE`` transaction.

        Commits when the body completes; rolls back and re-raises on any
        exception, including cancellation.
        """
        async with self.connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
            except BaseException:
                await db.execute("ROLLBACK")
                raise
            await db.execute("COMMIT")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def schema(self) -> dict[str, list[dict[str, Any]]]:
        """Return column definitions for every driveVector table."""
        tables: dict[str, list[dict[str, Any]]] = {}
        async with self.connect() as db:
            for table in _SOFT_DELETE_TABLES:
                cursor = await db.execute(f"PRAGMA table_info({table})")
                rows = await cursor.fetchall()
                tables[table] = [
                    {
                        "name": row["name"],
                        "type": row["type"],
                        "not_null": bool(row["notnull"]),
                        "default": row["dflt_value"],
                        "primary_key": bool(row["pk"]),
                    }
                    for row in rows
                ]
        return tables
