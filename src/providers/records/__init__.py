"""Relational record storage (SQLite via aiosqlite)."""

from src.providers.records.database import Database
from src.providers.records.sqlite_ingestion_record_store import SqliteIngestionRecordStore

__all__ = ["Database", "SqliteIngestionRecordStore"]
