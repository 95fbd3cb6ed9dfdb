"""Source-file provider implementations (where users' documents live)."""

from src.providers.source_files.google_drive_provider import GoogleDriveProvider

__all__ = ["GoogleDriveProvider"]
