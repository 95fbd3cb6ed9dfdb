"""FastAPI dependencies: the authenticated principal and services from ``app.state``.

Services are built once at startup in ``main._build_all`` and stored on
``app.state``; the helpers below read them back per request.  Route
handlers declare the ``Annotated`` aliases as parameters, so tests can
swap any component by assigning a fake onto ``app.state``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from src.config.settings import Settings
from src.models.principal import AuthenticatedPrincipal
from src.providers.records.database import Database
from src.services.file_service import FileService
from src.services.ingestion.ingestion_service import IngestionService
from src.services.search_service import SearchService
from src.utils.auth import verify_session_token
from src.utils.errors import AuthenticationError

SESSION_COOKIE_NAME = "session"


def _get_settings(request: Request) -> Settings:
    """Return the application settings from application state."""
    return request.app.state.settings


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion orchestrator from application state."""
    return request.app.state.ingestion_service


def _get_file_service(request: Request) -> FileService:
    """Return the file service from application state."""
    return request.app.state.file_service


def _get_search_service(request: Request) -> SearchService:
    """Return the search service from application state."""
    return request.app.state.search_service


def _get_database(request: Request) -> Database:
    """Return the relational database from application state."""
    return request.app.state.database


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_principal(request: Request) -> AuthenticatedPrincipal:
    """Build the caller's principal from the bearer header or session cookie.

    Raises
    ------
    AuthenticationError
        No token was sent, or the token fails verification.
    """
    token = _extract_token(request)
    if not token:
        raise AuthenticationError(message="Not authenticated")
    settings: Settings = request.app.state.settings
    return verify_session_token(token, settings.session_secret)


SettingsDep = Annotated[Settings, Depends(_get_settings)]
IngestionServiceDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
FileServiceDep = Annotated[FileService, Depends(_get_file_service)]
SearchServiceDep = Annotated[SearchService, Depends(_get_search_service)]
DatabaseDep = Annotated[Database, Depends(_get_database)]
PrincipalDep = Annotated[AuthenticatedPrincipal, Depends(get_principal)]
