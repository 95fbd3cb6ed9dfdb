"""Authenticated caller identity passed explicitly into every service call."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AuthenticatedPrincipal(BaseModel):
    """The signed-in user plus the delegated OAuth credentials for Drive.

    Built by :func:`src.api.dependencies.get_principal` from a verified
    session token.  Services never read ambient session state.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    email: str = ""
    access_token: str = Field(min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
