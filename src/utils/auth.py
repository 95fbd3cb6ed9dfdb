"""HMAC-signed session tokens carrying the caller's delegated Drive credentials.

# ─── HOW SESSION TOKENS WORK ─────────────────────────────────────────
#
# Sessions are stateless: everything the API needs to build an
# AuthenticatedPrincipal travels in the token itself, signed so it
# cannot be forged.
#
# Token format:  {base64url(json payload)}.{hmac_hex_digest}
#   - payload: {"sub", "email", "access_token", "refresh_token", "exp"}
#   - hmac:    HMAC-SHA256(secret, base64url payload)
#
# Validation checks:
#   1. Token format matches expected pattern
#   2. HMAC signature is valid (constant-time comparison)
#   3. ``exp`` is in the future
#   4. Subject and access token are present
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any

from src.models.principal import AuthenticatedPrincipal
from src.utils.errors import AuthenticationError

_DEFAULT_TTL_SECONDS = 86400


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(secret: str, payload_b64: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        payload_b64.encode("ascii"),
        hashlib.sha256,
    ).hexdigest()


def create_session_token(
    principal: AuthenticatedPrincipal,
    secret: str,
    ttl_seconds: int = _DEFAULT_TTL_SECONDS,
) -> str:
    """Create a signed session token for *principal*.

    Parameters
    ----------
    principal:
        The signed-in user and their OAuth tokens.
    secret:
        The server-side signing secret (``SESSION_SECRET``).
    ttl_seconds:
        Token lifetime in seconds (default 86400 = 1 day).

    Returns
    -------
    Token string in the format ``{payload_b64}.{hmac_hex}``.
    """
    payload: dict[str, Any] = {
        "sub": principal.user_id,
        "email": principal.email,
        "access_token": principal.access_token,
        "refresh_token": principal.refresh_token,
        "exp": int(time.time()) + ttl_seconds,
    }
    payload_b64 = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{payload_b64}.{_sign(secret, payload_b64)}"


def verify_session_token(token: str, secret: str) -> AuthenticatedPrincipal:
    """Validate a session token and return the principal it carries.

    Raises
    ------
    AuthenticationError
        The token is missing, malformed, forged, expired, or lacks a
        subject or access token.
    """
    if not token or "." not in token or not token.isascii():
        raise AuthenticationError(message="Missing or malformed session token")

    payload_b64, provided_hmac = token.rsplit(".", 1)
    expected_hmac = _sign(secret, payload_b64)
    if not hmac.compare_digest(provided_hmac.encode("ascii"), expected_hmac.encode("ascii")):
        raise AuthenticationError(message="Invalid session token signature")

    try:
        payload = json.loads(_b64decode(payload_b64))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise AuthenticationError(message="Malformed session token payload") from exc
    if not isinstance(payload, dict):
        raise AuthenticationError(message="Malformed session token payload")

    exp = payload.get("exp")
    if not isinstance(exp, int) or time.time() >= exp:
        raise AuthenticationError(message="Session token expired")

    user_id = payload.get("sub")
    access_token = payload.get("access_token")
    if not user_id or not access_token:
        raise AuthenticationError(message="Session token has no subject or access token")

    return AuthenticatedPrincipal(
        user_id=str(user_id),
        email=str(payload.get("email") or ""),
        access_token=str(access_token),
        refresh_token=payload.get("refresh_token"),
    )
