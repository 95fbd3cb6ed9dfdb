"""Unit tests for HMAC-signed session tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time

import pytest

from src.models.principal import AuthenticatedPrincipal
from src.utils.auth import create_session_token, verify_session_token
from src.utils.errors import AuthenticationError

_SECRET = "test-secret"


def _forge_payload(token: str, **changes) -> str:
    """Rewrite the payload of *token* while keeping its old signature."""
    payload_b64, signature = token.rsplit(".", 1)
    padded = payload_b64 + "=" * (-len(payload_b64) % 4)
    payload = json.loads(base64.urlsafe_b64decode(padded))
    payload.update(changes)
    forged = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
    return f"{forged}.{signature}"


class TestSessionTokens:
    def test_round_trip_preserves_principal(self, principal: AuthenticatedPrincipal) -> None:
        token = create_session_token(principal, _SECRET)
        assert verify_session_token(token, _SECRET) == principal

    def test_refresh_token_is_carried(self) -> None:
        principal = AuthenticatedPrincipal(
            user_id="u", email="", access_token="at", refresh_token="rt"
        )
        restored = verify_session_token(create_session_token(principal, _SECRET), _SECRET)
        assert restored.refresh_token == "rt"

    def test_wrong_secret_is_rejected(self, principal: AuthenticatedPrincipal) -> None:
        token = create_session_token(principal, _SECRET)
        with pytest.raises(AuthenticationError):
            verify_session_token(token, "another-secret")

    def test_tampered_payload_is_rejected(self, principal: AuthenticatedPrincipal) -> None:
        token = create_session_token(principal, _SECRET)
        with pytest.raises(AuthenticationError):
            verify_session_token(_forge_payload(token, sub="someone-else"), _SECRET)

    def test_expired_token_is_rejected(self, principal: AuthenticatedPrincipal) -> None:
        token = create_session_token(principal, _SECRET, ttl_seconds=-1)
        with pytest.raises(AuthenticationError, match="expired"):
            verify_session_token(token, _SECRET)

    @pytest.mark.parametrize(
        "token",
        ["", "no-dot-here", "abc.def", "!!!.123", "caf\u00e9.\u00e9\u00e9", "abc.d\u00e9f"],
    )
    def test_malformed_tokens_are_rejected(self, token: str) -> None:
        with pytest.raises(AuthenticationError):
            verify_session_token(token, _SECRET)

    def test_signed_payload_without_access_token_is_rejected(self) -> None:
        payload = {"sub": "u", "exp": int(time.time()) + 60}
        payload_b64 = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
        signature = hmac.new(_SECRET.encode(), payload_b64.encode(), hashlib.sha256).hexdigest()
        with pytest.raises(AuthenticationError, match="access token"):
            verify_session_token(f"{payload_b64}.{signature}", _SECRET)

    def test_authentication_error_maps_to_401(self) -> None:
        assert AuthenticationError.status_code == 401
