from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from fittrack.services import internal_auth
from fittrack.services.internal_auth import (
    INTERNAL_TOKEN_HEADER,
    is_internal_request_authenticated,
    is_valid_internal_token,
)


def test_is_valid_internal_token_requires_exact_match() -> None:
    assert is_valid_internal_token(expected_token="secret", received_token="secret") is True
    assert is_valid_internal_token(expected_token="secret", received_token="wrong") is False
    assert is_valid_internal_token(expected_token="secret", received_token=None) is False
    assert is_valid_internal_token(expected_token="", received_token="") is False


def test_is_internal_request_authenticated_reads_header() -> None:
    request_with_token = SimpleNamespace(headers={INTERNAL_TOKEN_HEADER: "secret"})
    assert is_internal_request_authenticated(request_with_token, expected_token="secret") is True

    request_without_token = SimpleNamespace(headers={})
    assert is_internal_request_authenticated(request_without_token, expected_token="secret") is False


def test_require_internal_token_raises_forbidden(monkeypatch) -> None:
    monkeypatch.setattr(internal_auth, "get_settings", lambda: SimpleNamespace(internal_api_token="secret"))
    request = SimpleNamespace(
        headers={INTERNAL_TOKEN_HEADER: "wrong"},
        url=SimpleNamespace(path="/internal/streaks/summary"),
        client=None,
    )

    with pytest.raises(HTTPException) as exc_info:
        internal_auth.require_internal_token(request)

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == {"code": "E_FORBIDDEN"}
