from __future__ import annotations

import secrets

import structlog
from fastapi import HTTPException, Request

from fittrack.core.config import get_settings

INTERNAL_TOKEN_HEADER = "X-Internal-Token"

logger = structlog.get_logger(__name__)


def is_valid_internal_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token, received_token)


def is_internal_request_authenticated(request: Request, *, expected_token: str) -> bool:
    return is_valid_internal_token(
        expected_token=expected_token,
        received_token=request.headers.get(INTERNAL_TOKEN_HEADER),
    )


def require_internal_token(request: Request) -> None:
    """FastAPI dependency guarding the operator endpoints."""
    if is_internal_request_authenticated(request, expected_token=get_settings().internal_api_token):
        return

    logger.warning(
        "internal_auth_failed",
        path=request.url.path,
        client_ip=request.client.host if request.client is not None else None,
    )
    raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
