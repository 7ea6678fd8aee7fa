from __future__ import annotations

from typing import Protocol

import httpx

from fittrack.offline.types import QueuedAction

IDEMPOTENCY_HEADER = "Idempotency-Key"


class ActionTransport(Protocol):
    async def send(self, action: QueuedAction) -> httpx.Response: ...


class HttpActionTransport:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(self, action: QueuedAction) -> httpx.Response:
        response = await self._client.request(
            action.method,
            action.target,
            json=action.payload,
            headers={IDEMPOTENCY_HEADER: action.id},
        )
        response.raise_for_status()
        return response


def build_http_client(*, base_url: str, timeout_seconds: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
