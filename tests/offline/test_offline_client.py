from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from fittrack.core.clock import FrozenClock
from fittrack.offline.client import OfflineClient
from fittrack.offline.connectivity import Connectivity, ConnectivityProbe
from fittrack.offline.errors import FailureKind, QueueStoreError, classify_failure, is_connectivity_failure
from fittrack.offline.queue import OfflineQueue
from fittrack.offline.store import MemoryQueueStore
from fittrack.offline.transport import IDEMPOTENCY_HEADER, HttpActionTransport

NOW = datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc)


class _BrokenStore(MemoryQueueStore):
    def save(self, entries) -> None:
        raise QueueStoreError("disk full")


def _build(handler, *, online: bool = True, store=None) -> tuple[OfflineClient, OfflineQueue, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(base_url="http://api.test", transport=httpx.MockTransport(handler))
    clock = FrozenClock(NOW)
    queue = OfflineQueue(store or MemoryQueueStore(), clock=clock)
    client = OfflineClient(
        transport=HttpActionTransport(http_client),
        queue=queue,
        connectivity=Connectivity(online=online),
        clock=clock,
    )
    return client, queue, http_client


@pytest.mark.asyncio
async def test_submit_online_sends_request_with_idempotency_key() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"outcome": "extended"})

    client, queue, http_client = _build(handler)

    result = await client.submit("POST", "/users/7/activities", {"kind": "run", "durationMinutes": 30})

    assert result.queued is False
    assert result.response is not None
    assert result.response.json() == {"outcome": "extended"}
    assert requests[0].headers[IDEMPOTENCY_HEADER] == result.action_id
    assert requests[0].url.path == "/users/7/activities"
    assert await queue.pending_count() == 0
    await http_client.aclose()


@pytest.mark.asyncio
async def test_submit_offline_queues_without_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected while offline")

    client, queue, http_client = _build(handler, online=False)

    result = await client.submit("POST", "/users/7/activities", {"kind": "run", "durationMinutes": 30})

    assert result.queued is True
    assert result.pending_count == 1
    assert result.to_payload() == {"offline": True, "queued": True, "actionId": result.action_id}
    [entry] = await queue.snapshot()
    assert entry.id == result.action_id
    await http_client.aclose()


@pytest.mark.asyncio
async def test_connection_error_is_queued() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, queue, http_client = _build(handler)

    result = await client.submit("POST", "/users/7/activities", {"kind": "run", "durationMinutes": 30})

    assert result.queued is True
    assert await queue.pending_count() == 1
    await http_client.aclose()


@pytest.mark.asyncio
async def test_http_error_response_is_never_queued() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "bad payload"})

    client, queue, http_client = _build(handler)

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await client.submit("POST", "/users/7/activities", {"kind": ""})

    assert exc_info.value.response.status_code == 400
    assert classify_failure(exc_info.value) == FailureKind.APPLICATION
    assert await queue.pending_count() == 0
    await http_client.aclose()


@pytest.mark.asyncio
async def test_transport_error_surfaces_when_queue_cannot_persist() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _, http_client = _build(handler, store=_BrokenStore())

    with pytest.raises(httpx.ConnectError):
        await client.submit("POST", "/users/7/activities", {"kind": "run", "durationMinutes": 30})
    await http_client.aclose()


def test_classify_failure() -> None:
    assert classify_failure(httpx.ReadTimeout("slow")) == FailureKind.CONNECTIVITY
    assert classify_failure(TimeoutError()) == FailureKind.CONNECTIVITY
    assert classify_failure(ValueError("boom")) == FailureKind.UNKNOWN
    assert is_connectivity_failure(httpx.ConnectError("down")) is True


@pytest.mark.asyncio
async def test_connectivity_notifies_only_on_change() -> None:
    seen: list[bool] = []
    connectivity = Connectivity(online=True)
    unsubscribe = connectivity.subscribe(seen.append)

    assert await connectivity.set_online(True) is False
    assert await connectivity.set_online(False) is True
    unsubscribe()
    await connectivity.set_online(True)

    assert seen == [False]
    assert connectivity.is_online is True


@pytest.mark.asyncio
async def test_probe_maps_transport_errors_to_offline() -> None:
    reachable = {"value": True}

    def handler(request: httpx.Request) -> httpx.Response:
        if not reachable["value"]:
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(503)

    http_client = httpx.AsyncClient(base_url="http://api.test", transport=httpx.MockTransport(handler))
    connectivity = Connectivity(online=False)
    probe = ConnectivityProbe(connectivity, http_client)

    assert await probe.probe_once() is True
    assert connectivity.is_online is True

    reachable["value"] = False
    assert await probe.probe_once() is False
    assert connectivity.is_online is False
    await http_client.aclose()
