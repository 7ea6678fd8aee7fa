from __future__ import annotations

from dataclasses import dataclass

import httpx

from fittrack.core.clock import Clock, SystemClock
from fittrack.core.config import Settings
from fittrack.offline.client import OfflineClient
from fittrack.offline.connectivity import Connectivity, ConnectivityProbe
from fittrack.offline.coordinator import SyncCoordinator
from fittrack.offline.queue import OfflineQueue
from fittrack.offline.store import JsonFileQueueStore
from fittrack.offline.transport import HttpActionTransport, build_http_client


@dataclass(slots=True)
class OfflineRuntime:
    http_client: httpx.AsyncClient
    connectivity: Connectivity
    queue: OfflineQueue
    client: OfflineClient
    coordinator: SyncCoordinator
    probe: ConnectivityProbe

    async def start(self) -> None:
        await self.probe.probe_once()
        await self.coordinator.start()
        self.probe.start()

    async def close(self) -> None:
        await self.probe.stop()
        await self.coordinator.close()
        await self.http_client.aclose()


def build_offline_runtime(settings: Settings, *, clock: Clock | None = None) -> OfflineRuntime:
    resolved_clock = clock or SystemClock(settings.app_timezone)
    http_client = build_http_client(
        base_url=settings.api_base_url,
        timeout_seconds=settings.offline_request_timeout_seconds,
    )
    connectivity = Connectivity(online=False)
    dead_letter_store = (
        JsonFileQueueStore(settings.offline_dead_letter_path) if settings.offline_dead_letter_path else None
    )
    queue = OfflineQueue(
        JsonFileQueueStore(settings.offline_queue_path),
        clock=resolved_clock,
        max_retries=settings.offline_max_retries,
        dead_letter_store=dead_letter_store,
    )
    transport = HttpActionTransport(http_client)
    return OfflineRuntime(
        http_client=http_client,
        connectivity=connectivity,
        queue=queue,
        client=OfflineClient(
            transport=transport,
            queue=queue,
            connectivity=connectivity,
            clock=resolved_clock,
        ),
        coordinator=SyncCoordinator(
            queue=queue,
            transport=transport,
            connectivity=connectivity,
            drain_interval_seconds=settings.offline_drain_interval_seconds,
            settle_delay_seconds=settings.offline_settle_delay_seconds,
            request_timeout_seconds=settings.offline_request_timeout_seconds,
        ),
        probe=ConnectivityProbe(
            connectivity,
            http_client,
            interval_seconds=settings.offline_probe_interval_seconds,
        ),
    )
