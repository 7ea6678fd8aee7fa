from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable

import httpx
import structlog

logger = structlog.get_logger(__name__)

ConnectivityListener = Callable[[bool], Awaitable[None] | None]


class Connectivity:
    """Last known network state of the device, with change notifications."""

    def __init__(self, *, online: bool = True) -> None:
        self._online = online
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def set_online(self, online: bool) -> bool:
        if online == self._online:
            return False
        self._online = online
        logger.info("connectivity_changed", online=online)
        for listener in list(self._listeners):
            result = listener(online)
            if inspect.isawaitable(result):
                await result
        return True


class ConnectivityProbe:
    """Polls the API liveness endpoint and feeds the result into ``Connectivity``.

    Any HTTP response counts as online; only transport errors mean offline.
    """

    def __init__(
        self,
        connectivity: Connectivity,
        client: httpx.AsyncClient,
        *,
        path: str = "/live",
        interval_seconds: float = 15.0,
        timeout_seconds: float = 3.0,
    ) -> None:
        self._connectivity = connectivity
        self._client = client
        self._path = path
        self._interval_seconds = max(0.1, float(interval_seconds))
        self._timeout_seconds = timeout_seconds
        self._task: asyncio.Task[None] | None = None

    async def probe_once(self) -> bool:
        try:
            await self._client.get(self._path, timeout=self._timeout_seconds)
            online = True
        except httpx.TransportError:
            online = False
        await self._connectivity.set_online(online)
        return online

    async def _run(self) -> None:
        while True:
            await self.probe_once()
            await asyncio.sleep(self._interval_seconds)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
