from __future__ import annotations

from typing import Any

import httpx
import structlog

from fittrack.core.clock import Clock, SystemClock
from fittrack.offline.connectivity import Connectivity
from fittrack.offline.errors import QueueStoreError, classify_failure
from fittrack.offline.queue import OfflineQueue
from fittrack.offline.transport import ActionTransport
from fittrack.offline.types import QueuedAction, SubmitResult

logger = structlog.get_logger(__name__)


class OfflineClient:
    """Sends a mutating request now, or parks it in the offline queue.

    Only connectivity failures are queued. HTTP error responses propagate to
    the caller unchanged and never enter the queue.
    """

    def __init__(
        self,
        *,
        transport: ActionTransport,
        queue: OfflineQueue,
        connectivity: Connectivity,
        clock: Clock | None = None,
    ) -> None:
        self._transport = transport
        self._queue = queue
        self._connectivity = connectivity
        self._clock = clock or SystemClock()

    async def _defer(self, action: QueuedAction, *, reason: str) -> SubmitResult:
        pending = await self._queue.enqueue_action(action)
        logger.info(
            "offline_submit_deferred",
            action_id=action.id,
            target=action.target,
            reason=reason,
            pending_count=pending,
        )
        return SubmitResult(queued=True, action_id=action.id, pending_count=pending)

    async def submit(self, method: str, target: str, payload: Any = None) -> SubmitResult:
        # The same id travels with the direct attempt and any replay, so the
        # server can recognise a request whose response was lost.
        action = QueuedAction.new(method=method, target=target, payload=payload, now_utc=self._clock.now())

        if not self._connectivity.is_online:
            return await self._defer(action, reason="offline")

        try:
            response = await self._transport.send(action)
        except httpx.TransportError as exc:
            try:
                return await self._defer(action, reason=classify_failure(exc).value)
            except QueueStoreError:
                logger.exception("offline_submit_enqueue_failed", action_id=action.id, target=action.target)
                raise exc

        return SubmitResult(queued=False, action_id=action.id, response=response)
