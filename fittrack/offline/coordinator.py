from __future__ import annotations

import asyncio
import contextlib
from enum import Enum

import structlog

from fittrack.offline.connectivity import Connectivity
from fittrack.offline.errors import QueueStoreError, classify_failure
from fittrack.offline.queue import OfflineQueue
from fittrack.offline.transport import ActionTransport
from fittrack.offline.types import DrainReport, QueuedAction

logger = structlog.get_logger(__name__)

DEFAULT_DRAIN_INTERVAL_SECONDS = 30.0
DEFAULT_SETTLE_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0


class SyncState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


class SyncCoordinator:
    """Replays the offline queue in FIFO order, one drain at a time.

    Drains are triggered by an offline-to-online transition (after a settle
    delay), by a periodic timer that only runs while the queue is non-empty,
    and once by ``start()``.
    """

    def __init__(
        self,
        *,
        queue: OfflineQueue,
        transport: ActionTransport,
        connectivity: Connectivity,
        drain_interval_seconds: float = DEFAULT_DRAIN_INTERVAL_SECONDS,
        settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._queue = queue
        self._transport = transport
        self._connectivity = connectivity
        self._drain_interval_seconds = max(0.01, float(drain_interval_seconds))
        self._settle_delay_seconds = max(0.0, float(settle_delay_seconds))
        self._request_timeout_seconds = max(0.01, float(request_timeout_seconds))

        self.state = SyncState.IDLE
        self._started = False
        self._was_online = connectivity.is_online
        self._timer_task: asyncio.Task[None] | None = None
        self._settle_task: asyncio.Task[None] | None = None
        self._drain_owner: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

        queue.add_listener(self._on_pending_changed)
        self._unsubscribe = connectivity.subscribe(self.on_connectivity_change)

    @property
    def is_draining(self) -> bool:
        return self.state == SyncState.DRAINING

    @property
    def timer_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    async def start(self) -> DrainReport | None:
        self._started = True
        try:
            pending = await self._queue.pending_count()
        except QueueStoreError:
            logger.exception("offline_sync_start_failed")
            return None
        self._sync_timer(pending)
        if self._connectivity.is_online and pending > 0:
            return await self.drain()
        return None

    async def stop(self) -> None:
        """Cancels idle timers; a pass already in flight runs to completion first."""
        self._started = False
        tasks = (self._settle_task, self._timer_task)
        self._settle_task = None
        self._timer_task = None

        cancelled: list[asyncio.Task] = []
        for task in tasks:
            if task is None or task.done() or task is asyncio.current_task():
                continue
            if task is self._drain_owner:
                # Exits on its own after the pass since _started is False.
                continue
            task.cancel()
            cancelled.append(task)
        for task in cancelled:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self.is_draining and self._drain_owner is not asyncio.current_task():
            await self._idle.wait()

    async def close(self) -> None:
        await self.stop()
        self._unsubscribe()

    async def on_connectivity_change(self, online: bool) -> None:
        was_online = self._was_online
        self._was_online = online

        if online and not was_online:
            self._cancel_settle()
            self._settle_task = asyncio.create_task(self._drain_after_settle())
        elif not online:
            self._cancel_settle()

    def _cancel_settle(self) -> None:
        task = self._settle_task
        self._settle_task = None
        # Only a settle that is still waiting is cancelled; a started pass finishes.
        if task is None or task.done() or task is self._drain_owner:
            return
        task.cancel()

    async def _drain_after_settle(self) -> None:
        await asyncio.sleep(self._settle_delay_seconds)
        if self._connectivity.is_online:
            await self.drain()

    def _on_pending_changed(self, pending: int) -> None:
        self._sync_timer(pending)

    def _sync_timer(self, pending: int) -> None:
        if not self._started:
            return
        if pending > 0:
            if not self.timer_running:
                self._timer_task = asyncio.create_task(self._run_timer())
            return
        # A timer that is mid-drain stops on its own once it sees the empty queue.
        timer = self._timer_task
        if timer is None or timer.done() or timer is self._drain_owner or timer is asyncio.current_task():
            return
        timer.cancel()
        self._timer_task = None

    async def _run_timer(self) -> None:
        while self._started:
            await asyncio.sleep(self._drain_interval_seconds)
            if self._connectivity.is_online:
                await self.drain()
            if not self._started:
                break
            try:
                pending = await self._queue.pending_count()
            except QueueStoreError:
                logger.exception("offline_sync_timer_read_failed")
                continue
            if pending == 0:
                break
        if self._timer_task is asyncio.current_task():
            self._timer_task = None

    async def _replay(self, action: QueuedAction) -> bool:
        try:
            await asyncio.wait_for(self._transport.send(action), timeout=self._request_timeout_seconds)
        except Exception as exc:
            logger.warning(
                "offline_replay_failed",
                action_id=action.id,
                method=action.method,
                target=action.target,
                failure_kind=classify_failure(exc).value,
                error_type=type(exc).__name__,
                retry_count=action.retry_count + 1,
            )
            return False
        return True

    async def drain(self) -> DrainReport | None:
        """Runs one drain pass.

        Returns ``None`` when a pass is already in flight or the queue store
        could not be read or written.
        """
        if self.state == SyncState.DRAINING:
            logger.info("offline_drain_skipped_busy")
            return None

        self.state = SyncState.DRAINING
        self._drain_owner = asyncio.current_task()
        self._idle.clear()
        try:
            return await self._drain_pass()
        except QueueStoreError:
            logger.exception("offline_drain_failed")
            return None
        finally:
            self.state = SyncState.IDLE
            self._drain_owner = None
            self._idle.set()

    async def _drain_pass(self) -> DrainReport:
        entries = await self._queue.snapshot()
        succeeded: list[str] = []
        failed: list[str] = []
        # One entry at a time, in FIFO order.
        for action in entries:
            if await self._replay(action):
                succeeded.append(action.id)
            else:
                failed.append(action.id)

        settlement = await self._queue.apply_drain_results(
            succeeded_ids=succeeded,
            failed_ids=failed,
        )
        report = DrainReport(
            attempted=len(entries),
            succeeded=len(succeeded),
            failed=len(failed),
            dropped=len(settlement.dropped),
            remaining=settlement.remaining,
        )
        if entries:
            logger.info("offline_drain_finished", **report.as_log_fields())
        return report
