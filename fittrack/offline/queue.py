from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from fittrack.core.clock import Clock, SystemClock
from fittrack.offline.errors import QueueStoreError
from fittrack.offline.store import QueueStore
from fittrack.offline.types import DrainSettlement, QueuedAction

logger = structlog.get_logger(__name__)

DEFAULT_MAX_RETRIES = 3

PendingListener = Callable[[int], None]


class OfflineQueue:
    """FIFO outbox of mutating requests, persisted through a ``QueueStore``.

    Every mutation is a read-modify-write of the whole persisted list done
    under one lock, so a drain's final write never clobbers entries enqueued
    while that drain was in flight.
    """

    def __init__(
        self,
        store: QueueStore,
        *,
        clock: Clock | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        dead_letter_store: QueueStore | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._max_retries = max(1, int(max_retries))
        self._dead_letter_store = dead_letter_store
        self._lock = asyncio.Lock()
        self._listeners: list[PendingListener] = []

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def add_listener(self, listener: PendingListener) -> None:
        self._listeners.append(listener)

    def _notify(self, pending: int) -> None:
        for listener in list(self._listeners):
            listener(pending)

    async def _read(self) -> list[QueuedAction]:
        documents = await asyncio.to_thread(self._store.load)
        entries: list[QueuedAction] = []
        for document in documents:
            action = QueuedAction.from_document(document)
            if action is None:
                logger.warning("offline_queue_entry_discarded", entry_id=document.get("id"))
                continue
            entries.append(action)
        return entries

    async def _write(self, entries: list[QueuedAction]) -> None:
        await asyncio.to_thread(self._store.save, [entry.to_document() for entry in entries])

    async def enqueue(self, method: str, target: str, payload: Any = None) -> int:
        action = QueuedAction.new(method=method, target=target, payload=payload, now_utc=self._clock.now())
        return await self.enqueue_action(action)

    async def enqueue_action(self, action: QueuedAction) -> int:
        async with self._lock:
            entries = await self._read()
            if any(entry.id == action.id for entry in entries):
                return len(entries)
            entries.append(action)
            await self._write(entries)
            pending = len(entries)

        logger.info(
            "offline_action_enqueued",
            action_id=action.id,
            method=action.method,
            target=action.target,
            pending_count=pending,
        )
        self._notify(pending)
        return pending

    async def pending_count(self) -> int:
        async with self._lock:
            return len(await self._read())

    async def snapshot(self) -> list[QueuedAction]:
        async with self._lock:
            return await self._read()

    async def remove(self, action_id: str) -> int:
        async with self._lock:
            entries = await self._read()
            kept = [entry for entry in entries if entry.id != action_id]
            if len(kept) != len(entries):
                await self._write(kept)
            pending = len(kept)

        self._notify(pending)
        return pending

    async def increment_retry(self, action_id: str) -> int:
        settlement = await self.apply_drain_results(succeeded_ids=(), failed_ids=(action_id,))
        return settlement.remaining

    async def apply_drain_results(
        self,
        *,
        succeeded_ids: Iterable[str],
        failed_ids: Iterable[str],
    ) -> DrainSettlement:
        succeeded = set(succeeded_ids)
        failed = set(failed_ids)
        settlement = DrainSettlement()

        async with self._lock:
            kept: list[QueuedAction] = []
            for entry in await self._read():
                if entry.id in succeeded:
                    settlement.removed.append(entry.id)
                    continue
                if entry.id in failed:
                    entry = entry.with_retry()
                    if entry.retry_count >= self._max_retries:
                        settlement.dropped.append(entry)
                        continue
                    settlement.retried.append(entry.id)
                kept.append(entry)

            await self._write(kept)
            settlement.remaining = len(kept)

        for dropped in settlement.dropped:
            logger.warning(
                "offline_action_dropped",
                action_id=dropped.id,
                method=dropped.method,
                target=dropped.target,
                retry_count=dropped.retry_count,
                created_at=dropped.created_at.isoformat(),
            )
        if settlement.dropped:
            await self._dead_letter(settlement.dropped)

        self._notify(settlement.remaining)
        return settlement

    async def _dead_letter(self, dropped: list[QueuedAction]) -> None:
        if self._dead_letter_store is None:
            return
        try:
            existing = await asyncio.to_thread(self._dead_letter_store.load)
            existing.extend(entry.to_document() for entry in dropped)
            await asyncio.to_thread(self._dead_letter_store.save, existing)
        except QueueStoreError:
            logger.exception("offline_dead_letter_write_failed", dropped_count=len(dropped))
