from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from fittrack.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Each asyncio.run gets a new loop; pooled asyncpg connections cannot cross loops.
    await dispose_engine()
    started = time.monotonic()
    try:
        with structlog.contextvars.bound_contextvars(job=job_name):
            result = await awaitable
            logger.info("worker_job_finished", duration_ms=int((time.monotonic() - started) * 1000))
            return result
    finally:
        await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str = "job") -> T:
    return asyncio.run(_run_job(awaitable, job_name=job_name))
