from __future__ import annotations

import argparse
import asyncio
import contextlib

import structlog

from fittrack.core.config import get_settings
from fittrack.core.logging import configure_logging
from fittrack.offline.runtime import build_offline_runtime

logger = structlog.get_logger("scripts.run_offline_sync")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the offline outbox and sync coordinator.")
    parser.add_argument("--user-id", type=int, default=None, help="Log one activity for this user first.")
    parser.add_argument("--kind", default="workout")
    parser.add_argument("--duration-minutes", type=int, default=30)
    parser.add_argument(
        "--run-seconds",
        type=float,
        default=0.0,
        help="Stop after this many seconds; 0 keeps running until interrupted.",
    )
    return parser.parse_args()


async def main() -> None:
    args = _parse_args()
    settings = get_settings()
    configure_logging(settings.log_level, service="fittrack-offline-sync")

    runtime = build_offline_runtime(settings)
    await runtime.start()
    try:
        if args.user_id is not None:
            result = await runtime.client.submit(
                "POST",
                f"/users/{args.user_id}/activities",
                {"kind": args.kind, "durationMinutes": args.duration_minutes},
            )
            if result.queued:
                logger.info("activity_queued", action_id=result.action_id, pending_count=result.pending_count)
            elif result.response is not None:
                logger.info("activity_sent", action_id=result.action_id, response=result.response.json())

        if args.run_seconds > 0:
            await asyncio.sleep(args.run_seconds)
        else:
            await asyncio.Event().wait()
    finally:
        logger.info("offline_sync_stopping", pending_count=await runtime.queue.pending_count())
        await runtime.close()


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
