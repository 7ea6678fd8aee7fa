from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from fittrack.core.config import get_settings
from fittrack.streak.constants import (
    EVENT_STREAK_AT_RISK,
    EVENT_STREAK_BROKEN,
    EVENT_STREAK_FREEZE_USED,
)
from fittrack.streak.types import StreakActivityResult, StreakOutcome

logger = structlog.get_logger(__name__)

_OUTCOME_EVENTS = {
    StreakOutcome.FREEZE_USED: EVENT_STREAK_FREEZE_USED,
    StreakOutcome.BROKEN: EVENT_STREAK_BROKEN,
}


def event_for_outcome(outcome: StreakOutcome) -> str | None:
    return _OUTCOME_EVENTS.get(outcome)


def build_notification_body(
    *,
    event: str,
    user_id: int,
    outcome: str,
    current_streak: int,
    longest_streak: int,
    sent_at: datetime,
) -> dict[str, Any]:
    return {
        "event": event,
        "userId": user_id,
        "outcome": outcome,
        "currentStreak": current_streak,
        "longestStreak": longest_streak,
        "sentAt": sent_at.isoformat(),
    }


async def _post_json(*, client: httpx.AsyncClient, url: str, body: dict[str, Any]) -> bool:
    try:
        response = await client.post(url, json=body)
        response.raise_for_status()
        return True
    except Exception:
        logger.exception(
            "streak_notification_delivery_failed",
            notification_event=body.get("event"),
            user_id=body.get("userId"),
        )
        return False


async def send_streak_notifications(bodies: list[dict[str, Any]]) -> int:
    """Hands notification events to the dispatcher webhook; returns how many were accepted."""
    settings = get_settings()
    url = settings.streak_notify_webhook_url.strip()
    if not url or not bodies:
        return 0

    delivered = 0
    async with httpx.AsyncClient(timeout=settings.streak_notify_timeout_seconds) as client:
        for body in bodies:
            if await _post_json(client=client, url=url, body=body):
                delivered += 1
    return delivered


async def notify_streak_outcome(*, user_id: int, result: StreakActivityResult) -> bool:
    if result.replayed:
        return False
    event = event_for_outcome(result.outcome)
    if event is None:
        return False

    body = build_notification_body(
        event=event,
        user_id=user_id,
        outcome=result.outcome.value,
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
        sent_at=datetime.now(timezone.utc),
    )
    return await send_streak_notifications([body]) == 1


def build_at_risk_body(
    *,
    user_id: int,
    current_streak: int,
    longest_streak: int,
    sent_at: datetime,
) -> dict[str, Any]:
    return build_notification_body(
        event=EVENT_STREAK_AT_RISK,
        user_id=user_id,
        outcome="atRisk",
        current_streak=current_streak,
        longest_streak=longest_streak,
        sent_at=sent_at,
    )
