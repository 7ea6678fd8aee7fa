from __future__ import annotations

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping

import httpx


def new_action_id(now_utc: datetime) -> str:
    return f"{int(now_utc.timestamp() * 1000)}-{secrets.token_hex(6)}"


def _parse_created_at(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class QueuedAction:
    id: str
    method: str
    target: str
    payload: Any
    retry_count: int
    created_at: datetime

    @classmethod
    def new(cls, *, method: str, target: str, payload: Any, now_utc: datetime) -> QueuedAction:
        return cls(
            id=new_action_id(now_utc),
            method=method.upper(),
            target=target,
            payload=payload,
            retry_count=0,
            created_at=now_utc,
        )

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> QueuedAction | None:
        action_id = document.get("id")
        method = document.get("method")
        target = document.get("target")
        created_at = _parse_created_at(document.get("createdAt"))
        if not isinstance(action_id, str) or not isinstance(method, str) or not isinstance(target, str):
            return None
        if created_at is None:
            return None

        retry_count = document.get("retryCount", 0)
        if not isinstance(retry_count, int) or isinstance(retry_count, bool) or retry_count < 0:
            retry_count = 0

        return cls(
            id=action_id,
            method=method,
            target=target,
            payload=document.get("payload"),
            retry_count=retry_count,
            created_at=created_at,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "method": self.method,
            "target": self.target,
            "payload": self.payload,
            "retryCount": self.retry_count,
            "createdAt": self.created_at.isoformat(),
        }

    def with_retry(self) -> QueuedAction:
        return replace(self, retry_count=self.retry_count + 1)


@dataclass(slots=True)
class SubmitResult:
    queued: bool
    action_id: str
    pending_count: int | None = None
    response: httpx.Response | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"offline": self.queued, "queued": self.queued, "actionId": self.action_id}


@dataclass(slots=True)
class DrainSettlement:
    removed: list[str] = field(default_factory=list)
    retried: list[str] = field(default_factory=list)
    dropped: list[QueuedAction] = field(default_factory=list)
    remaining: int = 0


@dataclass(slots=True)
class DrainReport:
    attempted: int
    succeeded: int
    failed: int
    dropped: int
    remaining: int

    def as_log_fields(self) -> dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "dropped": self.dropped,
            "remaining": self.remaining,
        }
