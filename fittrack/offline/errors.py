from __future__ import annotations

from enum import Enum

import httpx


class OfflineSyncError(Exception):
    pass


class QueueStoreError(OfflineSyncError):
    pass


class FailureKind(str, Enum):
    CONNECTIVITY = "connectivity"
    APPLICATION = "application"
    UNKNOWN = "unknown"


def classify_failure(exc: BaseException) -> FailureKind:
    """Connectivity failures never produced an HTTP response; application failures did."""
    if isinstance(exc, httpx.HTTPStatusError):
        return FailureKind.APPLICATION
    if isinstance(exc, (httpx.TransportError, TimeoutError)):
        return FailureKind.CONNECTIVITY
    return FailureKind.UNKNOWN


def is_connectivity_failure(exc: BaseException) -> bool:
    return classify_failure(exc) == FailureKind.CONNECTIVITY
