from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import structlog

from fittrack.offline.errors import QueueStoreError

logger = structlog.get_logger(__name__)

QUEUE_KEY = "fittrack_offline_queue"


class QueueStore(Protocol):
    def load(self) -> list[dict[str, Any]]: ...

    def save(self, entries: list[dict[str, Any]]) -> None: ...


class MemoryQueueStore:
    """Keeps the serialized list only, so callers never share mutable entries with it."""

    def __init__(self, entries: list[dict[str, Any]] | None = None) -> None:
        self._raw = json.dumps(entries or [])
        self.save_count = 0

    def load(self) -> list[dict[str, Any]]:
        return json.loads(self._raw)

    def save(self, entries: list[dict[str, Any]]) -> None:
        self._raw = json.dumps(entries)
        self.save_count += 1


class JsonFileQueueStore:
    def __init__(self, path: str | Path, *, key: str = QUEUE_KEY) -> None:
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise QueueStoreError(f"cannot read queue file {self.path}") from exc

        try:
            document = json.loads(raw or "{}")
        except json.JSONDecodeError:
            logger.warning("offline_queue_file_corrupt", path=str(self.path))
            return {}
        if not isinstance(document, dict):
            logger.warning("offline_queue_file_invalid_shape", path=str(self.path))
            return {}
        return document

    def load(self) -> list[dict[str, Any]]:
        entries = self._read_document().get(self.key)
        if not isinstance(entries, list):
            return []
        return [entry for entry in entries if isinstance(entry, dict)]

    def save(self, entries: list[dict[str, Any]]) -> None:
        document = self._read_document()
        document[self.key] = entries
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, separators=(",", ":"))
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise QueueStoreError(f"cannot write queue file {self.path}") from exc
