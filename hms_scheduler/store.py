"""Key-value record store standing in for browser local storage.

Values are JSON documents. Callers get deep copies, so mutating a loaded
value never leaks back into the store without an explicit `set`.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol

from hms_scheduler.logging_config import get_logger

logger = get_logger(__name__)

JSON = Any


def appointments_key(email: str) -> str:
    return f"appointments_{email}"


def registrations_key(email: str) -> str:
    return f"registrations_{email}"


def draft_key(email: str) -> str:
    return f"registrationDraft_{email}"


def session_key(token: str) -> str:
    return f"session_{token}"


USERS_KEY = "users"

# every registration ID ever issued, across all users
REGISTRATION_IDS_KEY = "registrationIds"

FEEDBACK_KEY = "feedbacks"


class RecordStore(Protocol):
    async def get(self, key: str) -> JSON | None: ...

    async def set(self, key: str, value: JSON) -> None: ...

    async def delete(self, key: str) -> None: ...


def _copy(value: JSON) -> JSON:
    # also rejects anything that is not JSON-serialisable
    return json.loads(json.dumps(value))


class InMemoryRecordStore:
    """Process-local store; access is serialised with an asyncio.Lock."""

    def __init__(self, initial: dict[str, JSON] | None = None) -> None:
        self._records: dict[str, JSON] = {k: _copy(v) for k, v in (initial or {}).items()}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> JSON | None:
        async with self._lock:
            raw = self._records.get(key)
        return _copy(raw) if raw is not None else None

    async def set(self, key: str, value: JSON) -> None:
        serialisable = _copy(value)
        async with self._lock:
            self._records[key] = serialisable

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._records.pop(key, None)


class JsonFileRecordStore(InMemoryRecordStore):
    """In-memory store that rewrites a single JSON file after every change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        initial: dict[str, JSON] = {}
        if self.path.exists():
            initial = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            logger.info("record_store_loaded", path=str(self.path), keys=len(initial))
        super().__init__(initial)

    async def set(self, key: str, value: JSON) -> None:
        await super().set(key, value)
        await self._flush()

    async def delete(self, key: str) -> None:
        await super().delete(key)
        await self._flush()

    async def _flush(self) -> None:
        async with self._lock:
            snapshot = json.dumps(self._records, indent=2)
        await asyncio.to_thread(self._write, snapshot)

    def _write(self, snapshot: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(snapshot, encoding="utf-8")
        tmp.replace(self.path)
