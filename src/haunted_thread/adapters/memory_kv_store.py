"""Process-local key-value store for tests and single-process runs."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class _Entry:
    value: bytes
    version: int
    expires_at: datetime | None = None


class MemoryKeyValueStore:
    """Lock-guarded dict with the same semantics as the SQLite store."""

    def __init__(self, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            return None
        return entry

    def _write(self, key: str, value: bytes, expire_at: datetime | None) -> int:
        previous = self._entries.get(key)
        version = 1 if previous is None else previous.version + 1
        self._entries[key] = _Entry(value=value, version=version, expires_at=expire_at)
        return version

    def get(self, key: str) -> bytes | None:
        found = self.get_versioned(key)
        return None if found is None else found[0]

    def get_versioned(self, key: str) -> tuple[bytes, int] | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            return entry.value, entry.version

    def set(self, key: str, value: bytes, *, expire_at: datetime | None = None) -> int:
        with self._lock:
            return self._write(key, value, expire_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def set_if_version(
        self,
        key: str,
        value: bytes,
        *,
        expected_version: int | None,
        expire_at: datetime | None = None,
    ) -> int | None:
        with self._lock:
            entry = self._live(key)
            if expected_version is None:
                if entry is not None:
                    return None
            elif entry is None or entry.version != expected_version:
                return None
            return self._write(key, value, expire_at)

    def incr(self, key: str, amount: int = 1) -> int:
        with self._lock:
            entry = self._live(key)
            total = (0 if entry is None else int(entry.value.decode("ascii"))) + amount
            self._write(key, str(total).encode("ascii"), None)
            return total

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.expires_at is not None and entry.expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(key for key in self._entries if self._live(key) is not None)
