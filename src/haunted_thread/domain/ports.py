"""Ports for storage, candidate intake, and broadcast."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from haunted_thread.domain.models import Candidate


class KeyValueStore(Protocol):
    """Byte-payload store with versions, expiry, and counters."""

    def get(self, key: str) -> bytes | None:
        ...

    def get_versioned(self, key: str) -> tuple[bytes, int] | None:
        ...

    def set(self, key: str, value: bytes, *, expire_at: datetime | None = None) -> int:
        ...

    def delete(self, key: str) -> bool:
        ...

    def set_if_version(
        self,
        key: str,
        value: bytes,
        *,
        expected_version: int | None,
        expire_at: datetime | None = None,
    ) -> int | None:
        ...

    def incr(self, key: str, amount: int = 1) -> int:
        ...

    def purge_expired(self) -> int:
        ...


class CandidateSource(Protocol):
    """Supplies scored candidate sentences for one round."""

    def fetch_candidates(self, *, tag: str, since: datetime, until: datetime) -> list[Candidate]:
        ...


class Broadcaster(Protocol):
    """Best-effort fan-out of lifecycle events."""

    def publish(self, topic: str, payload: dict[str, object]) -> None:
        ...
