"""Per-day activity counters kept with atomic increments."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Literal

from haunted_thread.domain.ports import KeyValueStore

Counter = Literal["rounds_resolved", "fallback_rounds", "stories_archived"]
COUNTERS: tuple[Counter, ...] = ("rounds_resolved", "fallback_rounds", "stories_archived")


def stats_key(day: date, counter: str) -> str:
    return f"stats:daily:{day.isoformat()}:{counter}"


class DailyStats:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def increment(self, counter: Counter, *, at: datetime, amount: int = 1) -> int:
        if counter not in COUNTERS:
            raise ValueError(f"Unknown counter '{counter}'.")
        return self._store.incr(stats_key(at.astimezone(UTC).date(), counter), amount)

    def read(self, day: date) -> dict[str, int]:
        totals: dict[str, int] = {}
        for counter in COUNTERS:
            raw = self._store.get(stats_key(day, counter))
            totals[counter] = 0 if raw is None else int(raw.decode("ascii"))
        return totals
