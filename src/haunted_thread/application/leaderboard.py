"""Top-N ranking of archived stories, kept in one derived store record."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from haunted_thread.adapters.response_cache import TtlCache
from haunted_thread.adapters.story_records import (
    LeaderboardRecord,
    entry_from_record,
    entry_to_record,
)
from haunted_thread.adapters.story_repository import StoryRepository
from haunted_thread.core.ranking import leaderboard_entry_for, rank_entries
from haunted_thread.domain.models import LeaderboardEntry, Story

logger = logging.getLogger(__name__)

LEADERBOARD_KEY = "leaderboard:top"


class LeaderboardMaintainer:
    """Merges archived stories into the ranking and serves reads through a TTL cache."""

    def __init__(
        self,
        repository: StoryRepository,
        cache: TtlCache[list[LeaderboardEntry]],
        *,
        size: int = 10,
        preview_chars: int = 100,
    ) -> None:
        if size < 1:
            raise ValueError("size must be at least 1.")
        self._repository = repository
        self._cache = cache
        self._size = size
        self._preview_chars = preview_chars

    @property
    def size(self) -> int:
        return self._size

    def record_archived(self, story: Story) -> list[LeaderboardEntry]:
        """Merge one archived story; a story already ranked with the same totals is left as is."""
        candidate = leaderboard_entry_for(story, preview_chars=self._preview_chars)

        def merge(current: LeaderboardRecord | None) -> LeaderboardRecord | None:
            existing = [] if current is None else [entry_from_record(e) for e in current.entries]
            ranked = rank_entries([*existing, candidate], limit=self._size)
            if ranked == existing:
                return None
            return LeaderboardRecord(entries=[entry_to_record(entry) for entry in ranked])

        stored = self._repository.update_record(LEADERBOARD_KEY, LeaderboardRecord, merge)
        self._cache.invalidate(LEADERBOARD_KEY)
        entries = [] if stored is None else [entry_from_record(e) for e in stored.entries]
        logger.info(
            "leaderboard.merged story_id=%s ranked=%s",
            story.story_id,
            any(entry.story_id == story.story_id for entry in entries),
        )
        return entries

    def rebuild(self, stories: Iterable[Story]) -> list[LeaderboardEntry]:
        """Recompute the ranking from the full archive, replacing the stored record."""
        ranked = rank_entries(
            (
                leaderboard_entry_for(story, preview_chars=self._preview_chars)
                for story in stories
                if story.completed_at is not None
            ),
            limit=self._size,
        )
        record = LeaderboardRecord(entries=[entry_to_record(entry) for entry in ranked])
        self._repository.update_record(LEADERBOARD_KEY, LeaderboardRecord, lambda _: record)
        self._cache.invalidate(LEADERBOARD_KEY)
        logger.info("leaderboard.rebuilt entries=%s", len(ranked))
        return ranked

    def top(self, n: int | None = None) -> list[LeaderboardEntry]:
        limit = self._size if n is None else n
        if limit < 1:
            raise ValueError("n must be at least 1.")
        cached = self._cache.get(LEADERBOARD_KEY)
        if cached is None:
            record = self._repository.get_record(LEADERBOARD_KEY, LeaderboardRecord)
            cached = [] if record is None else [entry_from_record(e) for e in record.entries]
            self._cache.set(LEADERBOARD_KEY, cached)
        return cached[: min(limit, self._size)]
