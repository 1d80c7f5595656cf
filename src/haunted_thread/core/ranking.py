"""Leaderboard ordering and archive sorting."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Literal

from haunted_thread.domain.models import LeaderboardEntry, Story

ArchiveSort = Literal["date", "votes"]


def story_preview(sentences: tuple[str, ...], *, max_chars: int = 100) -> str:
    return " ".join(sentences[:2])[:max_chars]


def leaderboard_entry_for(story: Story, *, preview_chars: int = 100) -> LeaderboardEntry:
    if story.completed_at is None:
        raise ValueError(f"Story '{story.story_id}' has no completion time.")
    return LeaderboardEntry(
        rank=0,
        story_id=story.story_id,
        sentence_count=story.sentence_count,
        total_votes=story.total_votes,
        creator=story.contributors[0] if story.contributors else "anonymous",
        completed_at=story.completed_at,
        preview=story_preview(story.sentences, max_chars=preview_chars),
    )


def rank_entries(entries: Iterable[LeaderboardEntry], *, limit: int) -> list[LeaderboardEntry]:
    """Deduplicate by story, order by votes then older completion, assign ranks 1..n."""
    by_story: dict[str, LeaderboardEntry] = {}
    for entry in entries:
        by_story[entry.story_id] = entry
    ordered = sorted(
        by_story.values(),
        key=lambda entry: (-entry.total_votes, entry.completed_at, entry.story_id),
    )
    return [replace(entry, rank=index) for index, entry in enumerate(ordered[:limit], start=1)]


def sort_archive(stories: Iterable[Story], *, sort_by: ArchiveSort) -> list[Story]:
    items = list(stories)
    if sort_by == "votes":
        return sorted(
            items,
            key=lambda story: (-story.total_votes, story.completed_at or story.created_at),
        )
    return sorted(
        items,
        key=lambda story: story.completed_at or story.created_at,
        reverse=True,
    )
