from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

from haunted_thread.domain.models import RoundWindow, Story, StoryStatus, validate_story

T0 = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


def _story(count: int, **changes: object) -> Story:
    story = Story(
        story_id="story_a",
        created_at=T0,
        round_started_at=T0,
        sentences=tuple(f"Sentence number {index}." for index in range(count)),
        round_number=count + 1,
        contributors=("alice",) if count else (),
    )
    return replace(story, **changes)  # type: ignore[arg-type]


def test_fresh_active_story_is_valid() -> None:
    assert validate_story(_story(0), story_length=3) == []
    assert validate_story(_story(2), story_length=3) == []


def test_active_story_round_number_must_track_sentences() -> None:
    issues = validate_story(_story(2, round_number=2), story_length=3)
    assert any("round 2 with 2 sentences" in issue for issue in issues)


def test_active_story_cannot_be_full_or_completed() -> None:
    issues = validate_story(_story(3), story_length=3)
    assert any("already holds 3 sentences" in issue for issue in issues)
    issues = validate_story(_story(1, completed_at=T0), story_length=3)
    assert any("has completed_at set" in issue for issue in issues)


def test_completed_status_requires_full_length_and_completed_at() -> None:
    full = _story(3, status=StoryStatus.COMPLETED, completed_at=T0 + timedelta(hours=3))
    assert validate_story(full, story_length=3) == []

    short = _story(2, status=StoryStatus.COMPLETED, completed_at=T0)
    assert any("expected 3" in issue for issue in validate_story(short, story_length=3))

    missing = _story(3, status=StoryStatus.ARCHIVED)
    assert any("without completed_at" in issue for issue in validate_story(missing, story_length=3))


def test_length_bound_duplicates_and_time_ordering() -> None:
    over = _story(4, status=StoryStatus.COMPLETED, completed_at=T0)
    assert any("above limit 3" in issue for issue in validate_story(over, story_length=3))

    dupes = _story(1, contributors=("alice", "alice"))
    assert any("duplicate contributors" in issue for issue in validate_story(dupes, story_length=3))

    early = _story(
        3, status=StoryStatus.COMPLETED, completed_at=T0 - timedelta(seconds=1)
    )
    assert any("completed before" in issue for issue in validate_story(early, story_length=3))

    backwards = _story(0, round_started_at=T0 - timedelta(minutes=1))
    assert any("opened a round" in issue for issue in validate_story(backwards, story_length=3))


def test_round_window_is_half_open() -> None:
    window = RoundWindow(start=T0, end=T0 + timedelta(hours=1))
    assert window.contains(T0)
    assert window.contains(T0 + timedelta(minutes=59))
    assert not window.contains(T0 + timedelta(hours=1))
    assert not window.contains(T0 - timedelta(microseconds=1))
