from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from haunted_thread.core.story_transitions import (
    apply_decision,
    check_transition,
    mark_archived,
    new_story,
)
from haunted_thread.domain.errors import IllegalTransitionError
from haunted_thread.domain.models import (
    AppendFallbackSentence,
    AppendSentence,
    Story,
    StoryStatus,
    validate_story,
)

T0 = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)
LENGTH = 3


def _win(submitter: str = "alice", score: int = 4) -> AppendSentence:
    return AppendSentence(
        text="The lantern flickered twice.", submitter_id=submitter, score=score, candidate_id="c1"
    )


def _advance(story: Story, decision: AppendSentence | AppendFallbackSentence, hours: int) -> Story:
    return apply_decision(
        story, decision, story_length=LENGTH, round_closed_at=T0 + timedelta(hours=hours)
    )


def test_new_story_starts_empty_at_round_one() -> None:
    story = new_story(now=T0)
    assert story.story_id.startswith("story_")
    assert story.sentences == ()
    assert story.round_number == 1
    assert story.status is StoryStatus.ACTIVE
    assert story.round_started_at == T0
    assert validate_story(story, story_length=LENGTH) == []


def test_apply_decision_appends_and_advances_round() -> None:
    story = _advance(new_story(now=T0), _win(), 1)
    assert story.sentences == ("The lantern flickered twice.",)
    assert story.round_number == 2
    assert story.total_votes == 4
    assert story.contributors == ("alice",)
    assert story.round_started_at == T0 + timedelta(hours=1)


def test_contributors_collapse_duplicates_and_include_system() -> None:
    story = _advance(new_story(now=T0), _win("alice"), 1)
    story = _advance(story, _win("alice"), 2)
    assert story.contributors == ("alice",)
    story = _advance(story, AppendFallbackSentence(text="...", submitter_id="system"), 3)
    assert story.contributors == ("alice", "system")


def test_negative_winning_score_does_not_reduce_total_votes() -> None:
    story = _advance(new_story(now=T0), _win(score=5), 1)
    story = _advance(story, _win(score=-3), 2)
    assert story.total_votes == 5


def test_reaching_length_completes_story_both_ways() -> None:
    story = new_story(now=T0)
    for hour in range(1, LENGTH):
        story = _advance(story, _win(), hour)
        assert story.status is StoryStatus.ACTIVE
        assert story.completed_at is None
    story = _advance(story, _win(), LENGTH)
    assert story.status is StoryStatus.COMPLETED
    assert story.completed_at == T0 + timedelta(hours=LENGTH)
    assert story.sentence_count == LENGTH
    assert validate_story(story, story_length=LENGTH) == []


def test_completed_story_is_not_appendable() -> None:
    story = new_story(now=T0)
    for hour in range(1, LENGTH + 1):
        story = _advance(story, _win(), hour)
    with pytest.raises(IllegalTransitionError, match="completed story"):
        _advance(story, _win(), LENGTH + 1)


def test_mark_archived_only_from_completed() -> None:
    with pytest.raises(IllegalTransitionError, match="Only completed stories"):
        mark_archived(new_story(now=T0))
    story = new_story(now=T0)
    for hour in range(1, LENGTH + 1):
        story = _advance(story, _win(), hour)
    archived = mark_archived(story)
    assert archived.status is StoryStatus.ARCHIVED
    assert archived.completed_at == story.completed_at


def test_check_transition_flags_illegal_moves() -> None:
    before = _advance(new_story(now=T0), _win("alice", 5), 1)
    assert check_transition(before, _advance(before, _win("bob"), 2)) == []

    rewritten = replace(before, sentences=("Something else entirely.",))
    assert "Sentences are append-only." in check_transition(before, rewritten)

    fewer_votes = replace(before, total_votes=1)
    assert "total_votes cannot decrease." in check_transition(before, fewer_votes)

    lost = replace(before, contributors=())
    assert "Contributors can only grow." in check_transition(before, lost)

    skipped = replace(before, status=StoryStatus.ARCHIVED)
    assert "Status cannot move from active to archived." in check_transition(before, skipped)

    moved = replace(before, created_at=T0 - timedelta(days=1))
    assert "created_at is immutable." in check_transition(before, moved)
