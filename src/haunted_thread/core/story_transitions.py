"""Typed transitions for the story state machine."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from uuid import uuid4

from haunted_thread.domain.errors import IllegalTransitionError
from haunted_thread.domain.models import (
    AppendFallbackSentence,
    AppendSentence,
    Story,
    StoryStatus,
)

_ALLOWED_STATUS_MOVES: dict[StoryStatus, set[StoryStatus]] = {
    StoryStatus.ACTIVE: {StoryStatus.ACTIVE, StoryStatus.COMPLETED},
    StoryStatus.COMPLETED: {StoryStatus.COMPLETED, StoryStatus.ARCHIVED},
    StoryStatus.ARCHIVED: {StoryStatus.ARCHIVED},
}


def new_story(*, now: datetime) -> Story:
    return Story(
        story_id=f"story_{uuid4().hex}",
        created_at=now,
        round_started_at=now,
    )


def apply_decision(
    story: Story,
    decision: AppendSentence | AppendFallbackSentence,
    *,
    story_length: int,
    round_closed_at: datetime,
) -> Story:
    """Append the resolved sentence and advance or complete the story."""
    if not story.is_active:
        raise IllegalTransitionError(
            story.story_id, [f"Cannot append to a {story.status.value} story."]
        )
    if story.sentence_count >= story_length:
        raise IllegalTransitionError(story.story_id, ["Story is already at full length."])

    sentences = (*story.sentences, decision.text)
    contributors = story.contributors
    if decision.submitter_id not in contributors:
        contributors = (*contributors, decision.submitter_id)

    updated = replace(
        story,
        sentences=sentences,
        round_number=story.round_number + 1,
        total_votes=story.total_votes + max(decision.score, 0),
        contributors=contributors,
        round_started_at=round_closed_at,
    )
    if len(sentences) == story_length:
        updated = replace(updated, status=StoryStatus.COMPLETED, completed_at=round_closed_at)
    return updated


def mark_archived(story: Story) -> Story:
    if story.status is not StoryStatus.COMPLETED:
        raise IllegalTransitionError(
            story.story_id, [f"Only completed stories can be archived, got {story.status.value}."]
        )
    return replace(story, status=StoryStatus.ARCHIVED)


def check_transition(before: Story, after: Story) -> list[str]:
    """Return reasons why `before -> after` is not a legal write of one story."""
    issues: list[str] = []
    if before.story_id != after.story_id:
        return issues
    if after.status not in _ALLOWED_STATUS_MOVES[before.status]:
        issues.append(f"Status cannot move from {before.status.value} to {after.status.value}.")
    if before.created_at != after.created_at:
        issues.append("created_at is immutable.")
    if after.sentences[: len(before.sentences)] != before.sentences:
        issues.append("Sentences are append-only.")
    if len(after.sentences) > len(before.sentences) and not before.is_active:
        issues.append("Sentences can only be appended while active.")
    if before.completed_at is not None and after.completed_at != before.completed_at:
        issues.append("completed_at is immutable once set.")
    if after.total_votes < before.total_votes:
        issues.append("total_votes cannot decrease.")
    if not set(before.contributors).issubset(after.contributors):
        issues.append("Contributors can only grow.")
    if after.round_started_at < before.round_started_at:
        issues.append("Round windows cannot move backwards.")
    return issues
