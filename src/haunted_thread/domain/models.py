"""Core story domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal


class StoryStatus(str, Enum):
    """Lifecycle states a story moves through, in order."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class Story:
    """One collaborative story, either current or archived."""

    story_id: str
    created_at: datetime
    round_started_at: datetime
    sentences: tuple[str, ...] = ()
    round_number: int = 1
    total_votes: int = 0
    status: StoryStatus = StoryStatus.ACTIVE
    contributors: tuple[str, ...] = ()
    completed_at: datetime | None = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status is StoryStatus.ACTIVE

    @property
    def sentence_count(self) -> int:
        return len(self.sentences)


@dataclass(frozen=True)
class Candidate:
    """A proposed continuation with its externally computed score."""

    candidate_id: str
    text: str
    score: int
    submitter_id: str
    created_at: datetime


@dataclass(frozen=True)
class RoundWindow:
    """Half-open interval `[start, end)` for eligible candidates."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True)
class AppendSentence:
    """Winner chosen from submitted candidates."""

    text: str
    submitter_id: str
    score: int
    candidate_id: str


@dataclass(frozen=True)
class AppendFallbackSentence:
    """Filler sentence used when a round has no valid candidate."""

    text: str
    submitter_id: str
    score: int = 0


@dataclass(frozen=True)
class NoOp:
    """Nothing to apply for this round yet."""

    reason: str


RoundDecision = AppendSentence | AppendFallbackSentence | NoOp


@dataclass(frozen=True)
class RoundRecord:
    """Audit trail for one resolved round."""

    story_id: str
    round_number: int
    window: RoundWindow
    submissions: tuple[Candidate, ...]
    winner: AppendSentence | AppendFallbackSentence
    resolved_at: datetime


@dataclass(frozen=True)
class LeaderboardEntry:
    """Ranked view of one archived story."""

    rank: int
    story_id: str
    sentence_count: int
    total_votes: int
    creator: str
    completed_at: datetime
    preview: str


@dataclass(frozen=True)
class ContributionLine:
    """One candidate a user submitted to a resolved round."""

    story_id: str
    round_number: int
    sentence: str
    score: int
    was_winner: bool


@dataclass(frozen=True)
class UserContribution:
    """Running totals for one submitter."""

    user_id: str
    total_submissions: int = 0
    total_wins: int = 0
    total_upvotes: int = 0
    submissions: tuple[ContributionLine, ...] = field(default_factory=tuple)


RejectionReason = Literal["too_short", "too_long", "round_closed"]


@dataclass(frozen=True)
class SubmissionNotice:
    """Outcome of a pre-submission check for a candidate sentence."""

    accepted: bool
    reason: RejectionReason | None = None


VoteRejection = Literal["round_closed", "already_voted", "unknown_candidate"]


@dataclass(frozen=True)
class VoteReceipt:
    """Outcome of one vote; each voter gets a single vote per round."""

    accepted: bool
    score: int | None = None
    reason: VoteRejection | None = None


def validate_story(story: Story, *, story_length: int) -> list[str]:
    """Return invariant violations for one story record (empty when valid)."""
    issues: list[str] = []
    count = len(story.sentences)
    if count > story_length:
        issues.append(
            f"Story '{story.story_id}' has {count} sentences, above limit {story_length}."
        )
    if len(set(story.contributors)) != len(story.contributors):
        issues.append(f"Story '{story.story_id}' lists duplicate contributors.")

    if story.is_active:
        if story.completed_at is not None:
            issues.append(f"Active story '{story.story_id}' has completed_at set.")
        if story.round_number != count + 1:
            issues.append(
                f"Active story '{story.story_id}' is at round {story.round_number} "
                f"with {count} sentences."
            )
        if count >= story_length:
            issues.append(f"Active story '{story.story_id}' already holds {count} sentences.")
    else:
        if count != story_length:
            issues.append(
                f"Story '{story.story_id}' is {story.status.value} with {count} sentences, "
                f"expected {story_length}."
            )
        if story.completed_at is None:
            issues.append(f"Story '{story.story_id}' is {story.status.value} without completed_at.")

    if story.completed_at is not None and story.completed_at < story.created_at:
        issues.append(f"Story '{story.story_id}' completed before it was created.")
    if story.round_started_at < story.created_at:
        issues.append(f"Story '{story.story_id}' opened a round before it was created.")
    return issues
