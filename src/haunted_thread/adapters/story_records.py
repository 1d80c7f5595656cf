"""Versioned pydantic record shapes for everything written to the store."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from haunted_thread.domain.models import (
    AppendFallbackSentence,
    AppendSentence,
    Candidate,
    ContributionLine,
    LeaderboardEntry,
    RoundRecord,
    RoundWindow,
    Story,
    StoryStatus,
    UserContribution,
)

RECORD_SCHEMA_VERSION = "haunted_thread.record.v1"


class StoreRecord(BaseModel):
    """Base config for persisted records."""

    model_config = ConfigDict(extra="forbid")

    schema_version: str = RECORD_SCHEMA_VERSION


class StoryRecord(StoreRecord):
    story_id: str = Field(min_length=1)
    created_at: datetime
    round_started_at: datetime
    sentences: list[str] = Field(default_factory=list)
    round_number: int = Field(ge=1)
    total_votes: int = 0
    status: Literal["active", "completed", "archived"]
    contributors: list[str] = Field(default_factory=list)
    completed_at: datetime | None = None


class CandidateRecord(StoreRecord):
    candidate_id: str
    text: str
    score: int
    submitter_id: str
    created_at: datetime


class RoundHistoryRecord(StoreRecord):
    story_id: str
    round_number: int
    window_start: datetime
    window_end: datetime
    submissions: list[CandidateRecord] = Field(default_factory=list)
    winner_text: str
    winner_submitter_id: str
    winner_score: int
    winner_candidate_id: str | None = None
    resolved_at: datetime


class LeaderboardEntryRecord(StoreRecord):
    rank: int = Field(ge=1)
    story_id: str
    sentence_count: int
    total_votes: int
    creator: str
    completed_at: datetime
    preview: str


class LeaderboardRecord(StoreRecord):
    entries: list[LeaderboardEntryRecord] = Field(default_factory=list)


class ArchiveIndexRecord(StoreRecord):
    story_ids: list[str] = Field(default_factory=list)


class ContributionLineRecord(StoreRecord):
    story_id: str
    round_number: int
    sentence: str
    score: int
    was_winner: bool


class ContributionRecord(StoreRecord):
    user_id: str
    total_submissions: int = 0
    total_wins: int = 0
    total_upvotes: int = 0
    submissions: list[ContributionLineRecord] = Field(default_factory=list)


def story_to_record(story: Story) -> StoryRecord:
    return StoryRecord(
        story_id=story.story_id,
        created_at=story.created_at,
        round_started_at=story.round_started_at,
        sentences=list(story.sentences),
        round_number=story.round_number,
        total_votes=story.total_votes,
        status=story.status.value,
        contributors=list(story.contributors),
        completed_at=story.completed_at,
    )


def story_from_record(record: StoryRecord, *, version: int = 0) -> Story:
    return Story(
        story_id=record.story_id,
        created_at=record.created_at,
        round_started_at=record.round_started_at,
        sentences=tuple(record.sentences),
        round_number=record.round_number,
        total_votes=record.total_votes,
        status=StoryStatus(record.status),
        contributors=tuple(record.contributors),
        completed_at=record.completed_at,
        version=version,
    )


def candidate_to_record(candidate: Candidate) -> CandidateRecord:
    return CandidateRecord(
        candidate_id=candidate.candidate_id,
        text=candidate.text,
        score=candidate.score,
        submitter_id=candidate.submitter_id,
        created_at=candidate.created_at,
    )


def candidate_from_record(record: CandidateRecord) -> Candidate:
    return Candidate(
        candidate_id=record.candidate_id,
        text=record.text,
        score=record.score,
        submitter_id=record.submitter_id,
        created_at=record.created_at,
    )


def round_to_record(round_record: RoundRecord) -> RoundHistoryRecord:
    winner = round_record.winner
    return RoundHistoryRecord(
        story_id=round_record.story_id,
        round_number=round_record.round_number,
        window_start=round_record.window.start,
        window_end=round_record.window.end,
        submissions=[candidate_to_record(item) for item in round_record.submissions],
        winner_text=winner.text,
        winner_submitter_id=winner.submitter_id,
        winner_score=winner.score,
        winner_candidate_id=winner.candidate_id if isinstance(winner, AppendSentence) else None,
        resolved_at=round_record.resolved_at,
    )


def round_from_record(record: RoundHistoryRecord) -> RoundRecord:
    winner: AppendSentence | AppendFallbackSentence
    if record.winner_candidate_id is None:
        winner = AppendFallbackSentence(
            text=record.winner_text,
            submitter_id=record.winner_submitter_id,
            score=record.winner_score,
        )
    else:
        winner = AppendSentence(
            text=record.winner_text,
            submitter_id=record.winner_submitter_id,
            score=record.winner_score,
            candidate_id=record.winner_candidate_id,
        )
    return RoundRecord(
        story_id=record.story_id,
        round_number=record.round_number,
        window=RoundWindow(start=record.window_start, end=record.window_end),
        submissions=tuple(candidate_from_record(item) for item in record.submissions),
        winner=winner,
        resolved_at=record.resolved_at,
    )


def entry_to_record(entry: LeaderboardEntry) -> LeaderboardEntryRecord:
    return LeaderboardEntryRecord(
        rank=entry.rank,
        story_id=entry.story_id,
        sentence_count=entry.sentence_count,
        total_votes=entry.total_votes,
        creator=entry.creator,
        completed_at=entry.completed_at,
        preview=entry.preview,
    )


def entry_from_record(record: LeaderboardEntryRecord) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=record.rank,
        story_id=record.story_id,
        sentence_count=record.sentence_count,
        total_votes=record.total_votes,
        creator=record.creator,
        completed_at=record.completed_at,
        preview=record.preview,
    )


def contribution_from_record(record: ContributionRecord) -> UserContribution:
    return UserContribution(
        user_id=record.user_id,
        total_submissions=record.total_submissions,
        total_wins=record.total_wins,
        total_upvotes=record.total_upvotes,
        submissions=tuple(
            ContributionLine(
                story_id=line.story_id,
                round_number=line.round_number,
                sentence=line.sentence,
                score=line.score,
                was_winner=line.was_winner,
            )
            for line in record.submissions
        ),
    )
