"""Typed contracts shared by API handlers and the Python client."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from haunted_thread.domain.models import LeaderboardEntry, Story, UserContribution


class ContractModel(BaseModel):
    """Base model config used by all API contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class StoryResponse(ContractModel):
    story_id: str
    status: Literal["active", "completed", "archived"]
    sentences: list[str]
    sentence_count: int
    round_number: int
    total_votes: int
    contributors: list[str]
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_story(cls, story: Story) -> StoryResponse:
        return cls(
            story_id=story.story_id,
            status=story.status.value,
            sentences=list(story.sentences),
            sentence_count=story.sentence_count,
            round_number=story.round_number,
            total_votes=story.total_votes,
            contributors=list(story.contributors),
            created_at=story.created_at,
            completed_at=story.completed_at,
        )


class CurrentStoryResponse(ContractModel):
    """Current story plus the seconds left before the open round closes."""

    story: StoryResponse
    round_time_remaining_seconds: int = Field(ge=0)


class SubmissionRequest(ContractModel):
    story_id: str = Field(min_length=1, max_length=200)
    round_number: int = Field(ge=1)
    text: str = Field(max_length=5000)
    submitter_id: str = Field(default="anonymous", min_length=1, max_length=120)


class SubmissionResponse(ContractModel):
    status: Literal["accepted", "rejected"]
    reason: Literal["too_short", "too_long", "round_closed"] | None = None
    candidate_id: str | None = None


class VoteRequest(ContractModel):
    story_id: str = Field(min_length=1, max_length=200)
    round_number: int = Field(ge=1)
    candidate_id: str = Field(min_length=1, max_length=200)
    voter_id: str = Field(min_length=1, max_length=120)
    direction: Literal["up", "down"]


class VoteResponse(ContractModel):
    status: Literal["accepted", "rejected"]
    reason: Literal["round_closed", "already_voted"] | None = None
    candidate_id: str
    score: int | None = None


class LeaderboardEntryResponse(ContractModel):
    rank: int = Field(ge=1)
    story_id: str
    sentence_count: int
    total_votes: int
    creator: str
    completed_at: datetime
    preview: str

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> LeaderboardEntryResponse:
        return cls(
            rank=entry.rank,
            story_id=entry.story_id,
            sentence_count=entry.sentence_count,
            total_votes=entry.total_votes,
            creator=entry.creator,
            completed_at=entry.completed_at,
            preview=entry.preview,
        )


class LeaderboardResponse(ContractModel):
    entries: list[LeaderboardEntryResponse] = Field(default_factory=list)


class ArchivePageResponse(ContractModel):
    stories: list[StoryResponse] = Field(default_factory=list)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total_pages: int = Field(ge=1)
    sort: Literal["date", "votes"]


class ContributionLineResponse(ContractModel):
    story_id: str
    round_number: int
    sentence: str
    score: int
    was_winner: bool


class UserContributionResponse(ContractModel):
    user_id: str
    total_submissions: int
    total_wins: int
    total_upvotes: int
    submissions: list[ContributionLineResponse] = Field(default_factory=list)

    @classmethod
    def from_contribution(cls, contribution: UserContribution) -> UserContributionResponse:
        return cls(
            user_id=contribution.user_id,
            total_submissions=contribution.total_submissions,
            total_wins=contribution.total_wins,
            total_upvotes=contribution.total_upvotes,
            submissions=[
                ContributionLineResponse(
                    story_id=line.story_id,
                    round_number=line.round_number,
                    sentence=line.sentence,
                    score=line.score,
                    was_winner=line.was_winner,
                )
                for line in contribution.submissions
            ],
        )


class DailyStatsResponse(ContractModel):
    day: date
    rounds_resolved: int = 0
    fallback_rounds: int = 0
    stories_archived: int = 0


class TickResponse(ContractModel):
    outcome: Literal["started", "advanced", "completed", "noop"]
    story_id: str | None = None
    round_number: int | None = None
    archived_story_id: str | None = None
    purged_keys: int = 0
