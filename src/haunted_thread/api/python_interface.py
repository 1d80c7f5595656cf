"""Python-first client for the haunted_thread HTTP API."""

from __future__ import annotations

from datetime import date
from typing import Literal

import httpx

from haunted_thread.api.contracts import (
    ArchivePageResponse,
    CurrentStoryResponse,
    DailyStatsResponse,
    LeaderboardResponse,
    StoryResponse,
    SubmissionRequest,
    SubmissionResponse,
    TickResponse,
    UserContributionResponse,
    VoteRequest,
    VoteResponse,
)


class HauntedThreadClient:
    """Tiny typed API client for Python users."""

    def __init__(self, api_base_url: str = "http://127.0.0.1:8000") -> None:
        """Initialize client with an API base URL."""
        self._api_base_url = api_base_url.rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Return normalized API base URL."""
        return self._api_base_url

    def current_story(self) -> CurrentStoryResponse:
        """Fetch the current story and the time left in its round."""
        response = httpx.get(f"{self._api_base_url}/api/v1/story/current", timeout=30.0)
        response.raise_for_status()
        return CurrentStoryResponse.model_validate(response.json())

    def submit(
        self,
        *,
        story_id: str,
        round_number: int,
        text: str,
        submitter_id: str = "anonymous",
    ) -> SubmissionResponse:
        """Submit a candidate sentence for the open round."""
        request = SubmissionRequest(
            story_id=story_id, round_number=round_number, text=text, submitter_id=submitter_id
        )
        response = httpx.post(
            f"{self._api_base_url}/api/v1/story/submissions",
            json=request.model_dump(mode="json"),
            timeout=30.0,
        )
        response.raise_for_status()
        return SubmissionResponse.model_validate(response.json())

    def vote(
        self,
        *,
        story_id: str,
        round_number: int,
        candidate_id: str,
        voter_id: str,
        direction: Literal["up", "down"] = "up",
    ) -> VoteResponse:
        """Up- or down-vote a stored candidate; one vote per voter per round."""
        request = VoteRequest(
            story_id=story_id,
            round_number=round_number,
            candidate_id=candidate_id,
            voter_id=voter_id,
            direction=direction,
        )
        response = httpx.post(
            f"{self._api_base_url}/api/v1/story/votes",
            json=request.model_dump(mode="json"),
            timeout=30.0,
        )
        response.raise_for_status()
        return VoteResponse.model_validate(response.json())

    def leaderboard(self, *, top: int = 10) -> LeaderboardResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/leaderboard", params={"top": top}, timeout=30.0
        )
        response.raise_for_status()
        return LeaderboardResponse.model_validate(response.json())

    def archive(
        self, *, page: int = 1, limit: int = 10, sort: Literal["date", "votes"] = "date"
    ) -> ArchivePageResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/archive/stories",
            params={"page": page, "limit": limit, "sort": sort},
            timeout=30.0,
        )
        response.raise_for_status()
        return ArchivePageResponse.model_validate(response.json())

    def archived_story(self, story_id: str) -> StoryResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/archive/stories/{story_id}", timeout=30.0
        )
        response.raise_for_status()
        return StoryResponse.model_validate(response.json())

    def contributions(self, user_id: str) -> UserContributionResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/users/{user_id}/contributions", timeout=30.0
        )
        response.raise_for_status()
        return UserContributionResponse.model_validate(response.json())

    def daily_stats(self, day: date) -> DailyStatsResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/stats/daily/{day.isoformat()}", timeout=30.0
        )
        response.raise_for_status()
        return DailyStatsResponse.model_validate(response.json())

    def trigger_tick(self, kind: Literal["hourly", "daily"]) -> TickResponse:
        """Deliver one scheduler tick; used by cron-style runners."""
        response = httpx.post(f"{self._api_base_url}/internal/scheduler/{kind}", timeout=60.0)
        response.raise_for_status()
        return TickResponse.model_validate(response.json())


__all__ = ["HauntedThreadClient"]
