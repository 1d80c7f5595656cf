"""FastAPI boundary for the collaborative story and its scheduler hooks."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Literal, TypeVar

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from haunted_thread.api.contracts import (
    ArchivePageResponse,
    CurrentStoryResponse,
    DailyStatsResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    StoryResponse,
    SubmissionRequest,
    SubmissionResponse,
    TickResponse,
    UserContributionResponse,
    VoteRequest,
    VoteResponse,
)
from haunted_thread.application.lifecycle import StoryLifecycleManager, TickResult
from haunted_thread.application.wiring import build_lifecycle_manager
from haunted_thread.core.settings import RuntimeSettings
from haunted_thread.domain.errors import (
    ConcurrencyConflictError,
    StoryCorruptionError,
    TransientExternalError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HealthResponse(BaseModel):
    """Simple health payload used by probes."""

    status: Literal["ok"] = "ok"
    service: str = "haunted_thread"


class ApiRootResponse(BaseModel):
    """Describes currently available API capabilities."""

    name: str = "haunted_thread"
    endpoints: list[str] = Field(
        default_factory=lambda: [
            "/healthz",
            "/api/v1",
            "/api/v1/story/current",
            "/api/v1/story/submissions",
            "/api/v1/story/votes",
            "/api/v1/leaderboard",
            "/api/v1/archive/stories",
            "/api/v1/archive/stories/{story_id}",
            "/api/v1/users/{user_id}/contributions",
            "/api/v1/stats/daily/{day}",
            "/internal/scheduler/hourly",
            "/internal/scheduler/daily",
        ]
    )


def _cors_origins() -> list[str]:
    raw = os.environ.get("HAUNTED_THREAD_CORS_ORIGINS", "").strip()
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return ["http://127.0.0.1:5173", "http://localhost:5173"]


def _guarded(label: str, action: Callable[[], T], *, failure_detail: str) -> T:
    """Run a core call, mapping internal faults to generic HTTP errors."""
    try:
        return action()
    except TransientExternalError as exc:
        logger.warning("api.unavailable op=%s error=%s", label, exc)
        raise HTTPException(status_code=503, detail="Temporarily unavailable") from exc
    except (StoryCorruptionError, ConcurrencyConflictError) as exc:
        logger.error("api.failed op=%s error=%s", label, exc)
        raise HTTPException(status_code=500, detail=failure_detail) from exc


def _tick_response(result: TickResult) -> TickResponse:
    return TickResponse(
        outcome=result.outcome,
        story_id=result.story_id,
        round_number=result.round_number,
        archived_story_id=result.archived_story_id,
        purged_keys=result.purged_keys,
    )


def create_app(
    db_path: Path | None = None, *, manager: StoryLifecycleManager | None = None
) -> FastAPI:
    """Create the API application."""
    if manager is None:
        settings = RuntimeSettings.from_env()
        if db_path is not None:
            settings = replace(settings, db_path=db_path)
        manager = build_lifecycle_manager(settings)
    lifecycle = manager

    app = FastAPI(
        title="haunted_thread API",
        version="0.1.0",
        description=(
            "Community-voted collaborative story: one sentence per round, "
            "archived and ranked once the story is complete."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "system", "description": "Service health and runtime metadata."},
            {"name": "api", "description": "API discovery and root-level capability listing."},
            {"name": "story", "description": "Current story, submissions, and votes."},
            {"name": "archive", "description": "Archived stories and the leaderboard."},
            {"name": "users", "description": "Per-submitter contribution history."},
            {"name": "scheduler", "description": "Round and maintenance tick delivery."},
        ],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("api.start db_path=%s", db_path)

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/v1", response_model=ApiRootResponse, tags=["api"])
    def api_root() -> ApiRootResponse:
        return ApiRootResponse()

    @app.get("/api/v1/story/current", response_model=CurrentStoryResponse, tags=["story"])
    def current_story() -> CurrentStoryResponse:
        view = _guarded(
            "story.current", lifecycle.get_current_story, failure_detail="Story unavailable"
        )
        return CurrentStoryResponse(
            story=StoryResponse.from_story(view.story),
            round_time_remaining_seconds=max(0, int(view.round_time_remaining.total_seconds())),
        )

    @app.post("/api/v1/story/submissions", response_model=SubmissionResponse, tags=["story"])
    def submit(payload: SubmissionRequest) -> SubmissionResponse:
        notice, candidate_id = _guarded(
            "story.submit",
            lambda: lifecycle.submit_candidate(
                payload.story_id,
                payload.round_number,
                payload.text,
                submitter_id=payload.submitter_id,
            ),
            failure_detail="Submission failed",
        )
        if not notice.accepted:
            return SubmissionResponse(status="rejected", reason=notice.reason)
        return SubmissionResponse(status="accepted", candidate_id=candidate_id)

    @app.post("/api/v1/story/votes", response_model=VoteResponse, tags=["story"])
    def vote(payload: VoteRequest) -> VoteResponse:
        receipt = _guarded(
            "story.vote",
            lambda: lifecycle.record_vote(
                payload.story_id,
                payload.round_number,
                payload.candidate_id,
                1 if payload.direction == "up" else -1,
                voter_id=payload.voter_id,
            ),
            failure_detail="Vote failed",
        )
        if receipt.reason == "unknown_candidate":
            raise HTTPException(status_code=404, detail="Candidate not found")
        if not receipt.accepted:
            return VoteResponse(
                status="rejected", reason=receipt.reason, candidate_id=payload.candidate_id
            )
        return VoteResponse(
            status="accepted", candidate_id=payload.candidate_id, score=receipt.score
        )

    @app.get("/api/v1/leaderboard", response_model=LeaderboardResponse, tags=["archive"])
    def leaderboard(top: int = Query(default=10, ge=1, le=10)) -> LeaderboardResponse:
        entries = _guarded(
            "leaderboard.top",
            lambda: lifecycle.leaderboard.top(top),
            failure_detail="Leaderboard unavailable",
        )
        return LeaderboardResponse(
            entries=[LeaderboardEntryResponse.from_entry(entry) for entry in entries]
        )

    @app.get("/api/v1/archive/stories", response_model=ArchivePageResponse, tags=["archive"])
    def list_archive(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=50),
        sort: Literal["date", "votes"] = Query(default="date"),
    ) -> ArchivePageResponse:
        stories, total_pages = _guarded(
            "archive.list",
            lambda: lifecycle.repository.list_archive(page=page, page_size=limit, sort_by=sort),
            failure_detail="Archive unavailable",
        )
        return ArchivePageResponse(
            stories=[StoryResponse.from_story(story) for story in stories],
            page=page,
            limit=limit,
            total_pages=total_pages,
            sort=sort,
        )

    @app.get(
        "/api/v1/archive/stories/{story_id}", response_model=StoryResponse, tags=["archive"]
    )
    def archived_story(story_id: str) -> StoryResponse:
        story = _guarded(
            "archive.get",
            lambda: lifecycle.repository.get_archived(story_id),
            failure_detail="Archive unavailable",
        )
        if story is None:
            raise HTTPException(status_code=404, detail="Story not found")
        return StoryResponse.from_story(story)

    @app.get(
        "/api/v1/users/{user_id}/contributions",
        response_model=UserContributionResponse,
        tags=["users"],
    )
    def user_contributions(user_id: str) -> UserContributionResponse:
        tracker = lifecycle.contributions
        contribution = _guarded(
            "users.contributions",
            lambda: None if tracker is None else tracker.get(user_id),
            failure_detail="Contributions unavailable",
        )
        if contribution is None:
            raise HTTPException(status_code=404, detail="User not found")
        return UserContributionResponse.from_contribution(contribution)

    @app.get("/api/v1/stats/daily/{day}", response_model=DailyStatsResponse, tags=["archive"])
    def daily_stats(day: date) -> DailyStatsResponse:
        stats = lifecycle.stats
        totals = _guarded(
            "stats.daily",
            lambda: {} if stats is None else stats.read(day),
            failure_detail="Stats unavailable",
        )
        return DailyStatsResponse(day=day, **totals)

    @app.post("/internal/scheduler/hourly", response_model=TickResponse, tags=["scheduler"])
    def hourly_tick() -> TickResponse:
        result = _guarded("tick.hourly", lifecycle.on_hourly_tick, failure_detail="Tick failed")
        return _tick_response(result)

    @app.post("/internal/scheduler/daily", response_model=TickResponse, tags=["scheduler"])
    def daily_tick() -> TickResponse:
        result = _guarded("tick.daily", lifecycle.on_daily_tick, failure_detail="Tick failed")
        return _tick_response(result)

    return app


app = create_app()
