"""Story lifecycle orchestration driven by scheduler ticks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal

from haunted_thread.adapters.candidate_sources import StoreCandidateSource
from haunted_thread.adapters.story_repository import StoryRepository
from haunted_thread.application.contributions import ContributionTracker
from haunted_thread.application.daily_stats import Counter, DailyStats
from haunted_thread.application.leaderboard import LeaderboardMaintainer
from haunted_thread.core.retry_policy import RetryPolicy
from haunted_thread.core.round_resolver import RoundResolution, RoundResolver
from haunted_thread.core.round_schedule import elapsed_window, round_tag, round_time_remaining
from haunted_thread.core.story_transitions import apply_decision, new_story
from haunted_thread.domain.errors import TransientExternalError
from haunted_thread.domain.models import (
    AppendFallbackSentence,
    AppendSentence,
    NoOp,
    RoundRecord,
    RoundWindow,
    Story,
    StoryStatus,
    SubmissionNotice,
    VoteReceipt,
)
from haunted_thread.domain.ports import Broadcaster

logger = logging.getLogger(__name__)

TickOutcome = Literal["started", "advanced", "completed", "noop"]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TickResult:
    """What one tick changed; `noop` covers duplicate, early, and idle ticks."""

    outcome: TickOutcome
    story_id: str | None = None
    round_number: int | None = None
    archived_story_id: str | None = None
    purged_keys: int = 0


@dataclass(frozen=True)
class CurrentStoryView:
    story: Story
    round_time_remaining: timedelta


class StoryLifecycleManager:
    """Only component that turns resolver decisions into story writes.

    Every state change goes through the repository's compare-and-swap update,
    and each transition re-checks the story id, round number, and status
    inside that update, so duplicate or overlapping ticks settle a round once.
    """

    def __init__(
        self,
        *,
        repository: StoryRepository,
        resolver: RoundResolver,
        leaderboard: LeaderboardMaintainer,
        broadcaster: Broadcaster,
        story_length: int = 100,
        round_duration: timedelta = timedelta(hours=1),
        retry_policy: RetryPolicy | None = None,
        contributions: ContributionTracker | None = None,
        stats: DailyStats | None = None,
        intake: StoreCandidateSource | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._leaderboard = leaderboard
        self._broadcaster = broadcaster
        self._story_length = story_length
        self._round_duration = round_duration
        self._retry = retry_policy or RetryPolicy(retry_on=(TransientExternalError,))
        self._contributions = contributions
        self._stats = stats
        self._intake = intake
        self._clock = clock

    @property
    def repository(self) -> StoryRepository:
        return self._repository

    @property
    def leaderboard(self) -> LeaderboardMaintainer:
        return self._leaderboard

    @property
    def contributions(self) -> ContributionTracker | None:
        return self._contributions

    @property
    def stats(self) -> DailyStats | None:
        return self._stats

    def get_current_story(self, now: datetime | None = None) -> CurrentStoryView:
        """Return the current story, creating the first one when none exists."""
        moment = now or self._clock()
        story = self._retry.run(self._repository.load_current, label="story.load_current")
        if story is None:
            story = self._start_story(moment)[0]
        return CurrentStoryView(
            story=story,
            round_time_remaining=round_time_remaining(moment, self._round_duration),
        )

    def submit_candidate_notice(
        self, story_id: str, round_number: int, text: str, now: datetime | None = None
    ) -> SubmissionNotice:
        """Check a candidate against the open round and the length bounds; nothing is stored.

        A round stops taking submissions at its boundary, even while the tick
        that settles it has not run yet.
        """
        moment = now or self._clock()
        current = self._retry.run(self._repository.load_current, label="story.load_current")
        if not self._accepts_entries(current, story_id, round_number, moment):
            return SubmissionNotice(accepted=False, reason="round_closed")
        length = len(text.strip())
        rules = self._resolver.rules
        if length < rules.min_chars:
            return SubmissionNotice(accepted=False, reason="too_short")
        if length > rules.max_chars:
            return SubmissionNotice(accepted=False, reason="too_long")
        return SubmissionNotice(accepted=True)

    def submit_candidate(
        self,
        story_id: str,
        round_number: int,
        text: str,
        *,
        submitter_id: str,
        now: datetime | None = None,
    ) -> tuple[SubmissionNotice, str | None]:
        """Validate and, with a store-backed candidate source, keep the submission."""
        moment = now or self._clock()
        notice = self.submit_candidate_notice(story_id, round_number, text, moment)
        if not notice.accepted or self._intake is None:
            return notice, None
        candidate = self._intake.record_candidate(
            tag=round_tag(story_id, round_number),
            text=text.strip(),
            submitter_id=submitter_id,
            at=moment,
        )
        return notice, candidate.candidate_id

    def record_vote(
        self,
        story_id: str,
        round_number: int,
        candidate_id: str,
        delta: int,
        *,
        voter_id: str,
        now: datetime | None = None,
    ) -> VoteReceipt:
        """Apply one voter's up or down vote to a stored submission of the open round."""
        if self._intake is None:
            return VoteReceipt(accepted=False, reason="unknown_candidate")
        moment = now or self._clock()
        current = self._retry.run(self._repository.load_current, label="story.load_current")
        if not self._accepts_entries(current, story_id, round_number, moment):
            return VoteReceipt(accepted=False, reason="round_closed")
        return self._intake.apply_vote(
            tag=round_tag(story_id, round_number),
            candidate_id=candidate_id,
            voter_id=voter_id,
            delta=delta,
        )

    def resolve_round(
        self, story_id: str, round_number: int, now: datetime | None = None
    ) -> TickResult:
        """Settle round `round_number` of `story_id` if its window has elapsed."""
        moment = now or self._clock()
        current = self._retry.run(self._repository.load_current, label="story.load_current")
        if not self._is_open_round(current, story_id, round_number):
            logger.info("tick.duplicate story_id=%s round=%s", story_id, round_number)
            return TickResult(outcome="noop", story_id=story_id, round_number=round_number)
        assert current is not None

        window = elapsed_window(current, moment, self._round_duration)
        if window is None:
            logger.info("tick.window_open story_id=%s round=%s", story_id, round_number)
            return TickResult(outcome="noop", story_id=story_id, round_number=round_number)

        resolution = self._retry.run(
            lambda: self._resolver.resolve(
                story_id=story_id, round_number=round_number, window=window, now=moment
            ),
            label="round.resolve",
        )
        decision = resolution.decision
        if isinstance(decision, NoOp):
            logger.info(
                "tick.noop story_id=%s round=%s reason=%s", story_id, round_number, decision.reason
            )
            return TickResult(outcome="noop", story_id=story_id, round_number=round_number)

        applied = False

        def advance(loaded: Story | None) -> Story | None:
            nonlocal applied
            applied = False
            if not self._is_open_round(loaded, story_id, round_number):
                return loaded
            assert loaded is not None
            applied = True
            return apply_decision(
                loaded,
                decision,
                story_length=self._story_length,
                round_closed_at=window.end,
            )

        updated = self._retry.run(
            lambda: self._repository.atomic_update_current(advance), label="story.advance"
        )
        if not applied or updated is None:
            logger.info("tick.duplicate story_id=%s round=%s", story_id, round_number)
            return TickResult(outcome="noop", story_id=story_id, round_number=round_number)

        logger.info(
            "round.resolved story_id=%s round=%s fallback=%s sentences=%s status=%s",
            story_id,
            round_number,
            isinstance(decision, AppendFallbackSentence),
            updated.sentence_count,
            updated.status.value,
        )
        self._after_round(updated, round_number, window, resolution, decision, moment)
        outcome: TickOutcome = (
            "completed" if updated.status is StoryStatus.COMPLETED else "advanced"
        )
        return TickResult(outcome=outcome, story_id=story_id, round_number=round_number)

    def archive_completed(self, now: datetime | None = None) -> TickResult:
        """Archive a completed current story, rank it, and start its successor."""
        moment = now or self._clock()
        current = self._retry.run(self._repository.load_current, label="story.load_current")
        if current is None or current.status is not StoryStatus.COMPLETED:
            return TickResult(outcome="noop")

        outcome = self._retry.run(
            lambda: self._repository.archive(current), label="story.archive"
        )
        self._retry.run(
            lambda: self._leaderboard.record_archived(outcome.story), label="leaderboard.merge"
        )
        if outcome.newly_archived:
            self._best_effort(
                "daily_stats",
                current.story_id,
                lambda: self._count("stories_archived", moment),
            )
            self._publish(
                "story.archived",
                {
                    "story_id": current.story_id,
                    "total_votes": outcome.story.total_votes,
                    "sentence_count": outcome.story.sentence_count,
                },
            )

        successor, started = self._start_story(moment, replacing=current.story_id)
        return TickResult(
            outcome="started" if started else "noop",
            story_id=successor.story_id,
            round_number=successor.round_number,
            archived_story_id=current.story_id,
        )

    def on_hourly_tick(self, now: datetime | None = None) -> TickResult:
        """Start, advance, or complete-and-archive the current story; at most one round."""
        moment = now or self._clock()
        current = self._retry.run(self._repository.load_current, label="story.load_current")
        if current is None:
            story, started = self._start_story(moment)
            return TickResult(
                outcome="started" if started else "noop",
                story_id=story.story_id,
                round_number=story.round_number,
            )
        if current.status is StoryStatus.COMPLETED:
            return self.archive_completed(moment)

        result = self.resolve_round(current.story_id, current.round_number, moment)
        if result.outcome != "completed":
            return result
        archived = self.archive_completed(moment)
        return TickResult(
            outcome="completed",
            story_id=result.story_id,
            round_number=result.round_number,
            archived_story_id=archived.archived_story_id,
        )

    def on_daily_tick(self, now: datetime | None = None) -> TickResult:
        """Archive a lingering completed story, rebuild the ranking, drop expired keys."""
        moment = now or self._clock()
        archived = self.archive_completed(moment)
        stories = self._retry.run(self._repository.all_archived, label="archive.load_all")
        self._leaderboard.rebuild(stories)
        purged = self._retry.run(self._repository.store.purge_expired, label="store.purge")
        logger.info(
            "tick.daily archived_story_id=%s archive_size=%s purged=%s",
            archived.archived_story_id,
            len(stories),
            purged,
        )
        return TickResult(
            outcome=archived.outcome,
            story_id=archived.story_id,
            round_number=archived.round_number,
            archived_story_id=archived.archived_story_id,
            purged_keys=purged,
        )

    def _start_story(self, now: datetime, *, replacing: str | None = None) -> tuple[Story, bool]:
        """Create a story when none is current (or `replacing` is still the completed one)."""
        created = False

        def start(loaded: Story | None) -> Story | None:
            nonlocal created
            created = False
            if loaded is None or (
                replacing is not None
                and loaded.story_id == replacing
                and loaded.status is StoryStatus.COMPLETED
            ):
                created = True
                return new_story(now=now)
            return loaded

        story = self._retry.run(
            lambda: self._repository.atomic_update_current(start), label="story.start"
        )
        assert story is not None
        if created:
            logger.info("story.started story_id=%s replacing=%s", story.story_id, replacing)
            self._publish("story.started", {"story_id": story.story_id})
        return story, created

    def _after_round(
        self,
        story: Story,
        round_number: int,
        window: RoundWindow,
        resolution: RoundResolution,
        decision: AppendSentence | AppendFallbackSentence,
        now: datetime,
    ) -> None:
        record = RoundRecord(
            story_id=story.story_id,
            round_number=round_number,
            window=window,
            submissions=resolution.fetched,
            winner=decision,
            resolved_at=now,
        )
        self._best_effort(
            "round_history", story.story_id, lambda: self._repository.save_round(record)
        )
        if self._contributions is not None:
            contributions = self._contributions
            self._best_effort(
                "contributions",
                story.story_id,
                lambda: contributions.record_round(
                    story_id=story.story_id,
                    round_number=round_number,
                    candidates=resolution.eligible,
                    winner_id=decision.candidate_id
                    if isinstance(decision, AppendSentence)
                    else None,
                ),
            )
        self._best_effort("daily_stats", story.story_id, lambda: self._count_round(decision, now))
        self._publish(
            "story.round_resolved",
            {
                "story_id": story.story_id,
                "round_number": round_number,
                "sentence": decision.text,
                "submitter_id": decision.submitter_id,
                "score": decision.score,
                "status": story.status.value,
            },
        )

    def _count_round(
        self, decision: AppendSentence | AppendFallbackSentence, now: datetime
    ) -> None:
        self._count("rounds_resolved", now)
        if isinstance(decision, AppendFallbackSentence):
            self._count("fallback_rounds", now)

    def _count(self, counter: Counter, now: datetime) -> None:
        if self._stats is not None:
            self._stats.increment(counter, at=now)

    def _best_effort(self, step: str, story_id: str, action: Callable[[], object]) -> None:
        try:
            action()
        except Exception:  # noqa: BLE001
            logger.exception("tick.side_effect_failed step=%s story_id=%s", step, story_id)

    def _publish(self, topic: str, payload: dict[str, object]) -> None:
        try:
            self._broadcaster.publish(topic, payload)
        except Exception:  # noqa: BLE001
            logger.exception("broadcast.failed topic=%s", topic)

    def _accepts_entries(
        self, story: Story | None, story_id: str, round_number: int, now: datetime
    ) -> bool:
        if not self._is_open_round(story, story_id, round_number):
            return False
        assert story is not None
        return elapsed_window(story, now, self._round_duration) is None

    @staticmethod
    def _is_open_round(story: Story | None, story_id: str, round_number: int) -> bool:
        return (
            story is not None
            and story.is_active
            and story.story_id == story_id
            and story.round_number == round_number
        )
