"""Construct a fully wired lifecycle manager from runtime settings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from haunted_thread.adapters.broadcast import LoggingBroadcaster, WebhookBroadcaster
from haunted_thread.adapters.candidate_sources import HttpCandidateSource, StoreCandidateSource
from haunted_thread.adapters.kv_store_factory import create_key_value_store
from haunted_thread.adapters.response_cache import TtlCache
from haunted_thread.adapters.story_repository import StoryRepository
from haunted_thread.application.contributions import ContributionTracker
from haunted_thread.application.daily_stats import DailyStats
from haunted_thread.application.leaderboard import LeaderboardMaintainer
from haunted_thread.application.lifecycle import StoryLifecycleManager
from haunted_thread.core.retry_policy import RetryPolicy
from haunted_thread.core.round_resolver import ResolverRules, RoundResolver
from haunted_thread.core.settings import RuntimeSettings
from haunted_thread.domain.errors import TransientExternalError
from haunted_thread.domain.models import LeaderboardEntry
from haunted_thread.domain.ports import Broadcaster, CandidateSource, KeyValueStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def build_lifecycle_manager(
    settings: RuntimeSettings,
    *,
    store: KeyValueStore | None = None,
    candidate_source: CandidateSource | None = None,
    broadcaster: Broadcaster | None = None,
    clock: Callable[[], datetime] | None = None,
) -> StoryLifecycleManager:
    """Wire adapters per settings; explicit collaborators override the configured ones."""
    now_fn = clock or _utc_now
    kv_store = store or create_key_value_store(db_path=settings.db_path)
    repository = StoryRepository(
        kv_store, story_length=settings.story_length, cas_attempts=settings.cas_attempts
    )

    intake: StoreCandidateSource | None = None
    if candidate_source is None:
        if settings.candidate_source_url:
            candidate_source = HttpCandidateSource(
                settings.candidate_source_url, timeout_seconds=settings.fetch_timeout_seconds
            )
        else:
            intake = StoreCandidateSource(
                kv_store, clock=now_fn, cas_attempts=settings.cas_attempts
            )
            candidate_source = intake
    elif isinstance(candidate_source, StoreCandidateSource):
        intake = candidate_source

    if broadcaster is None:
        broadcaster = (
            WebhookBroadcaster(settings.broadcast_webhook_url)
            if settings.broadcast_webhook_url
            else LoggingBroadcaster()
        )

    resolver = RoundResolver(
        candidate_source,
        ResolverRules(
            min_chars=settings.min_sentence_chars,
            max_chars=settings.max_sentence_chars,
            fallback_sentence=settings.fallback_sentence,
            system_submitter=settings.system_submitter,
        ),
    )
    cache: TtlCache[list[LeaderboardEntry]] = TtlCache(ttl_seconds=settings.cache_ttl_seconds)
    leaderboard = LeaderboardMaintainer(
        repository,
        cache,
        size=settings.leaderboard_size,
        preview_chars=settings.preview_chars,
    )
    retry_policy = RetryPolicy(
        max_attempts=settings.retry_attempts,
        base_delay_seconds=settings.retry_base_delay_ms / 1000,
        retry_on=(TransientExternalError,),
    )
    logger.info(
        "lifecycle.wired store=%s source=%s broadcaster=%s story_length=%s round_minutes=%s",
        type(kv_store).__name__,
        type(candidate_source).__name__,
        type(broadcaster).__name__,
        settings.story_length,
        settings.round_minutes,
    )
    return StoryLifecycleManager(
        repository=repository,
        resolver=resolver,
        leaderboard=leaderboard,
        broadcaster=broadcaster,
        story_length=settings.story_length,
        round_duration=settings.round_duration,
        retry_policy=retry_policy,
        contributions=ContributionTracker(
            repository, system_submitter=settings.system_submitter
        ),
        stats=DailyStats(kv_store),
        intake=intake,
        clock=now_fn,
    )
