"""Runtime configuration read from HAUNTED_THREAD_* environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

DEFAULT_DB_PATH = Path("work/local/haunted_thread.db")
DEFAULT_FALLBACK_SENTENCE = "The silence grew..."
DEFAULT_SYSTEM_SUBMITTER = "system"


def int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def str_env(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


@dataclass(frozen=True)
class RuntimeSettings:
    """Tunables for rounds, validation, retries, and adapters."""

    story_length: int = 100
    min_sentence_chars: int = 10
    max_sentence_chars: int = 150
    round_minutes: int = 60
    fallback_sentence: str = DEFAULT_FALLBACK_SENTENCE
    system_submitter: str = DEFAULT_SYSTEM_SUBMITTER
    leaderboard_size: int = 10
    preview_chars: int = 100
    fetch_timeout_seconds: int = 10
    retry_attempts: int = 3
    retry_base_delay_ms: int = 200
    cas_attempts: int = 5
    cache_ttl_seconds: int = 30
    db_path: Path = DEFAULT_DB_PATH
    candidate_source_url: str = ""
    broadcast_webhook_url: str = ""

    @property
    def round_duration(self) -> timedelta:
        return timedelta(minutes=self.round_minutes)

    @classmethod
    def from_env(cls) -> RuntimeSettings:
        """Build settings from the environment, clamping numbers to safe ranges."""
        min_chars = int_env("HAUNTED_THREAD_MIN_SENTENCE_CHARS", 10, minimum=1, maximum=1000)
        max_chars = int_env("HAUNTED_THREAD_MAX_SENTENCE_CHARS", 150, minimum=1, maximum=5000)
        return cls(
            story_length=int_env("HAUNTED_THREAD_STORY_LENGTH", 100, minimum=1, maximum=10_000),
            min_sentence_chars=min_chars,
            max_sentence_chars=max(min_chars, max_chars),
            round_minutes=int_env("HAUNTED_THREAD_ROUND_MINUTES", 60, minimum=1, maximum=1440),
            fallback_sentence=str_env(
                "HAUNTED_THREAD_FALLBACK_SENTENCE", DEFAULT_FALLBACK_SENTENCE
            ),
            system_submitter=str_env("HAUNTED_THREAD_SYSTEM_SUBMITTER", DEFAULT_SYSTEM_SUBMITTER),
            leaderboard_size=int_env(
                "HAUNTED_THREAD_LEADERBOARD_SIZE", 10, minimum=1, maximum=100
            ),
            preview_chars=int_env("HAUNTED_THREAD_PREVIEW_CHARS", 100, minimum=10, maximum=1000),
            fetch_timeout_seconds=int_env(
                "HAUNTED_THREAD_FETCH_TIMEOUT_SECONDS", 10, minimum=1, maximum=120
            ),
            retry_attempts=int_env("HAUNTED_THREAD_RETRY_ATTEMPTS", 3, minimum=1, maximum=10),
            retry_base_delay_ms=int_env(
                "HAUNTED_THREAD_RETRY_BASE_DELAY_MS", 200, minimum=0, maximum=10_000
            ),
            cas_attempts=int_env("HAUNTED_THREAD_CAS_ATTEMPTS", 5, minimum=1, maximum=50),
            cache_ttl_seconds=int_env(
                "HAUNTED_THREAD_CACHE_TTL_SECONDS", 30, minimum=0, maximum=3600
            ),
            db_path=Path(str_env("HAUNTED_THREAD_DB_PATH", str(DEFAULT_DB_PATH))),
            candidate_source_url=os.environ.get("HAUNTED_THREAD_CANDIDATE_SOURCE_URL", "").strip(),
            broadcast_webhook_url=os.environ.get(
                "HAUNTED_THREAD_BROADCAST_WEBHOOK_URL", ""
            ).strip(),
        )
