"""Failure taxonomy shared by the resolver, repository, and lifecycle manager."""

from __future__ import annotations


class TransientExternalError(RuntimeError):
    """An external collaborator is temporarily unavailable; safe to retry."""


class CandidateSourceUnavailableError(TransientExternalError):
    """Raised when candidates for a round cannot be fetched."""


class StoreUnavailableError(TransientExternalError):
    """Raised when the key-value store times out or is locked."""


class ConcurrencyConflictError(RuntimeError):
    """Raised when optimistic-concurrency retries are exhausted."""

    def __init__(self, key: str, attempts: int) -> None:
        super().__init__(f"Version conflict on '{key}' persisted after {attempts} attempts.")
        self.key = key
        self.attempts = attempts


class StoryCorruptionError(RuntimeError):
    """Raised when a stored or proposed story breaks its invariants."""

    def __init__(self, story_id: str, issues: list[str]) -> None:
        detail = "; ".join(issues) if issues else "unknown corruption"
        super().__init__(f"Story '{story_id}' failed invariant checks: {detail}")
        self.story_id = story_id
        self.issues = list(issues)


class IllegalTransitionError(StoryCorruptionError):
    """Raised when a write would move a story through a forbidden transition."""
