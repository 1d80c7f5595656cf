"""Winner selection for one elapsed round window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from haunted_thread.core.round_schedule import round_tag
from haunted_thread.domain.models import (
    AppendFallbackSentence,
    AppendSentence,
    Candidate,
    NoOp,
    RoundDecision,
    RoundWindow,
)
from haunted_thread.domain.ports import CandidateSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolverRules:
    """Validation bounds and fallback attribution."""

    min_chars: int = 10
    max_chars: int = 150
    fallback_sentence: str = "The silence grew..."
    system_submitter: str = "system"


@dataclass(frozen=True)
class RoundResolution:
    """Decision plus the candidate sets it was made from."""

    decision: RoundDecision
    fetched: tuple[Candidate, ...] = ()
    eligible: tuple[Candidate, ...] = ()


class RoundResolver:
    """Turns a settled round window into exactly one decision.

    The resolver performs no writes and never retries; candidate-source
    failures propagate unchanged to the caller.
    """

    def __init__(self, source: CandidateSource, rules: ResolverRules | None = None) -> None:
        self._source = source
        self._rules = rules or ResolverRules()

    @property
    def rules(self) -> ResolverRules:
        return self._rules

    def resolve(
        self,
        *,
        story_id: str,
        round_number: int,
        window: RoundWindow,
        now: datetime,
    ) -> RoundResolution:
        if window.end > now:
            return RoundResolution(decision=NoOp(reason="window_open"))

        fetched = tuple(
            self._source.fetch_candidates(
                tag=round_tag(story_id, round_number),
                since=window.start,
                until=window.end,
            )
        )
        eligible = tuple(self.eligible_candidates(fetched, window=window))
        winner = select_winner(eligible)
        if winner is None:
            logger.info(
                "round.fallback story_id=%s round=%s fetched=%s",
                story_id,
                round_number,
                len(fetched),
            )
            decision: RoundDecision = AppendFallbackSentence(
                text=self._rules.fallback_sentence,
                submitter_id=self._rules.system_submitter,
            )
        else:
            decision = AppendSentence(
                text=winner.text.strip(),
                submitter_id=winner.submitter_id,
                score=winner.score,
                candidate_id=winner.candidate_id,
            )
        return RoundResolution(decision=decision, fetched=fetched, eligible=eligible)

    def eligible_candidates(
        self, candidates: tuple[Candidate, ...] | list[Candidate], *, window: RoundWindow
    ) -> list[Candidate]:
        """Drop candidates outside the window or the length bounds."""
        kept: list[Candidate] = []
        for candidate in candidates:
            if not window.contains(candidate.created_at):
                logger.info(
                    "round.discard candidate_id=%s reason=outside_window", candidate.candidate_id
                )
                continue
            length = len(candidate.text.strip())
            if length < self._rules.min_chars:
                logger.info(
                    "round.discard candidate_id=%s reason=too_short length=%s",
                    candidate.candidate_id,
                    length,
                )
                continue
            if length > self._rules.max_chars:
                logger.info(
                    "round.discard candidate_id=%s reason=too_long length=%s",
                    candidate.candidate_id,
                    length,
                )
                continue
            kept.append(candidate)
        return kept


def select_winner(candidates: tuple[Candidate, ...] | list[Candidate]) -> Candidate | None:
    """Highest score wins; earliest submission breaks ties, then candidate id."""
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda candidate: (-candidate.score, candidate.created_at, candidate.candidate_id),
    )
