"""Per-submitter contribution history derived from resolved rounds."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

from haunted_thread.adapters.story_records import (
    ContributionLineRecord,
    ContributionRecord,
    contribution_from_record,
)
from haunted_thread.adapters.story_repository import StoryRepository
from haunted_thread.domain.models import Candidate, UserContribution

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


def contribution_key(user_id: str) -> str:
    return f"users:contributions:{user_id}"


class ContributionTracker:
    """Keeps running totals and a recent submission log for every human submitter."""

    def __init__(
        self,
        repository: StoryRepository,
        *,
        system_submitter: str = "system",
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._repository = repository
        self._system_submitter = system_submitter
        self._history_limit = history_limit

    def record_round(
        self,
        *,
        story_id: str,
        round_number: int,
        candidates: Sequence[Candidate],
        winner_id: str | None,
    ) -> int:
        """Credit each validated candidate to its submitter; returns users updated."""
        by_user: dict[str, list[Candidate]] = defaultdict(list)
        for candidate in candidates:
            if candidate.submitter_id == self._system_submitter:
                continue
            by_user[candidate.submitter_id].append(candidate)

        for user_id, submitted in by_user.items():
            self._credit(user_id, story_id, round_number, submitted, winner_id)
        return len(by_user)

    def get(self, user_id: str) -> UserContribution | None:
        record = self._repository.get_record(contribution_key(user_id), ContributionRecord)
        return None if record is None else contribution_from_record(record)

    def _credit(
        self,
        user_id: str,
        story_id: str,
        round_number: int,
        submitted: list[Candidate],
        winner_id: str | None,
    ) -> None:
        def change(current: ContributionRecord | None) -> ContributionRecord | None:
            record = current or ContributionRecord(user_id=user_id)
            seen = {
                (line.story_id, line.round_number, line.sentence) for line in record.submissions
            }
            fresh = [
                candidate
                for candidate in submitted
                if (story_id, round_number, candidate.text.strip()) not in seen
            ]
            if not fresh:
                return None
            lines = [
                ContributionLineRecord(
                    story_id=story_id,
                    round_number=round_number,
                    sentence=candidate.text.strip(),
                    score=candidate.score,
                    was_winner=candidate.candidate_id == winner_id,
                )
                for candidate in fresh
            ]
            return record.model_copy(
                update={
                    "total_submissions": record.total_submissions + len(fresh),
                    "total_wins": record.total_wins + sum(line.was_winner for line in lines),
                    "total_upvotes": record.total_upvotes
                    + sum(max(candidate.score, 0) for candidate in fresh),
                    "submissions": [*lines, *record.submissions][: self._history_limit],
                }
            )

        self._repository.update_record(contribution_key(user_id), ContributionRecord, change)
        logger.info(
            "contributions.recorded user_id=%s story_id=%s round=%s count=%s",
            user_id,
            story_id,
            round_number,
            len(submitted),
        )
