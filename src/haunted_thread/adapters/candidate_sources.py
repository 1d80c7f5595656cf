"""Candidate source adapters: remote HTTP feed and store-backed round buckets."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationError

from haunted_thread.adapters.story_records import (
    CandidateRecord,
    StoreRecord,
    candidate_from_record,
    candidate_to_record,
)
from haunted_thread.domain.errors import CandidateSourceUnavailableError, ConcurrencyConflictError
from haunted_thread.domain.models import Candidate, VoteReceipt
from haunted_thread.domain.ports import KeyValueStore

logger = logging.getLogger(__name__)

SUBMISSION_TTL = timedelta(hours=2)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def submissions_key(tag: str) -> str:
    return f"temp:round:{tag}:submissions"


class _RemoteCandidate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    text: str
    score: int
    submitter_id: str = Field(min_length=1)
    created_at: AwareDatetime


class _RemoteCandidatePage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    candidates: list[_RemoteCandidate] = Field(default_factory=list)


class HttpCandidateSource:
    """Fetch ranked candidates from a remote comment/vote service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("base_url must not be empty.")
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def fetch_candidates(self, *, tag: str, since: datetime, until: datetime) -> list[Candidate]:
        try:
            response = self._client.get(
                f"{self._base_url}/candidates",
                params={
                    "tag": tag,
                    "since": since.astimezone(UTC).isoformat(),
                    "until": until.astimezone(UTC).isoformat(),
                },
            )
            response.raise_for_status()
            page = _RemoteCandidatePage.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise CandidateSourceUnavailableError(
                f"Candidate fetch failed for tag '{tag}': {exc}"
            ) from exc
        except (ValueError, ValidationError) as exc:
            raise CandidateSourceUnavailableError(
                f"Candidate payload for tag '{tag}' was malformed."
            ) from exc

        logger.info("candidates.fetched tag=%s count=%s", tag, len(page.candidates))
        return [
            Candidate(
                candidate_id=item.id,
                text=item.text,
                score=item.score,
                submitter_id=item.submitter_id,
                created_at=item.created_at.astimezone(UTC),
            )
            for item in page.candidates
        ]

    def close(self) -> None:
        self._client.close()


class RoundSubmissionsRecord(StoreRecord):
    tag: str
    candidates: list[CandidateRecord] = Field(default_factory=list)
    voters: list[str] = Field(default_factory=list)


class StoreCandidateSource:
    """Keep per-round submissions in the key-value store with a short expiry.

    Used when no remote vote service is configured: submissions and votes
    land here and the resolver reads them back for the settled window.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
        ttl: timedelta = SUBMISSION_TTL,
        cas_attempts: int = 5,
    ) -> None:
        self._store = store
        self._clock = clock
        self._ttl = ttl
        self._cas_attempts = cas_attempts

    def fetch_candidates(self, *, tag: str, since: datetime, until: datetime) -> list[Candidate]:
        found = self._store.get(submissions_key(tag))
        if found is None:
            return []
        record = RoundSubmissionsRecord.model_validate_json(found)
        return [
            candidate
            for candidate in (candidate_from_record(item) for item in record.candidates)
            if since <= candidate.created_at < until
        ]

    def record_candidate(
        self, *, tag: str, text: str, submitter_id: str, at: datetime | None = None
    ) -> Candidate:
        """Store a new zero-score submission for the round."""
        candidate = Candidate(
            candidate_id=f"cand_{uuid4().hex[:12]}",
            text=text,
            score=0,
            submitter_id=submitter_id,
            created_at=at or self._clock(),
        )

        def add(record: RoundSubmissionsRecord) -> RoundSubmissionsRecord:
            return record.model_copy(
                update={"candidates": [*record.candidates, candidate_to_record(candidate)]}
            )

        self._update(tag, add)
        logger.info(
            "candidates.recorded tag=%s candidate_id=%s submitter_id=%s",
            tag,
            candidate.candidate_id,
            submitter_id,
        )
        return candidate

    def apply_vote(
        self, *, tag: str, candidate_id: str, voter_id: str, delta: int
    ) -> VoteReceipt:
        """Adjust one candidate's score, at most once per voter for the round.

        The voter list lives in the same record as the scores, so the
        duplicate check and the score change land in one compare-and-swap.
        """
        receipt = VoteReceipt(accepted=False, reason="unknown_candidate")

        def vote(record: RoundSubmissionsRecord) -> RoundSubmissionsRecord | None:
            nonlocal receipt
            if voter_id in record.voters:
                receipt = VoteReceipt(accepted=False, reason="already_voted")
                return None
            receipt = VoteReceipt(accepted=False, reason="unknown_candidate")
            updated: list[CandidateRecord] = []
            for item in record.candidates:
                if item.candidate_id == candidate_id:
                    item = item.model_copy(update={"score": item.score + delta})
                    receipt = VoteReceipt(accepted=True, score=item.score)
                updated.append(item)
            if not receipt.accepted:
                return None
            return record.model_copy(
                update={"candidates": updated, "voters": [*record.voters, voter_id]}
            )

        self._update(tag, vote)
        logger.info(
            "candidates.vote tag=%s candidate_id=%s voter_id=%s accepted=%s reason=%s",
            tag,
            candidate_id,
            voter_id,
            receipt.accepted,
            receipt.reason,
        )
        return receipt

    def _update(
        self,
        tag: str,
        change: Callable[[RoundSubmissionsRecord], RoundSubmissionsRecord | None],
    ) -> None:
        key = submissions_key(tag)
        for attempt in range(1, self._cas_attempts + 1):
            found = self._store.get_versioned(key)
            current = (
                RoundSubmissionsRecord(tag=tag)
                if found is None
                else RoundSubmissionsRecord.model_validate_json(found[0])
            )
            proposed = change(current)
            if proposed is None:
                return
            version = self._store.set_if_version(
                key,
                proposed.model_dump_json().encode("utf-8"),
                expected_version=None if found is None else found[1],
                expire_at=self._clock() + self._ttl,
            )
            if version is not None:
                return
            logger.info("candidates.cas_conflict key=%s attempt=%s", key, attempt)
        raise ConcurrencyConflictError(key, self._cas_attempts)
