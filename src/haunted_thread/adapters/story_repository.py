"""Story aggregate persistence on top of a versioned key-value store."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TypeVar

from pydantic import ValidationError

from haunted_thread.adapters.story_records import (
    ArchiveIndexRecord,
    RoundHistoryRecord,
    StoreRecord,
    StoryRecord,
    round_from_record,
    round_to_record,
    story_from_record,
    story_to_record,
)
from haunted_thread.core.ranking import ArchiveSort, sort_archive
from haunted_thread.core.story_transitions import check_transition, mark_archived
from haunted_thread.domain.errors import (
    ConcurrencyConflictError,
    IllegalTransitionError,
    StoryCorruptionError,
)
from haunted_thread.domain.models import RoundRecord, Story, StoryStatus, validate_story
from haunted_thread.domain.ports import KeyValueStore

logger = logging.getLogger(__name__)

CURRENT_STORY_KEY = "stories:current"
ARCHIVE_INDEX_KEY = "stories:archive:index"

R = TypeVar("R", bound=StoreRecord)


def archived_story_key(story_id: str) -> str:
    return f"stories:archive:{story_id}"


def quarantine_key(story_id: str) -> str:
    return f"stories:quarantine:{story_id}"


def round_history_key(story_id: str, round_number: int) -> str:
    return f"rounds:history:{story_id}:{round_number}"


@dataclass(frozen=True)
class ArchiveOutcome:
    """Archived story and whether this call was the one that archived it."""

    story: Story
    newly_archived: bool


class StoryRepository:
    """Only component that reads or writes story and archive records.

    Every write is checked against the story invariants and the legal
    status transitions; the current story is updated with compare-and-swap
    on the store version, retrying conflicts with a fresh load.
    """

    def __init__(self, store: KeyValueStore, *, story_length: int, cas_attempts: int = 5) -> None:
        if cas_attempts < 1:
            raise ValueError("cas_attempts must be positive.")
        self._store = store
        self._story_length = story_length
        self._cas_attempts = cas_attempts

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def load_current(self) -> Story | None:
        return self._load_story(CURRENT_STORY_KEY, quarantine_on_failure=True)

    def atomic_update_current(
        self, transition: Callable[[Story | None], Story | None]
    ) -> Story | None:
        """Apply `transition` to the current story as one compare-and-swap write.

        Returning the loaded object unchanged (or None) skips the write. The
        transition may run more than once when a concurrent writer wins.
        """
        for attempt in range(1, self._cas_attempts + 1):
            current = self.load_current()
            proposed = transition(current)
            if proposed is None or proposed is current:
                return current
            self._check_write(current, proposed)
            payload = story_to_record(proposed).model_dump_json().encode("utf-8")
            version = self._store.set_if_version(
                CURRENT_STORY_KEY,
                payload,
                expected_version=None if current is None else current.version,
            )
            if version is not None:
                return replace(proposed, version=version)
            logger.info("story.cas_conflict key=%s attempt=%s", CURRENT_STORY_KEY, attempt)
        raise ConcurrencyConflictError(CURRENT_STORY_KEY, self._cas_attempts)

    def archive(self, story: Story) -> ArchiveOutcome:
        """Copy a completed story into the archive as archived; repeat calls are no-ops."""
        existing = self.get_archived(story.story_id)
        if existing is not None:
            logger.info("archive.duplicate story_id=%s", story.story_id)
            self._index_archived(story.story_id)
            return ArchiveOutcome(story=existing, newly_archived=False)

        archived = mark_archived(story)
        self._check_write(None, archived)
        payload = story_to_record(archived).model_dump_json().encode("utf-8")
        version = self._store.set_if_version(
            archived_story_key(story.story_id), payload, expected_version=None
        )
        if version is None:
            winner = self.get_archived(story.story_id)
            if winner is None:
                raise ConcurrencyConflictError(archived_story_key(story.story_id), 1)
            self._index_archived(story.story_id)
            return ArchiveOutcome(story=winner, newly_archived=False)

        self._index_archived(story.story_id)
        logger.info(
            "archive.stored story_id=%s total_votes=%s", story.story_id, archived.total_votes
        )
        return ArchiveOutcome(story=replace(archived, version=version), newly_archived=True)

    def get_archived(self, story_id: str) -> Story | None:
        return self._load_story(archived_story_key(story_id), quarantine_on_failure=False)

    def archived_ids(self) -> list[str]:
        index = self.get_record(ARCHIVE_INDEX_KEY, ArchiveIndexRecord)
        return [] if index is None else list(index.story_ids)

    def all_archived(self) -> list[Story]:
        stories: list[Story] = []
        for story_id in self.archived_ids():
            story = self.get_archived(story_id)
            if story is None:
                logger.warning("archive.index_dangling story_id=%s", story_id)
                continue
            stories.append(story)
        return stories

    def list_archive(
        self, *, page: int, page_size: int, sort_by: ArchiveSort = "date"
    ) -> tuple[list[Story], int]:
        """Return one 1-based page of archived stories and the total page count."""
        if page < 1:
            raise ValueError("page must be at least 1.")
        if page_size < 1:
            raise ValueError("page_size must be at least 1.")
        ordered = sort_archive(self.all_archived(), sort_by=sort_by)
        total_pages = max(1, math.ceil(len(ordered) / page_size))
        start = (page - 1) * page_size
        return ordered[start : start + page_size], total_pages

    def save_round(self, round_record: RoundRecord) -> None:
        payload = round_to_record(round_record).model_dump_json().encode("utf-8")
        self._store.set(
            round_history_key(round_record.story_id, round_record.round_number), payload
        )

    def get_round(self, story_id: str, round_number: int) -> RoundRecord | None:
        record = self.get_record(round_history_key(story_id, round_number), RoundHistoryRecord)
        return None if record is None else round_from_record(record)

    def get_record(self, key: str, model: type[R]) -> R | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        return model.model_validate_json(raw)

    def update_record(
        self, key: str, model: type[R], change: Callable[[R | None], R | None]
    ) -> R | None:
        """Compare-and-swap update for any record shape; `change` returning None skips the write."""
        for attempt in range(1, self._cas_attempts + 1):
            found = self._store.get_versioned(key)
            current = None if found is None else model.model_validate_json(found[0])
            proposed = change(current)
            if proposed is None:
                return current
            version = self._store.set_if_version(
                key,
                proposed.model_dump_json().encode("utf-8"),
                expected_version=None if found is None else found[1],
            )
            if version is not None:
                return proposed
            logger.info("record.cas_conflict key=%s attempt=%s", key, attempt)
        raise ConcurrencyConflictError(key, self._cas_attempts)

    def _index_archived(self, story_id: str) -> None:
        def add(index: ArchiveIndexRecord | None) -> ArchiveIndexRecord | None:
            known = [] if index is None else index.story_ids
            if story_id in known:
                return None
            return ArchiveIndexRecord(story_ids=[*known, story_id])

        self.update_record(ARCHIVE_INDEX_KEY, ArchiveIndexRecord, add)

    def _check_write(self, before: Story | None, after: Story) -> None:
        issues = validate_story(after, story_length=self._story_length)
        if before is not None:
            if before.story_id == after.story_id:
                issues.extend(check_transition(before, after))
            elif before.status is StoryStatus.ACTIVE:
                issues.append(
                    f"Active story '{before.story_id}' cannot be replaced by '{after.story_id}'."
                )
        if issues:
            logger.error("story.write_rejected story_id=%s issues=%s", after.story_id, issues)
            raise IllegalTransitionError(after.story_id, issues)

    def _load_story(self, key: str, *, quarantine_on_failure: bool) -> Story | None:
        found = self._store.get_versioned(key)
        if found is None:
            return None
        raw, version = found
        try:
            record = StoryRecord.model_validate_json(raw)
        except ValidationError as exc:
            issues = [f"Unreadable story record at '{key}': {exc.error_count()} validation errors."]
            raise self._corruption(key, raw, "unreadable", issues, quarantine_on_failure) from exc
        story = story_from_record(record, version=version)
        issues = validate_story(story, story_length=self._story_length)
        if issues:
            raise self._corruption(key, raw, story.story_id, issues, quarantine_on_failure)
        return story

    def _corruption(
        self,
        key: str,
        raw: bytes,
        story_id: str,
        issues: list[str],
        quarantine: bool,
    ) -> StoryCorruptionError:
        """Log loudly and copy the payload aside once; the record itself is left untouched."""
        if quarantine:
            copied = self._store.set_if_version(
                quarantine_key(story_id), raw, expected_version=None
            )
            logger.error(
                "story.quarantined key=%s story_id=%s first_copy=%s issues=%s",
                key,
                story_id,
                copied is not None,
                issues,
            )
        else:
            logger.error("story.corrupt key=%s story_id=%s issues=%s", key, story_id, issues)
        return StoryCorruptionError(story_id, issues)
