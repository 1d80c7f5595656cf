"""Round boundary arithmetic on a fixed epoch-aligned grid."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from haunted_thread.domain.models import RoundWindow, Story

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def align_down(moment: datetime, duration: timedelta) -> datetime:
    """Floor `moment` to the most recent grid boundary at or before it."""
    if duration <= timedelta(0):
        raise ValueError("duration must be positive.")
    elapsed = moment.astimezone(UTC) - _EPOCH
    return _EPOCH + (elapsed // duration) * duration


def elapsed_window(story: Story, now: datetime, duration: timedelta) -> RoundWindow | None:
    """Return the settled window for the open round, or None before its boundary.

    The window always starts where the open round started and ends at the
    latest boundary, so a late tick settles one round covering everything
    submitted since the round opened.
    """
    end = align_down(now, duration)
    if end <= story.round_started_at:
        return None
    return RoundWindow(start=story.round_started_at, end=end)


def round_time_remaining(now: datetime, duration: timedelta) -> timedelta:
    return align_down(now, duration) + duration - now


def round_tag(story_id: str, round_number: int) -> str:
    return f"{story_id}:round:{round_number}"
