from __future__ import annotations

from datetime import date
from typing import Any

import httpx
import pytest

from haunted_thread.api.python_interface import HauntedThreadClient

_STORY = {
    "story_id": "story_1",
    "status": "active",
    "sentences": ["It began at midnight."],
    "sentence_count": 1,
    "round_number": 2,
    "total_votes": 4,
    "contributors": ["alice"],
    "created_at": "2026-10-01T12:00:00Z",
    "completed_at": None,
}


def test_client_normalizes_base_url() -> None:
    client = HauntedThreadClient(api_base_url="http://127.0.0.1:8000/")
    assert client.api_base_url == "http://127.0.0.1:8000"


def test_current_story_parses_response(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    def fake_get(url: str, timeout: float, params: Any = None) -> httpx.Response:
        seen.append(str(url))
        return httpx.Response(
            status_code=200,
            request=httpx.Request("GET", url),
            json={"story": _STORY, "round_time_remaining_seconds": 1200},
        )

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.get", fake_get)
    view = HauntedThreadClient().current_story()
    assert seen == ["http://127.0.0.1:8000/api/v1/story/current"]
    assert view.story.round_number == 2
    assert view.round_time_remaining_seconds == 1200


def test_submit_and_vote_send_typed_payloads(monkeypatch: pytest.MonkeyPatch) -> None:
    bodies: dict[str, object] = {}

    def fake_post(url: str, json: object, timeout: float) -> httpx.Response:
        bodies[str(url)] = json
        request = httpx.Request("POST", url)
        if str(url).endswith("/story/votes"):
            return httpx.Response(
                status_code=200,
                request=request,
                json={"status": "accepted", "reason": None, "candidate_id": "cand_1", "score": -1},
            )
        return httpx.Response(
            status_code=200,
            request=request,
            json={"status": "accepted", "reason": None, "candidate_id": "cand_1"},
        )

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.post", fake_post)
    client = HauntedThreadClient("http://api.test")
    submitted = client.submit(
        story_id="story_1", round_number=2, text="  The door opened.  ", submitter_id="alice"
    )
    voted = client.vote(
        story_id="story_1",
        round_number=2,
        candidate_id="cand_1",
        voter_id="bob",
        direction="down",
    )

    assert submitted.candidate_id == "cand_1"
    assert voted.score == -1
    assert bodies["http://api.test/api/v1/story/submissions"] == {
        "story_id": "story_1",
        "round_number": 2,
        "text": "The door opened.",
        "submitter_id": "alice",
    }
    assert bodies["http://api.test/api/v1/story/votes"] == {
        "story_id": "story_1",
        "round_number": 2,
        "candidate_id": "cand_1",
        "voter_id": "bob",
        "direction": "down",
    }


def test_listing_calls_pass_query_params(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, Any]] = []

    def fake_get(url: str, timeout: float, params: Any = None) -> httpx.Response:
        calls.append((str(url), params))
        request = httpx.Request("GET", url)
        if str(url).endswith("/leaderboard"):
            return httpx.Response(status_code=200, request=request, json={"entries": []})
        if str(url).endswith("/archive/stories"):
            return httpx.Response(
                status_code=200,
                request=request,
                json={"stories": [], "page": 2, "limit": 5, "total_pages": 1, "sort": "votes"},
            )
        return httpx.Response(
            status_code=200,
            request=request,
            json={
                "day": "2026-10-01",
                "rounds_resolved": 24,
                "fallback_rounds": 3,
                "stories_archived": 0,
            },
        )

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.get", fake_get)
    client = HauntedThreadClient("http://api.test")
    assert client.leaderboard(top=3).entries == []
    assert client.archive(page=2, limit=5, sort="votes").page == 2
    assert client.daily_stats(date(2026, 10, 1)).rounds_resolved == 24
    assert calls == [
        ("http://api.test/api/v1/leaderboard", {"top": 3}),
        ("http://api.test/api/v1/archive/stories", {"page": 2, "limit": 5, "sort": "votes"}),
        ("http://api.test/api/v1/stats/daily/2026-10-01", None),
    ]


def test_trigger_tick_posts_to_scheduler_route(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    def fake_post(url: str, timeout: float) -> httpx.Response:
        seen.append(str(url))
        return httpx.Response(
            status_code=200,
            request=httpx.Request("POST", url),
            json={"outcome": "noop", "purged_keys": 7},
        )

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.post", fake_post)
    result = HauntedThreadClient("http://api.test").trigger_tick("daily")
    assert seen == ["http://api.test/internal/scheduler/daily"]
    assert result.outcome == "noop"
    assert result.purged_keys == 7


def test_error_status_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, timeout: float, params: Any = None) -> httpx.Response:
        return httpx.Response(
            status_code=404,
            request=httpx.Request("GET", url),
            json={"detail": "Story not found"},
        )

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.get", fake_get)
    with pytest.raises(httpx.HTTPStatusError):
        HauntedThreadClient().archived_story("story_missing")
