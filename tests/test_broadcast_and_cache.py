from __future__ import annotations

import json
import logging

import httpx
import pytest

from haunted_thread.adapters.broadcast import LoggingBroadcaster, WebhookBroadcaster
from haunted_thread.adapters.response_cache import TtlCache


def test_logging_broadcaster_logs_events(caplog: pytest.LogCaptureFixture) -> None:
    broadcaster = LoggingBroadcaster()
    with caplog.at_level(logging.INFO, logger="haunted_thread.adapters.broadcast"):
        broadcaster.publish("story.archived", {"story_id": "s1"})
    assert "broadcast.published topic=story.archived" in caplog.text
    assert 'payload={"story_id": "s1"}' in caplog.text


def test_webhook_broadcaster_posts_topic_and_payload() -> None:
    bodies: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content)
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    WebhookBroadcaster("http://hooks.local/events", client=client).publish(
        "story.round_resolved", {"round_number": 3}
    )
    assert [json.loads(body) for body in bodies] == [
        {"topic": "story.round_resolved", "payload": {"round_number": 3}}
    ]


def test_webhook_broadcaster_swallows_failures(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with caplog.at_level(logging.WARNING, logger="haunted_thread.adapters.broadcast"):
        WebhookBroadcaster("http://hooks.local/events", client=client).publish("t", {})
    assert "broadcast.failed topic=t" in caplog.text


def test_ttl_cache_expires_and_invalidates() -> None:
    now = {"value": 100.0}
    cache: TtlCache[list[int]] = TtlCache(ttl_seconds=30, clock=lambda: now["value"])
    cache.set("top", [1, 2])
    assert cache.get("top") == [1, 2]
    now["value"] = 129.9
    assert cache.get("top") == [1, 2]
    now["value"] = 130.0
    assert cache.get("top") is None

    cache.set("top", [3])
    cache.invalidate("top")
    assert cache.get("top") is None
    cache.set("a", [1])
    cache.clear()
    assert cache.get("a") is None


def test_ttl_cache_zero_ttl_disables_caching() -> None:
    cache: TtlCache[str] = TtlCache(ttl_seconds=0)
    cache.set("k", "v")
    assert cache.get("k") is None
    with pytest.raises(ValueError, match="non-negative"):
        TtlCache(ttl_seconds=-1)
