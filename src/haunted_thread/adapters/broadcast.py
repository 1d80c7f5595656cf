"""Best-effort lifecycle event publishers."""

from __future__ import annotations

import json
import logging

import httpx

logger = logging.getLogger(__name__)


class LoggingBroadcaster:
    """Publish events to the log only; default when no webhook is configured."""

    def publish(self, topic: str, payload: dict[str, object]) -> None:
        logger.info("broadcast.published topic=%s payload=%s", topic, json.dumps(payload))


class WebhookBroadcaster:
    """POST events to a webhook; failures are logged and swallowed."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def publish(self, topic: str, payload: dict[str, object]) -> None:
        try:
            response = self._client.post(self._url, json={"topic": topic, "payload": payload})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("broadcast.failed topic=%s url=%s error=%s", topic, self._url, exc)
            return
        logger.info("broadcast.published topic=%s status=%s", topic, response.status_code)

    def close(self) -> None:
        self._client.close()
