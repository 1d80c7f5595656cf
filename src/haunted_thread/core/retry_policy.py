"""Bounded exponential backoff shared by every retrying call site."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry `operation` on the listed exception types with growing delays."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.2
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 5.0
    jitter_ratio: float = 0.1
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)
    rand: Callable[[], float] = field(default=random.random, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("delays must be non-negative.")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        raw = self.base_delay_seconds * (self.backoff_multiplier ** (attempt - 1))
        capped = min(raw, self.max_delay_seconds)
        jitter = capped * self.jitter_ratio * (2 * self.rand() - 1)
        return max(0.0, capped + jitter)

    def run(self, operation: Callable[[], T], *, label: str) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except self.retry_on as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        "retry.exhausted label=%s attempts=%s error=%s", label, attempt, exc
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "retry.attempt_failed label=%s attempt=%s delay=%.3f error=%s",
                    label,
                    attempt,
                    delay,
                    exc,
                )
                self.sleep(delay)
        raise AssertionError("unreachable")
