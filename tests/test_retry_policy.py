from __future__ import annotations

import pytest

from haunted_thread.core.retry_policy import RetryPolicy
from haunted_thread.domain.errors import StoreUnavailableError, TransientExternalError


def _policy(sleeps: list[float], **kwargs: object) -> RetryPolicy:
    return RetryPolicy(
        sleep=sleeps.append,
        rand=lambda: 0.5,
        retry_on=(TransientExternalError,),
        **kwargs,  # type: ignore[arg-type]
    )


def test_run_retries_transient_errors_then_succeeds() -> None:
    sleeps: list[float] = []
    attempts = {"count": 0}

    def flaky() -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise StoreUnavailableError("locked")
        return "ok"

    assert _policy(sleeps, max_attempts=3).run(flaky, label="test") == "ok"
    assert attempts["count"] == 3
    assert sleeps == pytest.approx([0.2, 0.4])


def test_run_reraises_after_exhaustion() -> None:
    sleeps: list[float] = []

    def always_down() -> None:
        raise StoreUnavailableError("down")

    with pytest.raises(StoreUnavailableError, match="down"):
        _policy(sleeps, max_attempts=2).run(always_down, label="test")
    assert len(sleeps) == 1


def test_non_retryable_errors_propagate_immediately() -> None:
    sleeps: list[float] = []
    calls = {"count": 0}

    def broken() -> None:
        calls["count"] += 1
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        _policy(sleeps).run(broken, label="test")
    assert calls["count"] == 1
    assert sleeps == []


def test_delay_is_capped_and_jittered() -> None:
    policy = RetryPolicy(
        base_delay_seconds=1.0,
        backoff_multiplier=10.0,
        max_delay_seconds=5.0,
        jitter_ratio=0.1,
        rand=lambda: 1.0,
    )
    assert policy.delay_for(1) == pytest.approx(1.1)
    assert policy.delay_for(3) == pytest.approx(5.5)


def test_invalid_configuration_is_rejected() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError, match="non-negative"):
        RetryPolicy(base_delay_seconds=-1)
