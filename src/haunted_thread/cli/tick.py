"""CLI for delivering one scheduler tick, either in-process or through the HTTP API."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, replace
from pathlib import Path

import httpx

from haunted_thread.adapters.observability import configure_runtime_logging
from haunted_thread.api.python_interface import HauntedThreadClient
from haunted_thread.application.lifecycle import TickResult
from haunted_thread.application.wiring import build_lifecycle_manager
from haunted_thread.core.settings import RuntimeSettings
from haunted_thread.domain.errors import (
    ConcurrencyConflictError,
    StoryCorruptionError,
    TransientExternalError,
)

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """Define CLI flags for one tick delivery."""
    parser = argparse.ArgumentParser(description="Deliver one haunted_thread scheduler tick.")
    parser.add_argument("kind", choices=["hourly", "daily"])
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path used for in-process ticks (default: HAUNTED_THREAD_DB_PATH).",
    )
    parser.add_argument(
        "--api-url",
        default="",
        help="Deliver the tick to a running API instead of running it in-process.",
    )
    return parser


def run_local_tick(kind: str, *, db_path: Path | None = None) -> TickResult:
    settings = RuntimeSettings.from_env()
    if db_path is not None:
        settings = replace(settings, db_path=db_path)
    manager = build_lifecycle_manager(settings)
    if kind == "daily":
        return manager.on_daily_tick()
    return manager.on_hourly_tick()


def main(argv: list[str] | None = None) -> None:
    """Run one tick and print its outcome as JSON; failures exit non-zero."""
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    kind = str(parsed.kind)
    api_url = str(parsed.api_url).strip()
    db_path = str(parsed.db_path).strip()

    try:
        if api_url:
            payload = HauntedThreadClient(api_url).trigger_tick(
                "daily" if kind == "daily" else "hourly"
            ).model_dump(mode="json")
        else:
            result = run_local_tick(kind, db_path=Path(db_path) if db_path else None)
            payload = asdict(result)
    except (TransientExternalError, httpx.HTTPError) as exc:
        logger.warning("tick.cli_unavailable kind=%s error=%s", kind, exc)
        raise SystemExit(f"Tick {kind} failed: temporarily unavailable") from exc
    except (StoryCorruptionError, ConcurrencyConflictError) as exc:
        logger.error("tick.cli_failed kind=%s error=%s", kind, exc)
        raise SystemExit(f"Tick {kind} failed: {exc}") from exc

    print(json.dumps(payload, sort_keys=True))


if __name__ == "__main__":
    main()
