from __future__ import annotations

import json
import os
from pathlib import Path

import httpx
import pytest

from haunted_thread.cli import api as api_cli
from haunted_thread.cli import tick as tick_cli
from haunted_thread.domain.errors import StoryCorruptionError


@pytest.fixture(autouse=True)
def _log_to_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HAUNTED_THREAD_LOG_PATH", str(tmp_path / "logs" / "cli.log"))


def test_api_cli_calls_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []

    def fake_run(app: str, host: str, port: int, reload: bool) -> None:
        calls.append({"app": app, "host": host, "port": port, "reload": reload})

    monkeypatch.setattr("haunted_thread.cli.api.uvicorn.run", fake_run)
    api_cli.main(["--host", "0.0.0.0", "--port", "9000", "--reload"])

    assert calls == [
        {
            "app": "haunted_thread.api.app:app",
            "host": "0.0.0.0",
            "port": 9000,
            "reload": True,
        }
    ]


def test_api_cli_sets_db_path_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HAUNTED_THREAD_DB_PATH", raising=False)
    monkeypatch.setattr("haunted_thread.cli.api.uvicorn.run", lambda *args, **kwargs: None)
    api_cli.main(["--db-path", "work/local/custom.db"])
    assert os.environ["HAUNTED_THREAD_DB_PATH"] == "work/local/custom.db"


def test_tick_cli_runs_in_process_against_sqlite(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("HAUNTED_THREAD_STORE_BACKEND", raising=False)
    db_path = tmp_path / "ticks.db"

    tick_cli.main(["hourly", "--db-path", str(db_path)])
    first = json.loads(capsys.readouterr().out)
    tick_cli.main(["daily", "--db-path", str(db_path)])
    daily = json.loads(capsys.readouterr().out)

    assert first["outcome"] == "started"
    assert first["round_number"] == 1
    assert daily["outcome"] == "noop"
    assert daily["purged_keys"] == 0
    assert db_path.exists()


def test_tick_cli_uses_memory_backend_when_configured(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("HAUNTED_THREAD_STORE_BACKEND", "memory")
    tick_cli.main(["hourly"])
    assert json.loads(capsys.readouterr().out)["outcome"] == "started"


def test_tick_cli_delivers_through_the_api(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    seen: list[str] = []

    def fake_post(url: str, timeout: float) -> httpx.Response:
        seen.append(str(url))
        return httpx.Response(
            status_code=200,
            request=httpx.Request("POST", url),
            json={"outcome": "advanced", "story_id": "story_1", "round_number": 3},
        )

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.post", fake_post)
    tick_cli.main(["hourly", "--api-url", "http://api.test"])

    assert seen == ["http://api.test/internal/scheduler/hourly"]
    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "advanced"
    assert payload["round_number"] == 3


def test_tick_cli_reports_unreachable_api(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, timeout: float) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=httpx.Request("POST", url))

    monkeypatch.setattr("haunted_thread.api.python_interface.httpx.post", fake_post)
    with pytest.raises(SystemExit, match="Tick daily failed: temporarily unavailable"):
        tick_cli.main(["daily", "--api-url", "http://api.test"])


def test_tick_cli_reports_integrity_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(kind: str, *, db_path: Path | None = None) -> None:
        raise StoryCorruptionError("story_1", ["Sentences are append-only."])

    monkeypatch.setattr("haunted_thread.cli.tick.run_local_tick", broken)
    with pytest.raises(SystemExit, match="append-only"):
        tick_cli.main(["hourly"])


def test_tick_cli_rejects_unknown_kind() -> None:
    with pytest.raises(SystemExit):
        tick_cli.main(["weekly"])
