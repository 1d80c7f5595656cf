from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from haunted_thread.adapters.kv_store_factory import create_key_value_store
from haunted_thread.adapters.memory_kv_store import MemoryKeyValueStore
from haunted_thread.adapters.sqlite_kv_store import SQLiteKeyValueStore
from haunted_thread.domain.errors import StoreUnavailableError
from haunted_thread.domain.ports import KeyValueStore


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _stores(tmp_path: Path, clock: Clock) -> list[KeyValueStore]:
    return [
        SQLiteKeyValueStore(tmp_path / "kv.db", clock=clock),
        MemoryKeyValueStore(clock=clock),
    ]


def test_set_get_and_versions(tmp_path: Path) -> None:
    for store in _stores(tmp_path, Clock()):
        assert store.get("missing") is None
        assert store.set("a", b"one") == 1
        assert store.set("a", b"two") == 2
        assert store.get("a") == b"two"
        assert store.get_versioned("a") == (b"two", 2)
        assert store.delete("a") is True
        assert store.delete("a") is False


def test_set_if_version_is_compare_and_swap(tmp_path: Path) -> None:
    for store in _stores(tmp_path, Clock()):
        assert store.set_if_version("cas", b"first", expected_version=None) == 1
        assert store.set_if_version("cas", b"again", expected_version=None) is None
        assert store.set_if_version("cas", b"stale", expected_version=7) is None
        assert store.set_if_version("cas", b"second", expected_version=1) == 2
        assert store.get("cas") == b"second"


def test_expired_keys_read_as_absent_and_purge(tmp_path: Path) -> None:
    clock = Clock()
    for store in _stores(tmp_path, clock):
        store.set("temp", b"x", expire_at=clock.now + timedelta(hours=2))
        store.set("keep", b"y")
        assert store.get("temp") == b"x"
        clock.now += timedelta(hours=2)
        assert store.get("temp") is None
        assert store.set_if_version("temp", b"fresh", expected_version=None) is not None
        store.set("gone", b"z", expire_at=clock.now)
        assert store.purge_expired() == 1
        assert store.get("keep") == b"y"
        clock.now -= timedelta(hours=2)


def test_incr_counts_atomically(tmp_path: Path) -> None:
    for store in _stores(tmp_path, Clock()):
        assert store.incr("counter") == 1
        assert store.incr("counter", 4) == 5
        assert store.get("counter") == b"5"


def test_sqlite_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "kv.db"
    SQLiteKeyValueStore(path).set("story", b"payload")
    assert SQLiteKeyValueStore(path).get_versioned("story") == (b"payload", 1)


def test_sqlite_operational_errors_become_store_unavailable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = SQLiteKeyValueStore(tmp_path / "kv.db")

    def locked(*args: object, **kwargs: object) -> sqlite3.Connection:
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(store, "_connect", locked)
    with pytest.raises(StoreUnavailableError, match="database is locked"):
        store.get("anything")


def test_factory_selects_backend(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HAUNTED_THREAD_STORE_BACKEND", raising=False)
    assert isinstance(create_key_value_store(db_path=tmp_path / "a.db"), SQLiteKeyValueStore)
    monkeypatch.setenv("HAUNTED_THREAD_STORE_BACKEND", "memory")
    assert isinstance(create_key_value_store(db_path=tmp_path / "b.db"), MemoryKeyValueStore)
    monkeypatch.setenv("HAUNTED_THREAD_STORE_BACKEND", "redis")
    with pytest.raises(RuntimeError, match="Unsupported HAUNTED_THREAD_STORE_BACKEND"):
        create_key_value_store(db_path=tmp_path / "c.db")
