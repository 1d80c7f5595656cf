"""Factory for selecting the key-value store backend."""

from __future__ import annotations

import os
from pathlib import Path

from haunted_thread.adapters.memory_kv_store import MemoryKeyValueStore
from haunted_thread.adapters.sqlite_kv_store import SQLiteKeyValueStore
from haunted_thread.domain.ports import KeyValueStore


def create_key_value_store(*, db_path: Path) -> KeyValueStore:
    """Build the configured store backend."""
    backend = os.environ.get("HAUNTED_THREAD_STORE_BACKEND", "sqlite").strip().lower()
    if backend in {"", "sqlite"}:
        return SQLiteKeyValueStore(db_path=db_path)
    if backend == "memory":
        return MemoryKeyValueStore()
    raise RuntimeError(
        "Unsupported HAUNTED_THREAD_STORE_BACKEND value. Expected sqlite or memory."
    )
