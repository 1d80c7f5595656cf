"""SQLite-backed key-value store with versions, expiry, and counters."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from haunted_thread.domain.errors import StoreUnavailableError


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _iso(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


class SQLiteKeyValueStore:
    """Persist opaque payloads keyed by string in one SQLite table.

    Every write bumps the row version, which `set_if_version` uses as the
    compare-and-swap token. Expired rows read as absent and are removed by
    `purge_expired`.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        busy_timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._db_path = db_path
        self._busy_timeout_seconds = busy_timeout_seconds
        self._clock = clock
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path), timeout=self._busy_timeout_seconds)
        connection.row_factory = sqlite3.Row
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction that holds the database lock until commit."""
        try:
            with self._connect() as connection:
                connection.execute("BEGIN IMMEDIATE")
                yield connection
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError(f"SQLite store unavailable: {exc}") from exc

    def _initialize_schema(self) -> None:
        with self._transaction() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    entry_key TEXT PRIMARY KEY,
                    entry_value BLOB NOT NULL,
                    version INTEGER NOT NULL,
                    expires_at_utc TEXT
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_kv_entries_expiry
                ON kv_entries(expires_at_utc)
                """
            )

    def _live_row(self, connection: sqlite3.Connection, key: str) -> sqlite3.Row | None:
        return connection.execute(
            """
            SELECT entry_value, version
            FROM kv_entries
            WHERE entry_key = ?
              AND (expires_at_utc IS NULL OR expires_at_utc > ?)
            """,
            (key, _iso(self._clock())),
        ).fetchone()

    def get(self, key: str) -> bytes | None:
        found = self.get_versioned(key)
        return None if found is None else found[0]

    def get_versioned(self, key: str) -> tuple[bytes, int] | None:
        with self._transaction() as connection:
            row = self._live_row(connection, key)
        if row is None:
            return None
        return bytes(row["entry_value"]), int(row["version"])

    def set(self, key: str, value: bytes, *, expire_at: datetime | None = None) -> int:
        """Write unconditionally and return the new version."""
        with self._transaction() as connection:
            connection.execute(
                """
                INSERT INTO kv_entries (entry_key, entry_value, version, expires_at_utc)
                VALUES (?, ?, 1, ?)
                ON CONFLICT(entry_key) DO UPDATE SET
                    entry_value = excluded.entry_value,
                    version = kv_entries.version + 1,
                    expires_at_utc = excluded.expires_at_utc
                """,
                (key, value, _iso(expire_at)),
            )
            row = connection.execute(
                "SELECT version FROM kv_entries WHERE entry_key = ?", (key,)
            ).fetchone()
        assert row is not None
        return int(row["version"])

    def delete(self, key: str) -> bool:
        with self._transaction() as connection:
            cursor = connection.execute("DELETE FROM kv_entries WHERE entry_key = ?", (key,))
            removed = cursor.rowcount
        return removed > 0

    def set_if_version(
        self,
        key: str,
        value: bytes,
        *,
        expected_version: int | None,
        expire_at: datetime | None = None,
    ) -> int | None:
        """Write only when the live version matches and return the new version.

        `expected_version=None` means the key must be absent (or expired).
        Returns None on a version conflict.
        """
        now_iso = _iso(self._clock())
        with self._transaction() as connection:
            if expected_version is None:
                if self._live_row(connection, key) is not None:
                    return None
                existing = connection.execute(
                    "SELECT version FROM kv_entries WHERE entry_key = ?", (key,)
                ).fetchone()
                next_version = 1 if existing is None else int(existing["version"]) + 1
                connection.execute(
                    """
                    INSERT OR REPLACE INTO kv_entries
                        (entry_key, entry_value, version, expires_at_utc)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key, value, next_version, _iso(expire_at)),
                )
                return next_version
            cursor = connection.execute(
                """
                UPDATE kv_entries
                SET entry_value = ?, version = version + 1, expires_at_utc = ?
                WHERE entry_key = ?
                  AND version = ?
                  AND (expires_at_utc IS NULL OR expires_at_utc > ?)
                """,
                (value, _iso(expire_at), key, expected_version, now_iso),
            )
            updated = cursor.rowcount
        return expected_version + 1 if updated == 1 else None

    def incr(self, key: str, amount: int = 1) -> int:
        with self._transaction() as connection:
            row = self._live_row(connection, key)
            current = 0 if row is None else int(bytes(row["entry_value"]).decode("ascii"))
            total = current + amount
            connection.execute(
                """
                INSERT INTO kv_entries (entry_key, entry_value, version, expires_at_utc)
                VALUES (?, ?, 1, NULL)
                ON CONFLICT(entry_key) DO UPDATE SET
                    entry_value = excluded.entry_value,
                    version = kv_entries.version + 1,
                    expires_at_utc = NULL
                """,
                (key, str(total).encode("ascii")),
            )
        return total

    def purge_expired(self) -> int:
        with self._transaction() as connection:
            cursor = connection.execute(
                """
                DELETE FROM kv_entries
                WHERE expires_at_utc IS NOT NULL AND expires_at_utc <= ?
                """,
                (_iso(self._clock()),),
            )
            removed = int(cursor.rowcount)
        return removed
