from __future__ import annotations

"""Serialized access to the single embedded SQLite store.

All reads and writes funnel through ``ConnectionManager.execute``, which
hands the one underlying connection to a callable while holding a
re-entrant lock. SQLite supports a single writer, so there is no pool of
connections; ``stats()`` reports the same shape a pool would.
"""

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from ..errors import StorageError

T = TypeVar("T")

MEMORY = ":memory:"


@dataclass(frozen=True)
class PoolStats:
    active_connections: int
    idle_connections: int
    max_connections: int
    total_operations: int
    opened: bool


class ConnectionManager:
    """Owns the store's connection; pass one instance to every service that needs the store.

    The connection is opened lazily on first use and configured with
    foreign keys on, WAL journaling (file databases), synchronous NORMAL,
    in-memory temp storage and a busy timeout.
    """

    def __init__(
        self,
        database: Union[str, Path] = MEMORY,
        *,
        timeout: float = 30.0,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.database = str(database)
        self.timeout = float(timeout)
        self.busy_timeout_ms = int(busy_timeout_ms)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0
        self._operations = 0
        self._savepoints = 0
        self._closed = False

    @property
    def is_memory(self) -> bool:
        return self.database == MEMORY

    def _connect(self) -> sqlite3.Connection:
        if self._closed:
            raise StorageError("Connection manager is closed")
        if self._conn is None:
            if not self.is_memory:
                Path(self.database).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self.database,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            if not self.is_memory:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA temp_store = MEMORY")
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            self._conn = conn
        return self._conn

    def execute(self, op: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``op`` with the live connection while holding the store lock.

        ``sqlite3.Error`` raised inside ``op`` is re-raised as StorageError;
        any other exception propagates unchanged.
        """
        with self._lock:
            self._depth += 1
            self._operations += 1
            try:
                return op(self._connect())
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
            finally:
                self._depth -= 1

    def transaction(self, op: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``op`` atomically: BEGIN/COMMIT, or a SAVEPOINT when already inside a transaction."""

        def run(conn: sqlite3.Connection) -> T:
            if conn.in_transaction:
                self._savepoints += 1
                name = f"sp_{self._savepoints}"
                conn.execute(f"SAVEPOINT {name}")
                try:
                    result = op(conn)
                except BaseException:
                    conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                    conn.execute(f"RELEASE SAVEPOINT {name}")
                    raise
                conn.execute(f"RELEASE SAVEPOINT {name}")
                return result

            conn.execute("BEGIN")
            try:
                result = op(conn)
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            return result

        return self.execute(run)

    def stats(self) -> PoolStats:
        # Lock-free snapshot; counts may be stale while another thread is inside execute().
        opened = self._conn is not None
        active = 1 if self._depth > 0 else 0
        return PoolStats(
            active_connections=active,
            idle_connections=1 if opened and not active else 0,
            max_connections=1,
            total_operations=self._operations,
            opened=opened,
        )

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            self._closed = True

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["ConnectionManager", "PoolStats", "MEMORY"]
