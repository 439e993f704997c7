from __future__ import annotations

"""Versioned schema migrations.

The store keeps one integer schema version in a single-row
``schema_version`` table plus an append-only ``schema_history``. Each
delta runs in its own transaction together with the version bump, so a
failed delta leaves the store exactly at the last committed version.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from importlib import resources
from typing import Dict, Iterable, List, Optional, Tuple

from ..app.explain import trace as xtrace
from ..app.explain import trace_error as xtrace_error
from ..errors import MigrationError, StorageError
from .connection import ConnectionManager

_BOOTSTRAP_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    version INTEGER NOT NULL CHECK (version >= 0)
);
INSERT OR IGNORE INTO schema_version (id, version) VALUES (1, 0);
CREATE TABLE IF NOT EXISTS schema_history (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TEXT NOT NULL
);
"""


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    up_sql: str
    # run with foreign keys off (table rebuilds); references are checked before commit
    rebuilds_tables: bool = False


def load_schema_sql() -> str:
    return resources.files("ksquiz.storage").joinpath("schema.sql").read_text(encoding="utf-8")


def default_migrations() -> List[Migration]:
    return [
        Migration(1, "Initial database schema", load_schema_sql()),
        Migration(
            2,
            "Add Times Tables and Flags & Capitals subjects",
            """
            INSERT OR IGNORE INTO subjects (name, display_name, icon_path, color_scheme, description) VALUES
            ('times_tables', 'Times Tables', 'icons/times-tables.svg', '#E91E63',
             'Multiplication tables and mental arithmetic practice'),
            ('flags_capitals', 'Flags & Capitals', 'icons/flags.svg', '#00BCD4',
             'World flags, capital cities, and country knowledge');
            """,
        ),
        Migration(
            3,
            "Index custom mixes by owner",
            "CREATE INDEX IF NOT EXISTS idx_custom_mixes_created_by ON custom_mixes(created_by);",
        ),
        Migration(
            4,
            "Allow drag_drop and hotspot question types",
            # SQLite cannot alter a CHECK constraint, so the table is rebuilt
            """
            CREATE TABLE questions_v4 (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_id INTEGER NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
                key_stage TEXT NOT NULL CHECK (key_stage IN ('KS1', 'KS2')),
                question_type TEXT NOT NULL CHECK (question_type IN (
                    'multiple_choice', 'true_false', 'fill_blank', 'numeric', 'drag_drop', 'hotspot'
                )),
                content TEXT NOT NULL,
                correct_answer TEXT NOT NULL,
                difficulty_level INTEGER NOT NULL DEFAULT 1 CHECK (difficulty_level BETWEEN 1 AND 5),
                tags TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );
            INSERT INTO questions_v4
                (id, subject_id, key_stage, question_type, content, correct_answer, difficulty_level, tags, created_at)
            SELECT id, subject_id, key_stage, question_type, content, correct_answer, difficulty_level, tags, created_at
            FROM questions;
            DROP TABLE questions;
            ALTER TABLE questions_v4 RENAME TO questions;
            CREATE INDEX IF NOT EXISTS idx_questions_subject_stage ON questions(subject_id, key_stage);
            CREATE INDEX IF NOT EXISTS idx_questions_composite ON questions(subject_id, key_stage, difficulty_level);
            CREATE INDEX IF NOT EXISTS idx_questions_type_difficulty ON questions(question_type, difficulty_level);
            """,
            rebuilds_tables=True,
        ),
    ]


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)).fetchone()
    return row is not None


def _read_version(conn: sqlite3.Connection) -> int:
    if not _table_exists(conn, "schema_version"):
        return 0
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row[0]) if row is not None else 0


class MigrationManager:
    def __init__(self, migrations: Optional[Iterable[Migration]] = None) -> None:
        self._migrations: Dict[int, Migration] = {}
        for m in default_migrations() if migrations is None else migrations:
            self.register(m)

    def register(self, migration: Migration) -> None:
        if int(migration.version) <= 0:
            raise ValueError(f"Migration version must be positive, got {migration.version}")
        if migration.version in self._migrations:
            raise ValueError(f"Migration {migration.version} is already registered")
        self._migrations[int(migration.version)] = migration

    @property
    def migrations(self) -> List[Migration]:
        return [self._migrations[v] for v in sorted(self._migrations)]

    @property
    def latest_version(self) -> int:
        return max(self._migrations, default=0)

    def get_current_version(self, db: ConnectionManager) -> int:
        return db.execute(_read_version)

    def pending_versions(self, db: ConnectionManager) -> List[int]:
        current = self.get_current_version(db)
        return [v for v in sorted(self._migrations) if v > current]

    def applied_migrations(self, db: ConnectionManager) -> List[Tuple[int, str, str]]:
        """(version, description, applied_at) for every committed delta, ascending."""

        def op(conn: sqlite3.Connection) -> List[Tuple[int, str, str]]:
            if not _table_exists(conn, "schema_history"):
                return []
            rows = conn.execute(
                "SELECT version, description, applied_at FROM schema_history ORDER BY version"
            ).fetchall()
            return [(int(r[0]), str(r[1]), str(r[2])) for r in rows]

        return db.execute(op)

    def migrate_to_latest(self, db: ConnectionManager) -> int:
        """Apply every pending delta in ascending order and return the resulting version.

        The whole sequence holds the store lock, so no other operation can
        observe a partially migrated schema. Raises MigrationError on the
        first failing delta; later deltas are not attempted.
        """
        return db.execute(self._migrate)

    def _migrate(self, conn: sqlite3.Connection) -> int:
        if conn.in_transaction:
            raise StorageError("Cannot run migrations inside an open transaction")
        conn.executescript(_BOOTSTRAP_SQL)
        current = _read_version(conn)
        pending = [self._migrations[v] for v in sorted(self._migrations) if v > current]
        if not pending:
            xtrace("schema_current", {"version": current})
            return current

        for migration in pending:
            try:
                self._apply(conn, migration)
            except sqlite3.Error as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                err = MigrationError(migration.version, str(e), committed_version=current)
                xtrace_error("migration_failed", err, {"version": migration.version})
                raise err from e
            current = migration.version
            xtrace("migration_applied", {"version": migration.version, "description": migration.description})
        return current

    def _apply(self, conn: sqlite3.Connection, migration: Migration) -> None:
        if not migration.rebuilds_tables:
            self._run(conn, migration)
            return
        # the pragma is ignored inside a transaction
        conn.execute("PRAGMA foreign_keys = OFF")
        try:
            self._run(conn, migration)
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.execute("PRAGMA foreign_keys = ON")

    def _run(self, conn: sqlite3.Connection, migration: Migration) -> None:
        # executescript commits any pending transaction first, so BEGIN has to be part of the script
        conn.executescript("BEGIN IMMEDIATE;\n" + migration.up_sql)
        if migration.rebuilds_tables:
            broken = conn.execute("PRAGMA foreign_key_check").fetchall()
            if broken:
                raise sqlite3.IntegrityError(f"{len(broken)} dangling references after rebuild")
        cur = conn.execute(
            "UPDATE schema_version SET version = ? WHERE id = 1 AND version < ?",
            (migration.version, migration.version),
        )
        if cur.rowcount != 1:
            raise sqlite3.IntegrityError(f"schema version would not increase to {migration.version}")
        conn.execute(
            "INSERT INTO schema_history (version, description, applied_at) VALUES (?, ?, ?)",
            (migration.version, migration.description, datetime.now(timezone.utc).isoformat()),
        )
        conn.execute("COMMIT")


__all__ = ["Migration", "MigrationManager", "default_migrations", "load_schema_sql"]
