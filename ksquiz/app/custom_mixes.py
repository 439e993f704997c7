from __future__ import annotations

"""Custom mixes: named, profile-owned MixConfigs persisted in ``custom_mixes``."""

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

from ..engine.mix import MixConfig, validate_mix_config
from ..errors import InsufficientQuestions, NotFoundError, ValidationError
from ..storage.connection import ConnectionManager
from ..storage.content import SqliteContentProvider
from .explain import trace as xtrace

MAX_NAME_LENGTH = 100


@dataclass
class CustomMix:
    id: int
    name: str
    created_by: int
    config: MixConfig
    created_at: str
    updated_at: str

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_by": self.created_by,
            "config": self.config.to_json(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Mix name cannot be empty")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Mix name must be at most {MAX_NAME_LENGTH} characters")
    return cleaned


def _row_to_mix(row: sqlite3.Row) -> CustomMix:
    return CustomMix(
        id=int(row["id"]),
        name=row["name"],
        created_by=int(row["created_by"]),
        config=MixConfig.from_json(json.loads(row["config"])),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class CustomMixManager:
    """CRUD for custom mixes; every create and update goes through the mix validator first."""

    def __init__(self, db: ConnectionManager, content: Optional[SqliteContentProvider] = None) -> None:
        self.db = db
        self.content = content or SqliteContentProvider(db)

    def create(self, name: str, created_by: int, config: Union[MixConfig, Mapping[str, Any]]) -> CustomMix:
        cleaned = _clean_name(name)
        valid = validate_mix_config(config)
        now = _now_iso()

        def op(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "INSERT INTO custom_mixes (name, created_by, config, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (cleaned, int(created_by), json.dumps(valid.to_json()), now, now),
            )
            return int(cur.lastrowid)

        mix_id = self.db.transaction(op)
        xtrace("mix_created", {"mix_id": mix_id, "name": cleaned, "created_by": created_by})
        return self.get(mix_id)

    def get(self, mix_id: int) -> CustomMix:
        row = self.db.execute(
            lambda conn: conn.execute("SELECT * FROM custom_mixes WHERE id = ?", (int(mix_id),)).fetchone()
        )
        if row is None:
            raise NotFoundError(f"Custom mix {mix_id} not found")
        return _row_to_mix(row)

    def list_all(self) -> List[CustomMix]:
        rows = self.db.execute(
            lambda conn: conn.execute("SELECT * FROM custom_mixes ORDER BY created_at DESC, id DESC").fetchall()
        )
        return [_row_to_mix(r) for r in rows]

    def list_for_profile(self, profile_id: int) -> List[CustomMix]:
        rows = self.db.execute(
            lambda conn: conn.execute(
                "SELECT * FROM custom_mixes WHERE created_by = ? ORDER BY created_at DESC, id DESC",
                (int(profile_id),),
            ).fetchall()
        )
        return [_row_to_mix(r) for r in rows]

    def update(
        self,
        mix_id: int,
        name: Optional[str] = None,
        config: Union[MixConfig, Mapping[str, Any], None] = None,
    ) -> CustomMix:
        existing = self.get(mix_id)
        new_name = _clean_name(name) if name is not None else existing.name
        new_config = validate_mix_config(config) if config is not None else existing.config

        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                "UPDATE custom_mixes SET name = ?, config = ?, updated_at = ? WHERE id = ?",
                (new_name, json.dumps(new_config.to_json()), _now_iso(), int(mix_id)),
            )

        self.db.transaction(op)
        xtrace("mix_updated", {"mix_id": mix_id, "name": new_name, "config_changed": config is not None})
        return self.get(mix_id)

    def delete(self, mix_id: int) -> None:
        """Delete a mix; recorded sessions that used it keep their results with ``mix_id`` cleared."""

        def op(conn: sqlite3.Connection) -> int:
            return conn.execute("DELETE FROM custom_mixes WHERE id = ?", (int(mix_id),)).rowcount

        if self.db.transaction(op) == 0:
            raise NotFoundError(f"Custom mix {mix_id} not found")
        xtrace("mix_deleted", {"mix_id": mix_id})

    def available_question_count(self, config: Union[MixConfig, Mapping[str, Any]]) -> int:
        return self.content.count_candidates(validate_mix_config(config))

    def check_feasibility(self, config: Union[MixConfig, Mapping[str, Any]]) -> None:
        valid = validate_mix_config(config)
        available = self.content.count_candidates(valid)
        if available < valid.question_count:
            raise InsufficientQuestions(valid.question_count, available)


__all__ = ["CustomMix", "CustomMixManager"]
