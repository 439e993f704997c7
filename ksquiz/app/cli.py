from __future__ import annotations

"""CLI for ksquiz: store initialization, status and history."""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from ..config.config import database_path, load_config, resolve_data_dir, validate_config
from ..errors import QuizError
from ..models import ContentStatistics
from ..storage.connection import ConnectionManager
from ..storage.content import SqliteContentProvider, seed_if_empty
from ..storage.migrations import MigrationManager
from ..storage.results import QuizResultStore
from .explain import configure as explain_configure

CONFIG_ERRORS = (QuizError, OSError, ValueError, yaml.YAMLError)


def _error(msg: Any) -> int:
    print(f"ERROR: {msg}", file=sys.stderr)
    return 1


def _load(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = validate_config(load_config(args.config))
    explain_configure(cfg, getattr(args, "explain", False))
    return cfg


def _open(cfg: Dict[str, Any], data_dir: str | None) -> ConnectionManager:
    storage = cfg["storage"]
    return ConnectionManager(
        database_path(cfg, data_dir),
        timeout=float(storage["lock_timeout_s"]),
        busy_timeout_ms=int(storage["busy_timeout_ms"]),
    )


def _print_statistics(stats: ContentStatistics) -> None:
    print(f"Questions: {stats.total_questions}")
    print(f"Subjects: {stats.total_subjects}")
    print(f"Assets: {stats.total_assets}")
    for name, count in sorted(stats.questions_by_subject.items()):
        print(f"  - {name}: {count}")


def cmd_init(args: argparse.Namespace) -> int:
    try:
        cfg = _load(args)
        data_dir = resolve_data_dir(cfg, args.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        print(f"Data directory: {data_dir}")
        with _open(cfg, args.data_dir) as db:
            version = MigrationManager().migrate_to_latest(db)
            print(f"Schema version: {version}")
            provider = SqliteContentProvider(db)
            if cfg["content"]["seed_if_empty"] and not args.no_seed:
                added = seed_if_empty(provider, cfg["content"].get("pack_path"))
                if added:
                    print(f"Seeded {added} questions")
            _print_statistics(provider.statistics())
    except CONFIG_ERRORS as e:
        return _error(e)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    try:
        cfg = _load(args)
        path = database_path(cfg, args.data_dir)
        if not path.exists():
            return _error(f"No database at {path}; run 'ksquiz init' first")
        with _open(cfg, args.data_dir) as db:
            manager = MigrationManager()
            version = manager.get_current_version(db)
            pending = manager.pending_versions(db)
            print(f"Database: {path}")
            print(f"Schema version: {version} (latest {manager.latest_version})")
            print(f"Pending migrations: {', '.join(str(v) for v in pending) if pending else 'none'}")
            if version > 0:
                _print_statistics(SqliteContentProvider(db).statistics())
            s = db.stats()
            print(
                f"Connections: active={s.active_connections} idle={s.idle_connections} "
                f"max={s.max_connections} operations={s.total_operations}"
            )
    except CONFIG_ERRORS as e:
        return _error(e)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    # pandas is only needed here
    from quiz_analytics import AnalyticsConfig, accuracy_by, export_ndjson, export_parquet, load_attempts

    try:
        cfg = _load(args)
        path = database_path(cfg, args.data_dir)
        if not path.exists():
            return _error(f"No database at {path}; run 'ksquiz init' first")
        with _open(cfg, args.data_dir) as db:
            sessions = QuizResultStore(db).history(args.profile, limit=args.limit)
            if not sessions:
                print(f"No sessions recorded for profile {args.profile}")
                return 0
            for s in sessions:
                print(
                    f"{s.completed_at}  {s.correct_answers}/{s.total_questions}  "
                    f"{s.percentage:.0f}%  {s.performance_level}  score={s.final_score}"
                )
            attempts = load_attempts(db, args.profile)
        table = accuracy_by(attempts, "subject", AnalyticsConfig(min_attempts=args.min_attempts))
        print("Accuracy by subject:")
        for row in table.itertuples(index=False):
            print(f"  - {row.subject}: {row.accuracy * 100:.0f}% ({row.correct}/{row.attempts})")
        if args.export:
            out = Path(args.export)
            if out.suffix == ".parquet":
                export_parquet(attempts, out)
            else:
                export_ndjson(attempts, out)
            print(f"Exported {len(attempts)} attempts to {out}")
    except CONFIG_ERRORS as e:
        return _error(e)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="ksquiz")
    sub = p.add_subparsers(dest="cmd", required=True)

    def common(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--config", default=None, help="YAML config file (defaults to the packaged defaults.yml)")
        sp.add_argument("--data-dir", dest="data_dir", default=None, help="Override the data directory")
        sp.add_argument("--explain", action="store_true", help="Print trace lines for engine/storage milestones")

    ip = sub.add_parser("init", help="Create or upgrade the store and seed content")
    common(ip)
    ip.add_argument("--no-seed", dest="no_seed", action="store_true", help="Do not load the starter pack")
    ip.set_defaults(func=cmd_init)

    sp = sub.add_parser("status", help="Show schema version, migrations, pool and content statistics")
    common(sp)
    sp.set_defaults(func=cmd_status)

    hp = sub.add_parser("history", help="Show recent sessions and per-subject accuracy for a profile")
    common(hp)
    hp.add_argument("--profile", type=int, required=True)
    hp.add_argument("--limit", type=int, default=10)
    hp.add_argument("--min-attempts", dest="min_attempts", type=int, default=1)
    hp.add_argument("--export", default=None, help="Write attempts to .ndjson or .parquet")
    hp.set_defaults(func=cmd_history)

    args = p.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
