from __future__ import annotations

"""Configuration loading and validation for ksquiz.

This module loads YAML configuration, applies defaults, and sanitises
values that the engine and storage layer depend on. Bad values are
reported as warnings and replaced by defaults rather than aborting.
"""

import os
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

APP_DIR_NAME = "ksquiz"
DATA_DIR_ENV = "KSQUIZ_DATA_DIR"

DEFAULT_THRESHOLDS = {"excellent": 90, "good": 80, "fair": 70, "needs_improvement": 60}
THRESHOLD_ORDER = ("excellent", "good", "fair", "needs_improvement")


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.

    Raises:
        FileNotFoundError: if an explicit path does not exist.
    """
    if path:
        return _load_yaml(Path(path))
    return _load_yaml(Path(__file__).with_name("defaults.yml"))


def _warn(msg: str) -> None:
    print(f"WARNING: {msg}", file=sys.stderr)


def _valid_thresholds(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    try:
        values = [float(raw[k]) for k in THRESHOLD_ORDER]
    except (KeyError, TypeError, ValueError):
        return False
    if any(v < 0 or v > 100 for v in values):
        return False
    return all(a > b for a, b in zip(values, values[1:]))


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    # Shallow defaults for missing or empty sections
    for section in ("storage", "scoring", "evaluation", "content"):
        value = cfg.get(section)
        if not isinstance(value, dict):
            if value is not None:
                _warn(f"Config section '{section}' must be a mapping, using defaults.")
            cfg[section] = {}
    cfg.setdefault("explain", False)

    storage = cfg["storage"]
    scoring = cfg["scoring"]
    evaluation = cfg["evaluation"]
    content = cfg["content"]

    storage.setdefault("data_dir", None)
    storage.setdefault("db_filename", "quiz.db")
    storage.setdefault("busy_timeout_ms", 5000)
    storage.setdefault("lock_timeout_s", 30)

    scoring.setdefault("thresholds", dict(DEFAULT_THRESHOLDS))

    evaluation.setdefault("numeric_tolerance", 0)

    content.setdefault("seed_if_empty", True)
    content.setdefault("pack_path", None)

    filename = str(storage.get("db_filename") or "").strip()
    if not filename or Path(filename).name != filename:
        _warn(f"Invalid db_filename '{storage.get('db_filename')}', using 'quiz.db'.")
        storage["db_filename"] = "quiz.db"

    for key, default in (("busy_timeout_ms", 5000), ("lock_timeout_s", 30)):
        try:
            value = float(storage[key])
        except (TypeError, ValueError):
            value = -1
        if value <= 0:
            _warn(f"Invalid storage.{key} '{storage[key]}', using {default}.")
            storage[key] = default

    if not _valid_thresholds(scoring.get("thresholds")):
        _warn("scoring.thresholds must be descending percentages in 0..100; using defaults.")
        scoring["thresholds"] = dict(DEFAULT_THRESHOLDS)
    else:
        scoring["thresholds"] = {k: float(scoring["thresholds"][k]) for k in THRESHOLD_ORDER}

    try:
        tolerance = Decimal(str(evaluation.get("numeric_tolerance")))
        if not tolerance.is_finite() or tolerance < 0:
            raise InvalidOperation
    except InvalidOperation:
        _warn(f"Invalid numeric_tolerance '{evaluation.get('numeric_tolerance')}', using 0.")
        tolerance = Decimal(0)
    evaluation["numeric_tolerance"] = tolerance

    cfg["explain"] = bool(cfg.get("explain", False))
    content["seed_if_empty"] = bool(content.get("seed_if_empty", True))

    return cfg


def default_data_dir() -> Path:
    """Platform data directory used when nothing else is configured."""
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / APP_DIR_NAME
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME


def resolve_data_dir(cfg: Dict[str, Any], override: Optional[str] = None) -> Path:
    """Pick the data directory: explicit override, env var, config, platform default."""
    if override:
        return Path(override).expanduser()
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    configured = cfg.get("storage", {}).get("data_dir")
    if configured:
        return Path(str(configured)).expanduser()
    return default_data_dir()


def database_path(cfg: Dict[str, Any], override: Optional[str] = None) -> Path:
    return resolve_data_dir(cfg, override) / str(cfg.get("storage", {}).get("db_filename", "quiz.db"))
