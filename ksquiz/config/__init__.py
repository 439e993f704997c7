from .config import (
    DEFAULT_THRESHOLDS,
    database_path,
    default_data_dir,
    load_config,
    resolve_data_dir,
    validate_config,
)

__all__ = [
    "DEFAULT_THRESHOLDS",
    "database_path",
    "default_data_dir",
    "load_config",
    "resolve_data_dir",
    "validate_config",
]
