from .config import AnalyticsConfig
from .export import export_ndjson, export_parquet
from .metrics import accuracy_by
from .prepare import load_attempts, load_sessions
from .smoothing import ewma_accuracy

__all__ = [
    "AnalyticsConfig",
    "accuracy_by",
    "ewma_accuracy",
    "export_ndjson",
    "export_parquet",
    "load_attempts",
    "load_sessions",
]
