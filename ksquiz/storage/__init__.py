from .connection import ConnectionManager, PoolStats
from .content import ContentProvider, SqliteContentProvider, load_pack, seed_if_empty
from .migrations import Migration, MigrationManager
from .results import QuizResultStore, ResultSink, SessionSummary

__all__ = [
    "ConnectionManager",
    "PoolStats",
    "ContentProvider",
    "SqliteContentProvider",
    "load_pack",
    "seed_if_empty",
    "Migration",
    "MigrationManager",
    "QuizResultStore",
    "ResultSink",
    "SessionSummary",
]
