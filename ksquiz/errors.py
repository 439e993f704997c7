from __future__ import annotations

"""Error taxonomy for the quiz engine and its persistence layer.

Every error carries a coarse ``category`` (for logging/trace output) and a
``recoverable`` flag telling callers whether retrying with corrected input
can succeed.
"""

from typing import List, Optional


class QuizError(Exception):
    """Base class for all ksquiz errors."""

    category = "internal"
    recoverable = False


class ValidationError(QuizError, ValueError):
    """A configuration value is out of bounds."""

    category = "validation"
    recoverable = True

    def __init__(self, errors: List[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidState(QuizError):
    """An operation was attempted in the wrong session or timer state."""

    category = "business_logic"
    recoverable = True


class SessionClosed(QuizError):
    """A mutation was attempted on a completed session."""

    category = "business_logic"
    recoverable = True


class InsufficientQuestions(QuizError):
    """The candidate pool is smaller than the requested question count."""

    category = "content"
    recoverable = True

    def __init__(self, requested: int, available: int) -> None:
        self.requested = int(requested)
        self.available = int(available)
        super().__init__(
            f"Not enough questions available. Requested: {self.requested}, Available: {self.available}"
        )


class StorageError(QuizError):
    """I/O, schema or constraint failure in the embedded store."""

    category = "database"


class MigrationError(StorageError):
    """A schema delta failed; the store stays at the last committed version."""

    def __init__(self, version: int, message: str, *, committed_version: Optional[int] = None) -> None:
        self.version = int(version)
        self.committed_version = committed_version
        super().__init__(f"Migration {self.version} failed: {message}")


class NotFoundError(StorageError, LookupError):
    """A requested record does not exist."""

    category = "data"


__all__ = [
    "QuizError",
    "ValidationError",
    "InvalidState",
    "SessionClosed",
    "InsufficientQuestions",
    "StorageError",
    "MigrationError",
    "NotFoundError",
]
