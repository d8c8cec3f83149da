"""Base models and types used across all modules.

This module contains the fundamental types that don't belong to any specific
layer (configuration, schema reconciliation, content storage).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Result type for operations that can fail.

    Use this instead of exceptions for expected failures.
    Exceptions are reserved for unexpected/programming errors.
    """

    success: bool
    value: T | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: T, warnings: list[str] | None = None) -> Result[T]:
        """Create a successful result."""
        return cls(success=True, value=value, warnings=warnings or [])

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get the value or raise if failed."""
        if not self.success:
            raise ValueError(f"Result failed: {self.error}")
        assert self.value is not None
        return self.value

    def map(self, fn: Callable[[T], Any]) -> Result[Any]:
        """Transform the value if successful."""
        if self.success and self.value is not None:
            return Result.ok(fn(self.value), self.warnings)
        return self


# === Enums ===


class ContentStatus(str, Enum):
    """Publication status of a content record."""

    PUBLISHED = "published"
    DRAFT = "draft"
    TIMED = "timed"  # Published automatically at a later date
    DEPUBLISHED = "depublished"


class ChangeKind(str, Enum):
    """Kind of entry in the reconciliation change log."""

    TABLE_CREATED = "table_created"
    COLUMN_ADDED = "column_added"
    UNKNOWN_FIELD_TYPE = "unknown_field_type"


class TaxonomyBehavior(str, Enum):
    """How a taxonomy type behaves when attached to content."""

    TAGS = "tags"
    CATEGORIES = "categories"
    GROUPING = "grouping"  # Result sets are ordered by this taxonomy


# === Helpers ===


def utcnow() -> datetime:
    """Current UTC time as a naive datetime with second precision.

    Timestamp columns are declared without time zone, so aware values are
    rejected by some drivers (asyncpg).
    """
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)
