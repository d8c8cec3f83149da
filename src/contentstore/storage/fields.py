"""Field type registry.

Maps a declared field type ('text', 'number', 'html', ...) to:
- the column it materializes as (kind, length/precision, server default)
- the hooks used when building filters and when persisting values

Types that never materialize as a column ('divider', 'slug', 'relation',
'taxonomy') are registered too, so the reconciler can tell them apart from
types it does not know at all.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.types import TypeEngine


class FieldType:
    """Base class for all field types.

    Subclasses define the column type and how raw values are converted
    for filtering and storage.
    """

    #: Whether the field becomes a column of the content table
    materialized: bool = True
    #: Whether the free-text 'filter' parameter searches this field
    searchable: bool = False
    #: Whether values are compared as strings (LIKE works without a cast)
    textual: bool = False

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    def column_type(self) -> TypeEngine[Any]:
        raise NotImplementedError(f"Field type '{self.name}' has no column")

    def server_default(self) -> str | None:
        return None

    @property
    def nullable(self) -> bool:
        return self.server_default() is None

    def column(self, name: str) -> Column[Any]:
        """Build the SQLAlchemy column this field materializes as."""
        return Column(
            name,
            self.column_type(),
            nullable=self.nullable,
            server_default=self.server_default(),
        )

    def coerce_filter(self, value: Any) -> tuple[Any, bool]:
        """Convert a filter value to the column's Python type.

        Returns:
            (value, True) when converted, (original, False) when the value
            must be bound as a plain string instead.
        """
        return value, True

    def to_storage(self, value: Any) -> Any:
        """Convert a submitted value to what is written to the column."""
        return value


class StringFieldType(FieldType):
    """Bounded string: text, templateselect, image, file."""

    textual = True

    def __init__(self, name: str, length: int = 256, searchable: bool = False):
        super().__init__(name)
        self.length = length
        self.searchable = searchable

    def column_type(self) -> TypeEngine[Any]:
        return String(self.length)

    def server_default(self) -> str | None:
        return ""

    def coerce_filter(self, value: Any) -> tuple[Any, bool]:
        return ("" if value is None else str(value)), True

    def to_storage(self, value: Any) -> Any:
        if value is None:
            return ""
        return str(value).strip()


class TextFieldType(StringFieldType):
    """Unbounded text: html, textarea."""

    def __init__(self, name: str):
        super().__init__(name, length=0, searchable=True)

    def column_type(self) -> TypeEngine[Any]:
        return Text()


class NumberFieldType(FieldType):
    """Fixed precision decimal(18, 9), default 0."""

    precision = 18
    scale = 9

    def column_type(self) -> TypeEngine[Any]:
        return Numeric(self.precision, self.scale)

    def server_default(self) -> str | None:
        return "0"

    def coerce_filter(self, value: Any) -> tuple[Any, bool]:
        number = _to_decimal(value)
        if number is None:
            return value, False
        return number, True

    def to_storage(self, value: Any) -> Any:
        number = _to_decimal(value)
        return Decimal(0) if number is None else number


class IntegerFieldType(FieldType):
    """Integer identifiers (id, content_id, from_id, to_id)."""

    def column_type(self) -> TypeEngine[Any]:
        return Integer()

    def coerce_filter(self, value: Any) -> tuple[Any, bool]:
        try:
            return int(str(value).strip()), True
        except (TypeError, ValueError):
            return value, False

    def to_storage(self, value: Any) -> Any:
        if value in (None, ""):
            return None
        return int(value)


class DateTimeFieldType(FieldType):
    """Timestamp without time zone, nullable, no default."""

    def column_type(self) -> TypeEngine[Any]:
        return DateTime()

    def coerce_filter(self, value: Any) -> tuple[Any, bool]:
        parsed = parse_datetime(value)
        if parsed is None:
            return value, False
        return parsed, True

    def to_storage(self, value: Any) -> Any:
        return parse_datetime(value)


class VirtualFieldType(FieldType):
    """Field types with no column of their own."""

    materialized = False


# =============================================================================
# Value helpers
# =============================================================================


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    try:
        text = str(value).strip()
        return Decimal(text) if text else None
    except InvalidOperation:
        return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse ISO-8601-ish input into a naive datetime.

    Accepts datetime/date objects and strings like '2012-08-15',
    '2012-08-15 14:30' or '2012-08-15T14:30:00'. Anything else yields None.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


# =============================================================================
# Registry
# =============================================================================


class FieldTypeRegistry:
    """Lookup table from declared field type name to FieldType."""

    def __init__(self) -> None:
        self._types: dict[str, FieldType] = {}

    def register(self, field_type: FieldType) -> None:
        self._types[field_type.name] = field_type

    def get(self, name: str) -> FieldType | None:
        return self._types.get(name)

    def is_known(self, name: str) -> bool:
        return name in self._types

    def names(self) -> list[str]:
        return sorted(self._types)


def build_default_registry() -> FieldTypeRegistry:
    """Registry with every field type the content store understands."""
    registry = FieldTypeRegistry()

    registry.register(StringFieldType("text", searchable=True))
    for name in ("templateselect", "image", "file"):
        registry.register(StringFieldType(name))
    for name in ("html", "textarea"):
        registry.register(TextFieldType(name))
    registry.register(NumberFieldType("number"))
    for name in ("date", "datetime"):
        registry.register(DateTimeFieldType(name))
    for name in ("divider", "slug", "relation", "taxonomy"):
        registry.register(VirtualFieldType(name))

    return registry


default_registry = build_default_registry()


# Base columns every content table carries, with the field type driving them.
BASE_COLUMN_TYPES: dict[str, FieldType] = {
    "id": IntegerFieldType("id"),
    "slug": StringFieldType("slug", length=128),
    "datecreated": DateTimeFieldType("datecreated"),
    "datechanged": DateTimeFieldType("datechanged"),
    "username": StringFieldType("username", length=32),
    "status": StringFieldType("status", length=32),
}

BASE_COLUMNS: tuple[str, ...] = tuple(BASE_COLUMN_TYPES)
