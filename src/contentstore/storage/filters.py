"""Parsing of filter values and order clauses.

Filter values carry their operator as a prefix:

    '!5'           -> != 5
    '<=2020-01-01' -> <= 2020-01-01
    '>=10', '<3', '>3'
    '%foo%', 'foo%' -> LIKE
    'bar'          -> = bar

A value may hold several alternatives joined by '||' (any must match) or
'&&' (all must match), each parsed on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from contentstore.core.logging import get_logger

logger = get_logger(__name__)


class Operator(str, Enum):
    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    LIKE = "LIKE"


class Conjunction(str, Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Predicate:
    """One comparison of a column against a value."""

    column: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class PredicateGroup:
    """Predicates on one column combined with AND or OR."""

    column: str
    conjunction: Conjunction
    predicates: tuple[Predicate, ...]


# Two-character prefixes must be tested before their one-character heads
_PREFIXES: tuple[tuple[str, Operator], ...] = (
    ("<=", Operator.LE),
    (">=", Operator.GE),
    ("!", Operator.NE),
    ("<", Operator.LT),
    (">", Operator.GT),
)


def parse_predicate(column: str, value: Any) -> Predicate:
    """Parse one filter value into a predicate."""
    if not isinstance(value, str):
        return Predicate(column, Operator.EQ, value)

    for prefix, operator in _PREFIXES:
        if value.startswith(prefix):
            return Predicate(column, operator, value[len(prefix) :])

    if value.startswith("%") or value.endswith("%"):
        return Predicate(column, Operator.LIKE, value)

    return Predicate(column, Operator.EQ, value)


def split_alternatives(value: Any) -> tuple[Conjunction, list[Any]]:
    """Split 'a || b' / 'a && b' into its parts and their conjunction."""
    if isinstance(value, str):
        if "||" in value:
            return Conjunction.OR, [part.strip() for part in value.split("||")]
        if "&&" in value:
            return Conjunction.AND, [part.strip() for part in value.split("&&")]
    return Conjunction.AND, [value]


def parse_filter(column: str, value: Any) -> PredicateGroup:
    """Parse a filter parameter into a group of predicates on one column."""
    conjunction, parts = split_alternatives(value)
    return PredicateGroup(
        column=column,
        conjunction=conjunction,
        predicates=tuple(parse_predicate(column, part) for part in parts),
    )


@dataclass(frozen=True)
class OrderTerm:
    column: str
    descending: bool = False


def parse_order(order: str, allowed: set[str] | list[str]) -> list[OrderTerm]:
    """Parse 'col', 'col DESC', '-col' terms, comma separated.

    Only columns in `allowed` and the directions ASC/DESC are accepted;
    anything else is dropped with a warning.
    """
    terms: list[OrderTerm] = []
    for raw_term in str(order).split(","):
        term = raw_term.strip()
        if not term:
            continue

        descending = False
        if term.startswith("-"):
            descending = True
            term = term[1:].strip()

        parts = term.split()
        if len(parts) == 2 and not descending:
            direction = parts[1].upper()
            if direction not in ("ASC", "DESC"):
                logger.warning("order_direction_rejected", term=raw_term.strip())
                continue
            descending = direction == "DESC"
        elif len(parts) != 1:
            logger.warning("order_term_rejected", term=raw_term.strip())
            continue

        column = parts[0]
        if column not in allowed:
            logger.warning("order_column_rejected", column=column)
            continue
        terms.append(OrderTerm(column=column, descending=descending))
    return terms
