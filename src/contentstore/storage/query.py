"""Content query builder.

Turns a content type slug plus a generic parameter mapping into a
paginated, filtered SELECT over the content type's table:

    records, pager = await builder.get_content(db, "entries", {"status": "published"})
    record, _ = await builder.get_content(db, "entry/12")

Recognised parameter keys: order, where, limit, offset, page, paging,
filter, returnsingle. Every other key naming a column (or a relation
field) of the content type filters on it; unknown keys are ignored.
All values are bound parameters.
"""

from __future__ import annotations

import math
import operator
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import String, and_, cast, false, func, or_, select, true
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.schema import Column, Table

from contentstore.contenttypes.models import ContentType
from contentstore.core.logging import get_logger
from contentstore.core.text import make_slug
from contentstore.storage.content import Content
from contentstore.storage.fields import FieldType
from contentstore.storage.filters import (
    Conjunction,
    Operator,
    OrderTerm,
    Predicate,
    PredicateGroup,
    parse_filter,
    parse_order,
)
from contentstore.storage.gateway import DatabaseGateway
from contentstore.storage.relations import RelationSynchronizer, normalize_ids
from contentstore.storage.schema import ContentSchema
from contentstore.storage.taxonomy import TaxonomySynchronizer

logger = get_logger(__name__)

RESERVED_PARAMETERS = frozenset(
    {"order", "where", "limit", "offset", "page", "paging", "filter", "returnsingle"}
)

_SHORTCUT_ID = re.compile(r"^([a-z0-9_-]+)/([0-9]+)$", re.IGNORECASE)
_SHORTCUT_SLUG = re.compile(r"^([a-z0-9_-]+)/([a-z0-9_-]+)$", re.IGNORECASE)
_SHORTCUT_LATEST = re.compile(r"^([a-z0-9_-]+)/(latest|first)/([0-9]+)$", re.IGNORECASE)

_COMPARISONS: dict[Operator, Callable[[Any, Any], Any]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
}

_TRUE_FLAGS = {"1", "true", "yes", "on"}


# =============================================================================
# Shortcuts
# =============================================================================


@dataclass
class Shortcut:
    """A parsed 'type/...' request."""

    contenttype: str
    parameters: dict[str, Any] = field(default_factory=dict)
    single: bool = False


def parse_shortcut(slug: str) -> Shortcut:
    """Split combined slugs like 'entry/12', 'page/about' or 'entry/latest/5'.

    Anything that is not a shortcut is returned as a plain content type slug.
    """
    slug = str(slug).strip()

    match = _SHORTCUT_ID.match(slug)
    if match:
        return Shortcut(match.group(1), {"id": match.group(2)}, single=True)

    match = _SHORTCUT_SLUG.match(slug)
    if match:
        return Shortcut(match.group(1), {"slug": match.group(2)}, single=True)

    match = _SHORTCUT_LATEST.match(slug)
    if match:
        order = "-datecreated" if match.group(2).lower() == "latest" else "datecreated"
        return Shortcut(match.group(1), {"order": order, "limit": match.group(3)})

    return Shortcut(slug)


# =============================================================================
# Pager
# =============================================================================


@dataclass
class Pager:
    """Where a page of results sits within the whole result set."""

    for_: str
    count: int
    totalpages: int
    current: int
    showing_from: int
    showing_to: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "for": self.for_,
            "count": self.count,
            "totalpages": self.totalpages,
            "current": self.current,
            "showing_from": self.showing_from,
            "showing_to": self.showing_to,
        }


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_FLAGS
    return bool(value)


# =============================================================================
# Builder
# =============================================================================


class ContentQueryBuilder:
    """Builds and runs content queries for one ContentSchema."""

    def __init__(
        self,
        schema: ContentSchema,
        default_page_size: int = 100,
        taxonomy: TaxonomySynchronizer | None = None,
        relations: RelationSynchronizer | None = None,
    ):
        self.schema = schema
        self.default_page_size = default_page_size
        self.taxonomy = taxonomy or TaxonomySynchronizer(schema)
        self.relations = relations or RelationSynchronizer(schema)

    async def get_content(
        self,
        db: DatabaseGateway,
        slug: str,
        parameters: Mapping[str, Any] | None = None,
        request: Mapping[str, Any] | None = None,
    ) -> tuple[list[Content] | Content | None, Pager | None]:
        """Query content of one type.

        Args:
            db: Gateway for the current operation
            slug: Content type slug, or a shortcut like 'entry/12'
            parameters: Filters and query options
            request: Query-string values; supplies 'page' when paging is
                enabled and its 'order' suppresses grouping

        Returns:
            (records, pager) for collections, (record or None, None) in
            single-result mode, (None, None) for an unknown content type.
        """
        parameters = dict(parameters or {})
        request = request or {}

        shortcut = parse_shortcut(slug)
        contenttype = self.schema.config.get_content_type(shortcut.contenttype)
        if contenttype is None:
            logger.warning("contenttype_not_found", slug=slug)
            return None, None
        parameters.update(shortcut.parameters)

        single = (
            shortcut.single
            or _flag(parameters.get("returnsingle"))
            or make_slug(shortcut.contenttype) == contenttype.singular_slug
        )

        table = self.schema.content_table(contenttype)
        criteria = self.build_criteria(contenttype, parameters)

        limit = 1 if single else _positive_int(parameters.get("limit"), self.default_page_size)
        page = _positive_int(parameters.get("page"), 1)
        if _flag(parameters.get("paging")) and request.get("page") is not None:
            page = _positive_int(request.get("page"), page)
        offset = (page - 1) * limit
        if parameters.get("offset") not in (None, ""):
            try:
                offset = max(int(str(parameters["offset"]).strip()), 0)
            except ValueError:
                logger.warning("offset_rejected", offset=parameters["offset"])

        statement = select(table)
        if criteria:
            statement = statement.where(*criteria)
        statement = self.relations.load(statement, table, contenttype, db.dialect_name)
        statement = statement.order_by(*self.build_order(contenttype, parameters.get("order")))
        statement = statement.limit(limit).offset(offset)

        records = [self._hydrate(contenttype, row) for row in await db.query(statement)]
        await self.taxonomy.attach(db, records, contenttype)

        grouping = self.schema.config.get_grouping_taxonomy(contenttype)
        if grouping is not None and not parameters.get("order") and not request.get("order"):
            records.sort(key=Content.sort_key)

        if single:
            return (records[0] if records else None), None

        count_statement = select(func.count()).select_from(table)
        if criteria:
            count_statement = count_statement.where(*criteria)
        count = int(await db.scalar(count_statement) or 0)

        pager = Pager(
            for_=slug,
            count=count,
            totalpages=math.ceil(count / limit),
            current=page,
            showing_from=offset + 1 if records else 0,
            showing_to=offset + len(records),
        )
        logger.debug(
            "content_queried",
            contenttype=contenttype.slug,
            count=count,
            returned=len(records),
            page=page,
        )
        return records, pager

    async def get_single_content(
        self,
        db: DatabaseGateway,
        slug: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> Content | None:
        parameters = dict(parameters or {})
        parameters["returnsingle"] = True
        record, _ = await self.get_content(db, slug, parameters)
        return record  # type: ignore[return-value]

    # =========================================================================
    # WHERE
    # =========================================================================

    def build_criteria(
        self, contenttype: ContentType, parameters: Mapping[str, Any]
    ) -> list[ColumnElement[bool]]:
        """WHERE predicates shared by the data query and the COUNT query."""
        table = self.schema.content_table(contenttype)
        relation_fields = contenttype.relation_fields

        filters = {
            key: value for key, value in parameters.items() if key not in RESERVED_PARAMETERS
        }
        where = parameters.get("where")
        if isinstance(where, Mapping):
            filters.update(where)

        criteria: list[ColumnElement[bool]] = []
        for key, value in filters.items():
            group = parse_filter(key, value)
            if key in relation_fields:
                criteria.append(self._relation_criterion(table, contenttype, group))
            elif key in table.c:
                field_type = self.schema.field_type(contenttype, key)
                criteria.append(self._column_criterion(table.c[key], field_type, group))
            else:
                logger.debug("filter_ignored", contenttype=contenttype.slug, key=key)

        search = parameters.get("filter")
        if search is not None and str(search).strip():
            criterion = self._free_text_criterion(table, contenttype, str(search).strip())
            if criterion is not None:
                criteria.append(criterion)

        return criteria

    def _column_criterion(
        self, column: Column[Any], field_type: FieldType | None, group: PredicateGroup
    ) -> ColumnElement[bool]:
        clauses = [self._compare(column, field_type, predicate) for predicate in group.predicates]
        if len(clauses) == 1:
            return clauses[0]
        if group.conjunction == Conjunction.OR:
            return or_(*clauses)
        return and_(*clauses)

    def _compare(
        self, column: Column[Any], field_type: FieldType | None, predicate: Predicate
    ) -> ColumnElement[bool]:
        if predicate.operator == Operator.LIKE:
            target = column if field_type is None or field_type.textual else cast(column, String)
            return target.like(str(predicate.value))

        value, coerced = (predicate.value, True)
        if field_type is not None:
            value, coerced = field_type.coerce_filter(predicate.value)
        if not coerced:
            # values that do not fit the column match no row (every row for "!")
            return true() if predicate.operator == Operator.NE else false()
        return _COMPARISONS[predicate.operator](column, value)

    def _relation_criterion(
        self, table: Table, contenttype: ContentType, group: PredicateGroup
    ) -> ColumnElement[bool]:
        ids = normalize_ids([predicate.value for predicate in group.predicates])
        if not ids:
            return false()
        return self.relations.filter(table, contenttype, group.column, ids, group.conjunction)

    def _free_text_criterion(
        self, table: Table, contenttype: ContentType, search: str
    ) -> ColumnElement[bool] | None:
        clauses = []
        for field_name in contenttype.fields:
            field_type = self.schema.field_type(contenttype, field_name)
            if field_type is None or not field_type.searchable or field_name not in table.c:
                continue
            clauses.append(table.c[field_name].contains(search, autoescape=True))
        if not clauses:
            logger.debug("filter_without_searchable_fields", contenttype=contenttype.slug)
            return None
        return or_(*clauses)

    # =========================================================================
    # ORDER BY
    # =========================================================================

    def build_order(self, contenttype: ContentType, order: Any = None) -> list[Any]:
        """ORDER BY terms, restricted to the content table's own columns."""
        table = self.schema.content_table(contenttype)
        allowed = set(table.c.keys())

        terms: list[OrderTerm] = []
        if order:
            terms = parse_order(str(order), allowed)
        elif contenttype.sort:
            terms = parse_order(contenttype.sort, allowed)

        clauses = [
            table.c[term.column].desc() if term.descending else table.c[term.column].asc()
            for term in terms
        ]
        if not any(term.column == "id" for term in terms):
            # id breaks ties
            clauses.append(table.c.id.asc())
        return clauses

    # =========================================================================
    # Hydration
    # =========================================================================

    def _hydrate(self, contenttype: ContentType, row: dict[str, Any]) -> Content:
        record = Content(contenttype=contenttype)
        self.relations.hydrate(record, row)
        record.values = row
        return record
