"""Content records returned by the storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from contentstore.contenttypes.models import ContentType, TaxonomyType
from contentstore.core.models.base import TaxonomyBehavior


@dataclass
class Content:
    """One content record tagged with its content type.

    `values` holds the row's columns, `taxonomy` maps taxonomy type to its
    slugs and `relations` maps relation field to target ids, both in
    storage order. The caller owns the record; storage keeps no reference.
    """

    contenttype: ContentType
    values: dict[str, Any] = field(default_factory=dict)
    taxonomy: dict[str, list[str]] = field(default_factory=dict)
    relations: dict[str, list[int]] = field(default_factory=dict)
    group: str | None = None
    group_order: int = 0

    @property
    def id(self) -> int | None:
        value = self.values.get("id")
        return int(value) if value not in (None, "") else None

    @property
    def slug(self) -> str:
        return self.values.get("slug") or ""

    @property
    def status(self) -> str:
        return self.values.get("status") or ""

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def set_taxonomy(self, taxonomy: TaxonomyType, slug: str) -> None:
        """Attach one taxonomy value; the first grouping value sets the group."""
        slugs = self.taxonomy.setdefault(taxonomy.key, [])
        if slug not in slugs:
            slugs.append(slug)

        if taxonomy.behaves_like == TaxonomyBehavior.GROUPING and self.group is None:
            self.group = slug
            options = taxonomy.option_slugs
            self.group_order = options.index(slug) if slug in options else len(options)

    def sort_key(self) -> tuple[bool, int, str]:
        """Grouping sort key: grouped before ungrouped, then option order, then slug."""
        return (self.group is None, self.group_order, self.group or "")

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping accepted by ContentLifecycle.save()."""
        data = dict(self.values)
        data["contenttype"] = self.contenttype.slug
        data["taxonomy"] = {key: list(slugs) for key, slugs in self.taxonomy.items()}
        data["relations"] = {key: list(ids) for key, ids in self.relations.items()}
        return data
