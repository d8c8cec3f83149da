"""Pydantic models for content type configuration.

These models represent the structure of config/contenttypes.yaml and
config/taxonomy.yaml. They are loaded once per process and never mutated.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from contentstore.core.models.base import TaxonomyBehavior
from contentstore.core.text import make_slug

# =============================================================================
# Declarations
# =============================================================================


class FieldDeclaration(BaseModel):
    """A single declared field of a content type."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str = Field(description="Field type, e.g. 'text', 'html', 'number', 'divider'")
    default: Any = Field(default=None, description="Default value for new records")
    uses: str | list[str] | None = Field(
        default=None, description="Source field(s) a 'slug' field is derived from"
    )
    label: str | None = None

    @property
    def uses_fields(self) -> list[str]:
        if self.uses is None:
            return []
        if isinstance(self.uses, str):
            return [self.uses]
        return list(self.uses)


class TaxonomyType(BaseModel):
    """A classification axis (tags, categories, chapters...)."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    singular_name: str | None = None
    slug: str = ""
    singular_slug: str = ""
    behaves_like: TaxonomyBehavior = TaxonomyBehavior.TAGS
    options: list[str] | dict[str, str] | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_slugs(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data.setdefault("name", data.get("key", ""))
            data.setdefault("singular_name", data["name"])
            data["slug"] = make_slug(data["name"])
            data["singular_slug"] = make_slug(data["singular_name"])
        return data

    @property
    def option_slugs(self) -> list[str]:
        """Declared option slugs, in configuration order."""
        if self.options is None:
            return []
        if isinstance(self.options, dict):
            return list(self.options)
        return list(self.options)

    def option_label(self, slug: str) -> str:
        """Display label for an option slug (the slug itself when undeclared)."""
        if isinstance(self.options, dict):
            return self.options.get(slug, slug)
        return slug


class ContentType(BaseModel):
    """A declared content type with its own table."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    singular_name: str
    slug: str = ""
    singular_slug: str = ""
    fields: dict[str, FieldDeclaration] = Field(default_factory=dict)
    taxonomy: list[str] = Field(default_factory=list)
    relations: list[str] = Field(
        default_factory=list,
        description="Relation field names; each names the target content type",
    )
    sort: str | None = Field(default=None, description="Default order, e.g. '-datecreated'")

    @model_validator(mode="before")
    @classmethod
    def _derive_slugs(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data.setdefault("name", data.get("key", ""))
            data.setdefault("singular_name", data["name"])
            data["slug"] = make_slug(data["name"])
            data["singular_slug"] = make_slug(data["singular_name"])
            # 'relations' is a mapping of target -> options in YAML
            relations = data.get("relations")
            if isinstance(relations, dict):
                data["relations"] = list(relations)
            if data.get("taxonomy") is None:
                data["taxonomy"] = []
            if data.get("fields") is None:
                data["fields"] = {}
        return data

    @property
    def field_names(self) -> list[str]:
        return list(self.fields)

    @property
    def relation_fields(self) -> list[str]:
        """Relation fields: the 'relations' list plus fields typed 'relation'."""
        names = list(self.relations)
        for name, declaration in self.fields.items():
            if declaration.type == "relation" and name not in names:
                names.append(name)
        return names

    def fields_of_type(self, *types: str) -> list[str]:
        return [name for name, decl in self.fields.items() if decl.type in types]


class ContentTypesConfig(BaseModel):
    """Complete, validated content type configuration."""

    model_config = ConfigDict(frozen=True)

    contenttypes: dict[str, ContentType] = Field(default_factory=dict)
    taxonomy: dict[str, TaxonomyType] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_taxonomy_references(self) -> ContentTypesConfig:
        for contenttype in self.contenttypes.values():
            for taxonomy_key in contenttype.taxonomy:
                if taxonomy_key not in self.taxonomy:
                    raise ValueError(
                        f"Content type '{contenttype.key}' uses undeclared taxonomy "
                        f"'{taxonomy_key}'"
                    )
        return self

    def get_content_type(self, slug: str | None) -> ContentType | None:
        """Find a content type by key, name or singular name.

        The lookup slugifies its input, so 'Entries', 'entries' and 'entry'
        all resolve to the same content type.
        """
        wanted = make_slug(slug)
        if not wanted:
            return None
        if wanted in self.contenttypes:
            return self.contenttypes[wanted]
        for contenttype in self.contenttypes.values():
            if wanted in (contenttype.slug, contenttype.singular_slug):
                return contenttype
        return None

    def get_taxonomy_types(self, contenttype: ContentType) -> dict[str, TaxonomyType]:
        """Taxonomy types used by a content type, keyed by taxonomy key."""
        return {key: self.taxonomy[key] for key in contenttype.taxonomy}

    def get_grouping_taxonomy(self, contenttype: ContentType) -> TaxonomyType | None:
        for taxonomy in self.get_taxonomy_types(contenttype).values():
            if taxonomy.behaves_like == TaxonomyBehavior.GROUPING:
                return taxonomy
        return None
