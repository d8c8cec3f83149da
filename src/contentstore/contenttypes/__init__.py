"""Content type configuration: declared types, fields and taxonomies."""

from contentstore.contenttypes.loader import (
    load_content_config,
    load_yaml,
    parse_content_config,
)
from contentstore.contenttypes.models import (
    ContentType,
    ContentTypesConfig,
    FieldDeclaration,
    TaxonomyType,
)

__all__ = [
    # Models
    "ContentType",
    "ContentTypesConfig",
    "FieldDeclaration",
    "TaxonomyType",
    # Loading
    "load_content_config",
    "load_yaml",
    "parse_content_config",
]
