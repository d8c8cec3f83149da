"""Core models: ONLY truly shared base types.

Domain models live in their respective packages:
- contenttypes/models.py → Declared content types, fields and taxonomies
- storage/content.py     → Content records returned by the storage layer
- storage/reconciler.py  → Reconciliation change reports

Import domain models directly from their packages:
    from contentstore.contenttypes.models import ContentType, ContentTypesConfig
    from contentstore.storage.content import Content
"""

from contentstore.core.models.base import (
    ChangeKind,
    ContentStatus,
    Result,
    TaxonomyBehavior,
    utcnow,
)

__all__ = [
    "Result",
    "ContentStatus",
    "ChangeKind",
    "TaxonomyBehavior",
    "utcnow",
]
