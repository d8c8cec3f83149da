"""Content Store.

Schema-aware persistence for configurable content types.

Example:
    from contentstore import ContentStorage

    storage = ContentStorage(manager, config)
    await storage.repair_tables()
    records, pager = await storage.get_content("entries", {"status": "published"})
"""

__version__ = "0.1.0"

from contentstore.core.models.base import Result
from contentstore.storage.repository import ContentStorage

__all__ = [
    "ContentStorage",
    "Result",
    "__version__",
]
