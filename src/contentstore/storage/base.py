"""SQLAlchemy metadata configuration.

Tables of the content store are not declarative models: their column sets
depend on the loaded content type configuration. Every ContentSchema builds
its own MetaData from new_metadata() so constraint names stay consistent
across PostgreSQL, MySQL and SQLite.
"""

from sqlalchemy import MetaData

# Naming convention for constraints
# This ensures consistent constraint names across PostgreSQL, MySQL and SQLite
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def new_metadata() -> MetaData:
    """Create a MetaData carrying the shared naming convention."""
    return MetaData(naming_convention=convention)
