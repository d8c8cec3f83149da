"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_config_dir() -> Path:
    """Find the config directory by walking up from the package location.

    Looks for a 'config/' directory next to the project root.
    Falls back to relative Path("config") if not found.
    """
    # Project root is 4 levels up: config.py -> core/ -> contentstore/ -> src/ -> root/
    package_dir = Path(__file__).resolve().parent.parent.parent.parent
    candidate = package_dir / "config"
    if candidate.is_dir():
        return candidate

    # Fallback: relative path (works when CWD is project root)
    return Path("config")


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: CONTENTSTORE_
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTENTSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (SQLAlchemy)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./contentstore.db",
        description=(
            "SQLAlchemy database URL. Use postgresql+asyncpg://... or "
            "mysql+aiomysql://... for production"
        ),
    )
    table_prefix: str = Field(
        default="cs_",
        description="Prefix of every table managed by the content store",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL statements (debugging)")

    # Configuration paths
    config_path: Path = Field(
        default_factory=_find_config_dir,
        description="Directory holding contenttypes.yaml and taxonomy.yaml",
    )

    # Content
    default_page_size: int = Field(
        default=100,
        description="Page size used when a query does not pass 'limit'",
    )
    cascade_delete: bool = Field(
        default=False,
        description="Delete taxonomy and relation rows together with a content record",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # 'json' or 'console'


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
