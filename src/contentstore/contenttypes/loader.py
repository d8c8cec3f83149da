"""Loader for content type configuration.

Loads and parses config/contenttypes.yaml and config/taxonomy.yaml into a
ContentTypesConfig. Parsing the files is the only responsibility here; the
storage layer receives an already-validated configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from contentstore.contenttypes.models import ContentTypesConfig
from contentstore.core.logging import get_logger
from contentstore.core.models.base import Result

logger = get_logger(__name__)

CONTENTTYPES_FILENAME = "contenttypes.yaml"
TAXONOMY_FILENAME = "taxonomy.yaml"


def load_yaml(path: Path, required: bool = True) -> Result[dict[str, Any]]:
    """Load raw YAML data from a configuration file.

    Args:
        path: Path to the YAML file
        required: When False, a missing or empty file yields an empty mapping

    Returns:
        Result containing the parsed YAML data as a dictionary
    """
    if not path.exists():
        if required:
            return Result.fail(f"Configuration file not found: {path}")
        return Result.ok({})

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            if required:
                return Result.fail(f"Configuration file is empty: {path}")
            return Result.ok({})

        if not isinstance(data, dict):
            return Result.fail(f"Configuration file must contain a YAML mapping: {path}")

        return Result.ok(data)

    except yaml.YAMLError as e:
        return Result.fail(f"Failed to parse YAML in {path}: {e}")
    except OSError as e:
        return Result.fail(f"Failed to read configuration file {path}: {e}")


def parse_content_config(
    contenttypes: dict[str, Any],
    taxonomy: dict[str, Any] | None = None,
    source_name: str = "unknown",
) -> Result[ContentTypesConfig]:
    """Parse raw YAML data into a ContentTypesConfig.

    Each top-level key becomes the `key` of its content type or taxonomy.

    Args:
        contenttypes: Raw contenttypes.yaml data
        taxonomy: Raw taxonomy.yaml data
        source_name: Name of the source (for error messages)

    Returns:
        Result containing the parsed ContentTypesConfig
    """
    try:
        config = ContentTypesConfig(
            contenttypes={
                key: {"key": key, **(values or {})} for key, values in contenttypes.items()
            },
            taxonomy={key: {"key": key, **(values or {})} for key, values in (taxonomy or {}).items()},
        )
        return Result.ok(config)

    except ValidationError as e:
        error_details = []
        for error in e.errors():
            location = " -> ".join(str(loc) for loc in error["loc"])
            error_details.append(f"{location}: {error['msg']}")

        error_msg = f"Validation errors in {source_name}:\n" + "\n".join(error_details)
        return Result.fail(error_msg)

    except (TypeError, AttributeError) as e:
        return Result.fail(f"Malformed configuration in {source_name}: {e}")


def load_content_config(config_dir: str | Path) -> Result[ContentTypesConfig]:
    """Load the content type configuration from a directory.

    Reads contenttypes.yaml (required) and taxonomy.yaml (optional).

    Args:
        config_dir: Directory holding the configuration files

    Returns:
        Result containing the loaded ContentTypesConfig

    Examples:
        >>> result = load_content_config("config")
        >>> if result.success:
        ...     config = result.unwrap()
        ...     print(sorted(config.contenttypes))
    """
    directory = Path(config_dir)

    contenttypes_result = load_yaml(directory / CONTENTTYPES_FILENAME)
    if not contenttypes_result.success:
        return Result.fail(contenttypes_result.error or "Unknown error loading YAML")

    taxonomy_result = load_yaml(directory / TAXONOMY_FILENAME, required=False)
    if not taxonomy_result.success:
        return Result.fail(taxonomy_result.error or "Unknown error loading YAML")

    result = parse_content_config(
        contenttypes_result.unwrap(),
        taxonomy_result.value,
        source_name=str(directory),
    )
    if result.success:
        config = result.unwrap()
        logger.debug(
            "content_config_loaded",
            path=str(directory),
            contenttypes=len(config.contenttypes),
            taxonomy=len(config.taxonomy),
        )
    return result
