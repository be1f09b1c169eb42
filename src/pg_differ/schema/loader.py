"""Load declarative schema files.

A schema file is a JSON document named ``*.schema.json``:

    {"type": "table", "properties": {"name": "users", "columns": [...]}}

``${name}`` placeholders in the raw text are replaced before parsing.
"""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA_FILE_PATTERN = "*.schema.json"


def substitute_placeholders(text: str, placeholders: dict[str, str] | None) -> str:
    """Replace every ``${name}`` with its value.

    Example:
        >>> substitute_placeholders('{"name": "${schema}.users"}', {"schema": "app"})
        '{"name": "app.users"}'
    """
    for name, value in (placeholders or {}).items():
        text = text.replace("${" + name + "}", str(value))
    return text


def load_schema_file(path: Path, placeholders: dict[str, str] | None = None) -> dict[str, Any]:
    """Read one schema file.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
    """
    text = path.read_text(encoding="utf-8")
    return json.loads(substitute_placeholders(text, placeholders))


def load_schemas(path: str | Path, placeholders: dict[str, str] | None = None) -> list[dict[str, Any]]:
    """Read every ``*.schema.json`` file in *path*, sorted by file name.

    Args:
        path: Folder with schema files
        placeholders: Values for ``${name}`` placeholders

    Returns:
        List of ``{"type": ..., "properties": ...}`` documents

    Raises:
        FileNotFoundError: If *path* is not a directory
    """
    folder = Path(path)
    if not folder.is_dir():
        raise FileNotFoundError(f"Schema folder not found: {folder}")

    schemas = []
    for file in sorted(folder.glob(SCHEMA_FILE_PATTERN)):
        logger.debug(f"Loading schema file {file.name}")
        schemas.append(load_schema_file(file, placeholders))
    return schemas
