"""Configuration loading for pg-differ."""

import tomllib
from pathlib import Path

from pg_differ.config.models import DatabaseProfile, DifferConfig, ReconnectionPolicy

DEFAULT_CONFIG_FILE = "differ.toml"


def load_differ_config(config_path: Path | None = None) -> DifferConfig:
    """Load differ configuration from TOML file.

    Args:
        config_path: Path to differ.toml (default: ./differ.toml)

    Returns:
        DifferConfig with all profiles and settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config values are invalid
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Differ config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with at least one [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    return DifferConfig(
        profiles=profiles,
        default_schema=data.get("default_schema", "public"),
        schema_folder=data.get("schema_folder"),
        force=data.get("force", False),
        reconnection=ReconnectionPolicy(**data.get("reconnection", {})),
        placeholders={k: str(v) for k, v in data.get("placeholders", {}).items()},
    )
