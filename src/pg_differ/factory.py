"""Database client factory.

Resolves a profile from differ.toml, builds the connection URL and
creates the ``AsyncPostgresClient``.  Also provides
``connect_with_retry``, the only place connection retries happen.
"""

import asyncio
import logging
import os
from pathlib import Path
from urllib.parse import quote

from pg_differ.adapters.base import DatabaseClient
from pg_differ.adapters.postgres import AsyncPostgresClient
from pg_differ.config.loader import load_differ_config
from pg_differ.config.models import DatabaseProfile, DifferConfig, ReconnectionPolicy
from pg_differ.errors import ProfileNotFoundError

logger = logging.getLogger(__name__)


# ============================================================================
# Profile Selection
# ============================================================================


def get_active_profile_name(config: DifferConfig, env_prefix: str = "") -> str:
    """Get active profile name from env var or config.

    Priority:
    1. ``{env_prefix}DIFFER_PROFILE`` env var
    2. The only profile in differ.toml
    3. Raise ProfileNotFoundError

    Args:
        config: Loaded differ configuration
        env_prefix: Prefix for the environment variable name

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile can be chosen
    """
    env_profile = os.environ.get(f"{env_prefix}DIFFER_PROFILE")
    if env_profile:
        return env_profile

    if len(config.profiles) == 1:
        return next(iter(config.profiles))

    available = ", ".join(config.profiles) or "(none)"
    raise ProfileNotFoundError(
        "No database profile selected.\n"
        f"Set {env_prefix}DIFFER_PROFILE=<name> or pass --profile.\n"
        f"Available profiles: {available}"
    )


def get_profile(
    config: DifferConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> tuple[str, DatabaseProfile]:
    """Get profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile is selected or it is not in the config
    """
    if profile_name is None:
        profile_name = get_active_profile_name(config, env_prefix)

    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in differ.toml.\n"
            f"Available profiles: {', '.join(config.profiles) or '(none)'}"
        )
    return profile_name, config.profiles[profile_name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Client Factory
# ============================================================================


def get_client(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
    config_path: Path | None = None,
    **engine_kwargs,
) -> AsyncPostgresClient:
    """Create a client from an explicit URL or a differ.toml profile.

    Args:
        profile_name: Profile to use (default: env var or the only profile)
        env_prefix: Prefix for the profile environment variable
        database_url: Explicit URL; skips config loading entirely
        config_path: Path to differ.toml
        **engine_kwargs: Forwarded to the engine

    Returns:
        An unconnected AsyncPostgresClient

    Example:
        >>> client = get_client(database_url="postgresql://localhost/app")
    """
    if database_url is None:
        config = load_differ_config(config_path)
        _, profile = get_profile(config, profile_name, env_prefix)
        database_url = resolve_url(profile)
    return AsyncPostgresClient(database_url, **engine_kwargs)


async def connect_with_retry(
    client: DatabaseClient,
    policy: ReconnectionPolicy | None = None,
) -> None:
    """Call ``client.connect()``, retrying per *policy*.

    ``policy=None`` means a single attempt.  With ``attempts=None`` the
    retries never stop.  The last connection error is re-raised.
    """
    attempts = 1 if policy is None else policy.attempts
    delay = 0.0 if policy is None else policy.delay

    attempt = 0
    while True:
        attempt += 1
        try:
            await client.connect()
            return
        except Exception as e:
            if attempts is not None and attempt >= attempts:
                raise
            logger.warning(f"Connection attempt {attempt} failed: {e}. Retrying in {delay}s")
            await asyncio.sleep(delay)
