"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from pg_differ.config import load_differ_config, DifferConfig, DatabaseProfile
"""

from pg_differ.config.loader import load_differ_config
from pg_differ.config.models import DatabaseProfile, DifferConfig, ReconnectionPolicy, SyncOptions

__all__ = [
    "load_differ_config",
    "DatabaseProfile",
    "DifferConfig",
    "ReconnectionPolicy",
    "SyncOptions",
]
