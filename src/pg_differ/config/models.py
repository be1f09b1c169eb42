"""Pydantic models for differ configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from differ.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class ReconnectionPolicy(BaseModel):
    """How often and how fast to retry establishing the connection.

    ``attempts=None`` retries forever.
    """

    attempts: int | None = Field(default=None, ge=1)
    delay: float = Field(default=5.0, ge=0)


class SyncOptions(BaseModel):
    """Options for one sync call."""

    transaction: bool = True


class DifferConfig(BaseModel):
    """Complete differ configuration from differ.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    default_schema: str = "public"
    schema_folder: str | None = None
    force: bool = False
    reconnection: ReconnectionPolicy = Field(default_factory=ReconnectionPolicy)
    placeholders: dict[str, str] = Field(default_factory=dict)
