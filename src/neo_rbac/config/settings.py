"""
Configuration management for the neo-rbac authorization engine.

Settings are read from environment variables prefixed with ``NEO_RBAC_``
(and an optional ``.env`` file). Catalog data is code, not configuration.
"""
import re
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import CacheTTL, DatabaseDefaults, HierarchyLevels


class RbacSettings(BaseSettings):
    """Runtime settings for the authorization engine and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="NEO_RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database Configuration
    database_url: Optional[str] = Field(default=None, description="PostgreSQL DSN for the role store")
    db_schema: str = Field(default=DatabaseDefaults.SCHEMA)
    db_pool_min_size: int = Field(default=2, ge=1)
    db_pool_max_size: int = Field(default=10, ge=1)

    # Redis Cache Configuration
    redis_url: Optional[str] = Field(default=None)
    cache_enabled: bool = Field(default=False)
    cache_ttl_seconds: int = Field(
        default=CacheTTL.ASSIGNMENTS_DEFAULT,
        ge=1,
        le=CacheTTL.ASSIGNMENTS_MAX,
        description="Assignment cache horizon; seconds, not minutes",
    )
    cache_key_prefix: str = Field(default="neo_rbac")

    # Engine behaviour
    cleanup_batch_size: int = Field(default=DatabaseDefaults.CLEANUP_BATCH_SIZE, ge=1)
    audit_decisions: bool = Field(default=True)
    audit_timeout_seconds: float = Field(default=2.0, gt=0)
    hierarchy_min_movable_level: int = Field(default=HierarchyLevels.MIN_MOVABLE, ge=1)
    hierarchy_max_level: int = Field(default=HierarchyLevels.MAX, ge=1)

    @field_validator("db_schema")
    @classmethod
    def validate_db_schema(cls, value: str) -> str:
        """Schema names are interpolated into SQL and must be plain identifiers."""
        if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]{0,62}$", value):
            raise ValueError(f"Invalid schema name: {value}")
        return value

    @field_validator("hierarchy_max_level")
    @classmethod
    def validate_hierarchy_range(cls, value: int, info) -> int:
        min_level = info.data.get("hierarchy_min_movable_level", HierarchyLevels.MIN_MOVABLE)
        if value < min_level:
            raise ValueError(
                f"hierarchy_max_level ({value}) must be >= hierarchy_min_movable_level ({min_level})"
            )
        return value


@lru_cache()
def get_settings() -> RbacSettings:
    """Get cached settings instance."""
    return RbacSettings()
