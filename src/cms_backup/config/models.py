"""Pydantic models for backup configuration."""

from pydantic import BaseModel, Field

from cms_backup.config.defaults import DEFAULT_OBJECT_KEY_TEMPLATE


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from backup.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "mysql"


class BackupConfig(BaseModel):
    """Complete configuration from backup.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    backup_dir: str | None = None
    object_key_template: str = DEFAULT_OBJECT_KEY_TEMPLATE
