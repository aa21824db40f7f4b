"""Configuration management: profiles, TOML loading, settings and defaults.

Usage:
    >>> from cms_backup.config import load_backup_config, get_settings, default_app_config
"""

from cms_backup.config.defaults import (
    DEFAULT_APP_CONFIG,
    DEFAULT_OBJECT_KEY_TEMPLATE,
    UNIFIED_CONFIG_OPTION,
    default_app_config,
)
from cms_backup.config.loader import BackupSettings, get_settings, load_backup_config
from cms_backup.config.models import BackupConfig, DatabaseProfile

__all__ = [
    "DEFAULT_APP_CONFIG",
    "DEFAULT_OBJECT_KEY_TEMPLATE",
    "UNIFIED_CONFIG_OPTION",
    "default_app_config",
    "BackupSettings",
    "get_settings",
    "load_backup_config",
    "BackupConfig",
    "DatabaseProfile",
]
