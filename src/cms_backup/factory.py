"""Database adapter factory.

Supports two configuration modes:
1. Profile mode (backup.toml): named database profiles, selected with
   ``--profile`` or the ``DB_PROFILE`` environment variable
2. URL mode (``DATABASE_URL`` in the environment or .env): a single
   database connection, used when no profile is selected
"""

from pathlib import Path
from urllib.parse import quote

from cms_backup.adapters import AsyncSqlAdapter, DatabaseClient
from cms_backup.config import DatabaseProfile, get_settings, load_backup_config


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted

    Example:
        >>> resolve_url(DatabaseProfile(url="mysql://root:[YOUR-PASSWORD]@db/blog", db_password="p@ss"))
        'mysql://root:p%40ss@db/blog'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_active_profile_name(profile_name: str | None = None) -> str:
    """Get active profile name from an explicit argument or the environment.

    Priority:
    1. ``profile_name`` argument (CLI ``--profile``)
    2. ``DB_PROFILE`` env var
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    if profile_name:
        return profile_name

    env_profile = get_settings().db_profile
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        "Either:\n"
        "  1. Pass --profile <name> or set DB_PROFILE=<name> (profiles live in backup.toml)\n"
        "  2. Set DATABASE_URL"
    )


def get_adapter(
    profile_name: str | None = None,
    config_path: Path | None = None,
) -> DatabaseClient:
    """Create a database adapter from configuration.

    A selected profile always wins; ``DATABASE_URL`` is only consulted when
    no profile is selected.

    Args:
        profile_name: Profile name from backup.toml. If None, uses the
            ``DB_PROFILE`` env var.
        config_path: Path to backup.toml (default: ./backup.toml)

    Returns:
        DatabaseClient instance (AsyncSqlAdapter)

    Raises:
        ProfileNotFoundError: If no database configuration found, or the
            selected profile is not defined
        FileNotFoundError: If a profile is selected but backup.toml is missing

    Example:
        >>> adapter = get_adapter("local")
        >>> rows = await adapter.select("posts", "id, title")
    """
    try:
        name = get_active_profile_name(profile_name)
    except ProfileNotFoundError:
        database_url = get_settings().database_url
        if database_url:
            return AsyncSqlAdapter(database_url)
        raise

    config = load_backup_config(config_path)
    if name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found. Available: {available}"
        )

    return AsyncSqlAdapter(resolve_url(config.profiles[name]))
