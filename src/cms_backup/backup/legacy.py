"""Post-restore upgrades for archives from older application generations.

Two passes run inside the restore transaction after every table has been
loaded:

- ``migrate_legacy_options`` folds per-section option rows
  (``mailOptions``, ``seo``, ...) into the single unified ``configs`` row.
- ``import_legacy_templates`` copies standalone email template files from
  the archive into option rows.

Legacy option rows themselves are left in place.
"""

import json
import logging
import math
import posixpath
import re
import zipfile
import zlib
from typing import Any

from cms_backup.adapters.base import DatabaseTransaction
from cms_backup.backup.normalizer import camel_to_snake
from cms_backup.backup.registry import ALIASES
from cms_backup.config.defaults import UNIFIED_CONFIG_OPTION, default_app_config

logger = logging.getLogger(__name__)

OPTIONS_TABLE = "options"

LEGACY_TEMPLATE_DIR = "backup_data/assets/email-template/"
LEGACY_TEMPLATE_OPTIONS: dict[str, str] = {
    "owner.template.ejs": "email_template_owner",
    "guest.template.ejs": "email_template_guest",
    "newsletter.template.ejs": "email_template_newsletter",
}

_INTEGER = re.compile(r"[+-]?[0-9]+")
_BOOLEANS = {"true": True, "t": True, "false": False, "f": False}


# ============================================================================
# Option value helpers
# ============================================================================


def map_legacy_option_to_section(name: str) -> str | None:
    """Map a legacy option name onto a unified config section.

    Tries the snake_case form first, then the same form without
    underscores.

    Examples:
        >>> map_legacy_option_to_section("mailOptions")
        'mail_options'
        >>> map_legacy_option_to_section("SEO")
        'seo'
        >>> map_legacy_option_to_section("email_template_owner") is None
        True
    """
    trimmed = (name or "").strip()
    if not trimmed:
        return None
    snake = camel_to_snake(trimmed).lower()
    section = ALIASES.config_sections.get(snake)
    if section is None:
        section = ALIASES.config_sections.get(snake.replace("_", ""))
    return section


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_legacy_option_value(raw: str | None) -> Any:
    """Parse a stored option value.

    Tried in order: JSON, integer, float, boolean (``true/false/t/f``).
    Anything else is returned as the trimmed string; an empty value stays
    ``""``.

    Examples:
        >>> parse_legacy_option_value('{"enable": true}')
        {'enable': True}
        >>> parse_legacy_option_value("+42")
        42
        >>> parse_legacy_option_value("T")
        True
        >>> parse_legacy_option_value(" hello ")
        'hello'
    """
    s = (raw or "").strip()
    if not s:
        return ""

    try:
        return json.loads(s, parse_constant=_reject_constant)
    except ValueError:
        pass

    if _INTEGER.fullmatch(s):
        return int(s)

    if "_" not in s:
        try:
            number = float(s)
        except ValueError:
            pass
        else:
            if math.isfinite(number):
                return number

    lowered = s.lower()
    if lowered in _BOOLEANS:
        return _BOOLEANS[lowered]
    return s


def normalize_legacy_option_value(value: Any) -> Any:
    """Rewrite every mapping key to snake_case, recursively.

    Keys that normalize to an empty string are dropped.
    """
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for key, item in value.items():
            normalized_key = camel_to_snake(str(key).strip()).lower()
            if not normalized_key:
                continue
            out[normalized_key] = normalize_legacy_option_value(item)
        return out
    if isinstance(value, list):
        return [normalize_legacy_option_value(item) for item in value]
    return value


def _dump_config(config: dict[str, Any]) -> str:
    return json.dumps(config, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


# ============================================================================
# Legacy config migration
# ============================================================================


async def migrate_legacy_options(tx: DatabaseTransaction) -> list[str]:
    """Fold legacy per-section option rows into the unified ``configs`` row.

    Rows are visited in lexicographic order of their name; when two rows
    map to the same section the later one replaces the whole section.
    The result starts from the defaults, takes the existing ``configs``
    object's top-level keys over them, then each migrated section.

    Nothing is written when no row maps to a section.

    Returns:
        Names of the legacy option rows that were migrated.
    """
    rows = await tx.select(OPTIONS_TABLE, "name, value")
    if not rows:
        return []

    sections: dict[str, Any] = {}
    migrated: list[str] = []
    for row in sorted(rows, key=lambda r: str(r.get("name") or "")):
        name = str(row.get("name") or "")
        section = map_legacy_option_to_section(name)
        if section is None:
            continue
        sections[section] = normalize_legacy_option_value(
            parse_legacy_option_value(row.get("value"))
        )
        migrated.append(name)

    if not sections:
        return []

    merged = default_app_config()

    existing = await tx.select(OPTIONS_TABLE, "name, value", {"name": UNIFIED_CONFIG_OPTION})
    if existing:
        try:
            current = json.loads(existing[0].get("value") or "")
        except ValueError:
            current = None
        if isinstance(current, dict):
            merged.update(current)
        else:
            logger.warning("Ignoring unreadable %r option during legacy migration", UNIFIED_CONFIG_OPTION)

    merged.update(sections)

    await tx.delete(OPTIONS_TABLE, {"name": UNIFIED_CONFIG_OPTION})
    await tx.insert(OPTIONS_TABLE, {"name": UNIFIED_CONFIG_OPTION, "value": _dump_config(merged)})

    logger.info(
        "Migrated %d legacy option row(s) into %r: %s",
        len(migrated), UNIFIED_CONFIG_OPTION, ", ".join(sorted(sections)),
    )
    return migrated


# ============================================================================
# Legacy template assets
# ============================================================================


def find_legacy_templates(archive: zipfile.ZipFile) -> list[tuple[zipfile.ZipInfo, str]]:
    """List template files in *archive* with the option each one fills.

    Paths are matched case-insensitively with backslashes treated as
    separators.
    """
    found: list[tuple[zipfile.ZipInfo, str]] = []
    for info in archive.infolist():
        normalized = info.filename.replace("\\", "/").lower()
        if not normalized.startswith(LEGACY_TEMPLATE_DIR):
            continue
        option = LEGACY_TEMPLATE_OPTIONS.get(posixpath.basename(normalized))
        if option is not None:
            found.append((info, option))
    return found


async def import_legacy_templates(tx: DatabaseTransaction, archive: zipfile.ZipFile) -> list[str]:
    """Copy legacy email template files into their option rows.

    Each template's trimmed content replaces any existing row of the same
    name.  Unreadable or empty files are skipped.

    Returns:
        Option names that were written.
    """
    imported: list[str] = []
    for info, option in find_legacy_templates(archive):
        try:
            content = archive.read(info).decode("utf-8", errors="replace").strip()
        except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError, RuntimeError) as e:
            logger.warning("Skipping unreadable template %s: %s", info.filename, e)
            continue
        if not content:
            logger.warning("Skipping empty template %s", info.filename)
            continue

        await tx.delete(OPTIONS_TABLE, {"name": option})
        await tx.insert(OPTIONS_TABLE, {"name": option, "value": content})
        imported.append(option)

    if imported:
        logger.info("Imported legacy templates: %s", ", ".join(imported))
    return imported
