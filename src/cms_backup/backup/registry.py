"""Canonical table catalog and legacy name aliases.

The catalog is the fixed, ordered set of tables an archive can carry.
Export walks it in order and restore only ever writes to tables in it.
Everything that maps a historical spelling onto a current name (tables,
columns, ref types, config sections) lives in one frozen ``AliasTables``
value, ``ALIASES``, built once at import time.

Usage:
    from cms_backup.backup.registry import resolve_table_name, parse_backup_entry

    resolve_table_name("Sessions")          # "user_sessions"
    resolve_table_name("not_a_table")       # None
    parse_backup_entry("dump/posts.bson")   # ("posts", "bson")
"""

import posixpath
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

ARCHIVE_ROOT_DIR = "mx-space-go"
ARCHIVE_DB_DIR = f"{ARCHIVE_ROOT_DIR}/db"
MANIFEST_PATH = f"{ARCHIVE_ROOT_DIR}/manifest.json"
ARCHIVE_FORMAT = "mx-core-go-bson"
ARCHIVE_FORMAT_VERSION = 1

FORMAT_BSON = "bson"
FORMAT_JSON = "json"

BACKUP_TABLE_NAMES: tuple[str, ...] = (
    "users",
    "user_sessions",
    "api_tokens",
    "oauth2_tokens",
    "authn_credentials",
    "readers",
    "categories",
    "topics",
    "posts",
    "notes",
    "pages",
    "comments",
    "recentlies",
    "drafts",
    "draft_histories",
    "ai_summaries",
    "ai_deep_readings",
    "analyzes",
    "activities",
    "slug_trackers",
    "file_references",
    "webhooks",
    "webhook_events",
    "snippets",
    "projects",
    "links",
    "says",
    "subscribes",
    "meta_presets",
    "serverless_storages",
    "options",
)

BACKUP_TABLE_SET: frozenset[str] = frozenset(BACKUP_TABLE_NAMES)

# Entries that sit next to table dumps but never carry rows.
_METADATA_FILES = frozenset({"manifest.json", "prelude.json"})


@dataclass(frozen=True)
class AliasTables:
    """Read-only alias data shared by the whole process."""

    tables: Mapping[str, str]
    columns: Mapping[str, str]
    columns_by_table: Mapping[str, Mapping[str, str]]
    ref_types: Mapping[str, str]
    config_sections: Mapping[str, str]
    auto_increment_tables: frozenset[str]
    version_fields: frozenset[str]


def _frozen(data: dict[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(data))


ALIASES = AliasTables(
    tables=_frozen({
        "metapresets": "meta_presets",
        "sessions": "user_sessions",
        "serverlessstorages": "serverless_storages",
        "authns": "authn_credentials",
        "analyze_logs": "analyzes",
        "recently": "recentlies",
        "subscribers": "subscribes",
    }),
    columns=_frozen({
        "_id": "id",
        "created": "created_at",
        "modified": "updated_at",
        "createdat": "created_at",
        "updatedat": "updated_at",
        "userid": "user_id",
        "ipaddress": "ip",
        "useragent": "ua",
        "reftype": "ref_type",
        "refid": "ref_id",
        "ref": "ref_id",
        "parent": "parent_id",
        "targetid": "target_id",
        "commentsindex": "comments_index",
        "iswhispers": "is_whispers",
        "parentid": "parent_id",
        "readerid": "reader_id",
        "publicat": "public_at",
        "topicid": "topic_id",
        "categoryid": "category_id",
        "pinorder": "pin_order",
        "readcount": "read_count",
        "likecount": "like_count",
        "nid": "n_id",
    }),
    columns_by_table=MappingProxyType({
        "notes": _frozen({"password": "password_hash"}),
    }),
    ref_types=_frozen({
        "posts": "post",
        "post": "post",
        "notes": "note",
        "note": "note",
        "pages": "page",
        "page": "page",
        "recently": "recently",
        "recentlies": "recently",
    }),
    config_sections=_frozen({
        "seo": "seo",
        "url": "url",
        "mailoptions": "mail_options",
        "commentoptions": "comment_options",
        "backupoptions": "backup_options",
        "baidusearchoptions": "baidu_search_options",
        "algoliasearchoptions": "algolia_search_options",
        "adminextra": "admin_extra",
        "friendlinkoptions": "friend_link_options",
        "s3options": "s3_options",
        "imagebedoptions": "image_bed_options",
        "imagestorageoptions": "image_storage_options",
        "textoptions": "text_options",
        "bingsearchoptions": "bing_search_options",
        "meilisearchoptions": "meili_search_options",
        "featurelist": "feature_list",
        "barkoptions": "bark_options",
        "authsecurity": "auth_security",
        "ai": "ai",
        "oauth": "oauth",
        "thirdpartyserviceintegration": "third_party_service_integration",
    }),
    # options.id is auto-increment; a legacy document id would collide with it.
    auto_increment_tables=frozenset({"options"}),
    version_fields=frozenset({"__v"}),
)


def resolve_table_name(name: str) -> str | None:
    """Map an archive table name onto its canonical catalog entry.

    Lower-cases and trims *name*, applies the table alias map, then checks
    catalog membership.  Unknown names resolve to ``None`` so the caller
    can silently drop the entry.

    Examples:
        >>> resolve_table_name(" Posts ")
        'posts'
        >>> resolve_table_name("analyze_logs")
        'analyzes'
        >>> resolve_table_name("unknown") is None
        True
    """
    key = name.strip().lower()
    if not key:
        return None
    key = ALIASES.tables.get(key, key)
    if key not in BACKUP_TABLE_SET:
        return None
    return key


def parse_backup_entry(path: str) -> tuple[str, str] | None:
    """Split an archive entry path into ``(table, format)``.

    Only the basename matters, so dumps from any directory layout are
    accepted.  Manifest and metadata files, directories, and files with
    an extension other than ``.bson``/``.json`` return ``None``.
    """
    base = posixpath.basename(path.replace("\\", "/")).strip().lower()
    if not base or base in _METADATA_FILES or base.endswith(".metadata.json"):
        return None

    for fmt in (FORMAT_BSON, FORMAT_JSON):
        suffix = f".{fmt}"
        if base.endswith(suffix):
            table = base[: -len(suffix)]
            if not table:
                return None
            return table, fmt
    return None


def table_entry_path(table: str) -> str:
    """Conventional archive path of a table dump written by export."""
    return f"{ARCHIVE_DB_DIR}/{table}.{FORMAT_BSON}"
