"""Row normalization for restore.

Decoded archive rows come from several generations of exporters: camelCase
document-database field names, epoch-millisecond timestamps, MySQL zero
dates, nested objects where the current schema stores JSON text, and so on.
``normalize_row`` absorbs all of that drift against the *current* target
schema:

1. Field names resolve to column names (per-table alias, global alias,
   camelCase to snake_case, verbatim lowercase).  Version markers and the
   legacy document id on auto-increment tables are dropped.
2. The composite ``count`` field is split into ``read_count`` and
   ``like_count`` when those columns exist.
3. Fields whose column is not in the target schema are dropped.
4. Values are coerced by column category (time, json, text, opaque).
5. Reference-type columns are canonicalized (``"Posts"`` -> ``"post"``).
6. ``updated_at`` is always NULL so the database re-derives it.

Usage:
    from cms_backup.backup.normalizer import normalize_row

    row = normalize_row("comments", {"refType": "Posts", "created": 1600000000000}, columns)
    # {"ref_type": "post", "created_at": datetime(2020, 9, 13, 12, 26, 40)}
"""

import json
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping

from cms_backup.backup.columns import ColumnCategory
from cms_backup.backup.registry import ALIASES

MODIFIED_COLUMN = "updated_at"
COMPOSITE_COUNT_FIELD = "count"

# (column, accepted sub-keys) pairs carried by the composite count field
_COUNT_SPLITS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("read_count", ("read", "reads")),
    ("like_count", ("like", "likes")),
)

_REF_TYPE_COLUMNS = frozenset({
    ("comments", "ref_type"),
    ("slug_trackers", "type"),
})

# Empirical thresholds observed in legacy exports.  Values at or above
# 1e11 are epoch milliseconds (>= 1973-03-03), values at or above 1e8 are
# epoch seconds (>= 1973-03-03); anything smaller is not a timestamp.
EPOCH_MILLIS_THRESHOLD = 1e11
EPOCH_SECONDS_THRESHOLD = 1e8

_EPOCH = datetime(1970, 1, 1)

_TIME_LAYOUTS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)

# strptime's %f takes at most 6 digits; RFC3339Nano carries up to 9
_LONG_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2}\.\d{6})\d+")

_ZERO_TIME_STRINGS = frozenset({"", "0", "null", "0000-00-00", "0000-00-00 00:00:00"})


class _Drop:
    """Marker for a value that must not be written."""

    def __repr__(self) -> str:
        return "DROP"


DROP = _Drop()


# ------------------------------------------------------------------
# Names
# ------------------------------------------------------------------


def camel_to_snake(raw: str) -> str:
    """Convert camelCase / PascalCase / kebab-case to snake_case.

    Examples:
        >>> camel_to_snake("commentsIndex")
        'comments_index'
        >>> camel_to_snake("HTMLParser")
        'html_parser'
        >>> camel_to_snake("third-party  service")
        'third_party_service'
    """
    raw = raw.strip()
    out: list[str] = []
    last_underscore = False

    for i, ch in enumerate(raw):
        if ch in "-_ ":
            if not last_underscore and out:
                out.append("_")
                last_underscore = True
            continue

        if ch.isupper():
            if i > 0 and not last_underscore:
                prev = raw[i - 1]
                next_lower = i + 1 < len(raw) and raw[i + 1].islower()
                if prev.islower() or prev.isdigit() or next_lower:
                    out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch.lower())
        last_underscore = False

    snake = "".join(out).strip("_")
    while "__" in snake:
        snake = snake.replace("__", "_")
    return snake


def normalize_column_name(table: str, name: str) -> str | None:
    """Resolve an archived field name to a column name.

    Returns ``None`` for fields that are never imported (version markers,
    the legacy document id of auto-increment tables).
    """
    table = table.strip().lower()
    raw = name.strip()
    lower = raw.lower()
    if not lower or lower in ALIASES.version_fields:
        return None
    if lower == "_id" and table in ALIASES.auto_increment_tables:
        return None

    snake = camel_to_snake(raw)
    candidates = (lower, snake)

    table_aliases = ALIASES.columns_by_table.get(table)
    if table_aliases:
        for key in candidates:
            if key in table_aliases:
                return table_aliases[key]
    for key in candidates:
        if key in ALIASES.columns:
            return ALIASES.columns[key]
    return snake or lower


def normalize_ref_type(raw: str) -> str:
    key = raw.strip().lower()
    return ALIASES.ref_types.get(key, key)


# ------------------------------------------------------------------
# Time coercion
# ------------------------------------------------------------------


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def epoch_to_datetime(value: float) -> datetime | None:
    """Interpret a number as epoch milliseconds or seconds.

    Uses the magnitude heuristic described by ``EPOCH_MILLIS_THRESHOLD``
    and ``EPOCH_SECONDS_THRESHOLD``; returns ``None`` when the number is
    too small to be a timestamp or out of range.
    """
    if math.isnan(value) or math.isinf(value):
        return None
    magnitude = abs(value)
    try:
        if magnitude >= EPOCH_MILLIS_THRESHOLD:
            return _EPOCH + timedelta(milliseconds=int(value))
        if magnitude >= EPOCH_SECONDS_THRESHOLD:
            return _EPOCH + timedelta(seconds=int(value))
    except OverflowError:
        return None
    return None


def parse_time_string(raw: str) -> datetime | None:
    """Parse a timestamp string against the supported layouts, in order."""
    text = raw.strip()
    if not text:
        return None
    text = _LONG_FRACTION.sub(r"\1", text)
    for layout in _TIME_LAYOUTS:
        try:
            parsed = datetime.strptime(text, layout)
        except ValueError:
            continue
        return _to_naive_utc(parsed)
    return None


def coerce_time(value: Any) -> datetime | None:
    """Coerce a loosely-typed value into a naive UTC datetime, or ``None``."""
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return epoch_to_datetime(float(value))
    if isinstance(value, str):
        parsed = parse_time_string(value)
        if parsed is not None:
            return parsed
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return epoch_to_datetime(number)
    return None


def is_zero_like_time(value: Any) -> bool:
    """Whether *value* encodes "no timestamp" in some legacy dialect."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        if value == 0:
            return True
        # out-of-range dates (year 0 zero dates) decode as raw epoch millis
        return abs(value) >= EPOCH_SECONDS_THRESHOLD and epoch_to_datetime(float(value)) is None
    if isinstance(value, str):
        return value.strip().lower() in _ZERO_TIME_STRINGS
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) == datetime.min
    return False


# ------------------------------------------------------------------
# Value coercion
# ------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _to_json_text(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=_json_default)


def coerce_value(table: str, column: str, value: Any, category: ColumnCategory) -> Any:
    """Coerce one value for *column*; returns ``DROP`` to skip the field."""
    if value is None:
        return None

    if category is ColumnCategory.TIME:
        if column == MODIFIED_COLUMN:
            return None
        parsed = coerce_time(value)
        if parsed is not None:
            return parsed
        if is_zero_like_time(value):
            return None
        return DROP

    textual = category in (ColumnCategory.JSON, ColumnCategory.TEXT)
    if isinstance(value, (dict, list)):
        if not textual:
            return DROP
        coerced: Any = _to_json_text(value)
    elif isinstance(value, bytes):
        coerced = value.decode("utf-8", errors="replace") if textual else value
    else:
        coerced = value

    if (table, column) in _REF_TYPE_COLUMNS and isinstance(coerced, str):
        coerced = normalize_ref_type(coerced)
    return coerced


def _merge_counts(
    value: Any, result: dict[str, Any], columns: Mapping[str, ColumnCategory]
) -> None:
    if not isinstance(value, dict):
        return
    for column, keys in _COUNT_SPLITS:
        if column not in columns:
            continue
        for key in keys:
            if key in value:
                result[column] = value[key]
                break


def normalize_row(
    table: str,
    row: Mapping[str, Any],
    columns: Mapping[str, ColumnCategory],
) -> dict[str, Any] | None:
    """Normalize one decoded row against the target table's columns.

    Args:
        table: Canonical table name.
        row: Decoded archive row.
        columns: Column categories from ``load_columns``.

    Returns:
        Dict ready for insertion, or ``None`` when nothing survives.
    """
    if not row:
        return None

    result: dict[str, Any] = {}
    for key, value in row.items():
        column = normalize_column_name(table, str(key))
        if column is None:
            continue
        if column == COMPOSITE_COUNT_FIELD:
            _merge_counts(value, result, columns)
            continue

        category = columns.get(column)
        if category is None:
            continue

        coerced = coerce_value(table, column, value, category)
        if coerced is DROP:
            continue
        result[column] = coerced

    # also covers targets where updated_at is not a time-like column
    if MODIFIED_COLUMN in result:
        result[MODIFIED_COLUMN] = None

    return result or None
