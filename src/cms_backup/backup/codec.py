"""Row codec for table dumps.

Two wire formats are understood:

* ``bson`` (primary): a flat concatenation of BSON documents.  Every
  document starts with its own little-endian int32 total length, so the
  stream is decoded by walking length prefixes; there is no outer array.
* ``json`` (legacy fallback): a JSON array of row objects.

Export only ever writes ``bson``.  Decoded values are passed through
``normalize_document_value`` so that nothing downstream ever sees a
``bson`` runtime type.

Usage:
    from cms_backup.backup.codec import encode_rows, decode_rows

    payload = encode_rows([{"id": 1, "title": "hello"}])
    rows = decode_rows(payload, "bson")
"""

import json
import struct
import uuid
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

import bson
from bson import (
    Code,
    DBRef,
    Decimal128,
    MaxKey,
    MinKey,
    ObjectId,
    Regex,
    Timestamp,
)
from bson.codec_options import CodecOptions, DatetimeConversion
from bson.datetime_ms import DatetimeMS
from bson.errors import BSONError

from cms_backup.backup.errors import DecodeError
from cms_backup.backup.registry import FORMAT_BSON, FORMAT_JSON

# Out-of-range dates (MySQL zero dates dumped by older tools) decode to
# DatetimeMS instead of raising; they surface as raw epoch milliseconds.
_DECODE_OPTIONS: CodecOptions = CodecOptions(
    datetime_conversion=DatetimeConversion.DATETIME_AUTO,
)

_LENGTH_PREFIX = struct.Struct("<i")


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------


def normalize_document_value(value: Any) -> Any:
    """Convert a decoded document value into a plain row value.

    This is the only place that knows about legacy document-database
    primitives.  The result is always one of ``None``, ``bool``, ``int``,
    ``float``, ``str``, ``bytes``, naive-UTC ``datetime``, ``dict`` or
    ``list``.

    Examples:
        >>> normalize_document_value(ObjectId("5f1d7c2b9d3e2a0012345678"))
        '5f1d7c2b9d3e2a0012345678'
        >>> normalize_document_value({"n": Decimal128("1.50")})
        {'n': '1.50'}
    """
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        # Int64 is an int subclass; hand back a plain int
        return int(value)
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, DatetimeMS):
        return int(value)
    if isinstance(value, Timestamp):
        return value.as_datetime().astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, Decimal128):
        return str(value)
    if isinstance(value, Regex):
        return value.pattern
    if isinstance(value, Code):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (MinKey, MaxKey)):
        return None
    if isinstance(value, DBRef):
        return normalize_document_value(value.as_doc())
    if isinstance(value, dict):
        return {str(k): normalize_document_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_document_value(v) for v in value]
    return value


def iter_bson_documents(payload: bytes) -> Iterator[dict[str, Any]]:
    """Yield the documents of a length-prefixed BSON stream one by one.

    Raises:
        DecodeError: If a length prefix is truncated, non-positive, or
            runs past the end of *payload*, or a document is malformed.
    """
    cursor = 0
    total = len(payload)
    while cursor < total:
        if cursor + _LENGTH_PREFIX.size > total:
            raise DecodeError(f"invalid bson payload: truncated length at offset {cursor}")
        (doc_len,) = _LENGTH_PREFIX.unpack_from(payload, cursor)
        if doc_len <= 0 or cursor + doc_len > total:
            raise DecodeError(
                f"invalid bson document length {doc_len} at offset {cursor}"
            )
        try:
            doc = bson.decode(payload[cursor : cursor + doc_len], codec_options=_DECODE_OPTIONS)
        except BSONError as e:
            raise DecodeError(f"invalid bson document at offset {cursor}: {e}") from e
        yield normalize_document_value(doc)
        cursor += doc_len


def _decode_json_rows(payload: bytes) -> list[dict[str, Any]]:
    try:
        text = payload.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DecodeError(f"json payload is not valid UTF-8: {e}") from e
    if not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid json payload: {e}") from e
    if not isinstance(data, list):
        raise DecodeError("json payload must be an array of row objects")

    rows: list[dict[str, Any]] = []
    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            raise DecodeError(f"json row #{idx + 1} is not an object")
        rows.append(normalize_document_value(item))
    return rows


def decode_rows(payload: bytes, fmt: str) -> list[dict[str, Any]]:
    """Decode a table dump in the given wire format.

    Args:
        payload: Raw entry bytes from the archive.
        fmt: ``"bson"`` or ``"json"``.

    Returns:
        List of row dicts; empty payloads decode to an empty list.

    Raises:
        DecodeError: On malformed payloads or an unsupported format.
    """
    if fmt == FORMAT_BSON:
        return list(iter_bson_documents(payload))
    if fmt == FORMAT_JSON:
        return _decode_json_rows(payload)
    raise DecodeError(f"unsupported backup format: {fmt}")


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------


def prepare_export_value(value: Any) -> Any:
    """Convert a database value into something BSON can carry."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (time, timedelta)):
        return str(value)
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, dict):
        return {str(k): prepare_export_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [prepare_export_value(v) for v in value]
    return value


def encode_rows(rows: Iterable[dict[str, Any]]) -> bytes:
    """Encode rows as a concatenated BSON document stream.

    An empty row set encodes to ``b""``.

    Raises:
        bson.errors.InvalidDocument: If a value cannot be represented.
        OverflowError: If an integer exceeds 64 bits.
    """
    chunks: list[bytes] = []
    for row in rows:
        doc = {str(key): prepare_export_value(value) for key, value in row.items()}
        chunks.append(bson.encode(doc))
    return b"".join(chunks)
