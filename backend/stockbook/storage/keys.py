# Overview: Identifier normalization between the integer-shaped `id` callers use and native store keys.

"""
One canonical external key: a string.

Embedded and relational rows carry integer ids, document rows carry
ObjectIds, and foreign-key columns may hold any of int, "7", 7.0 or an
ObjectId string depending on which backend wrote them. canonical_key()
maps all of these to the same string, and KeyedIndex applies it on both
insert and lookup, so callers never try multiple key shapes themselves.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Iterable, Iterator

from bson import ObjectId
from bson.decimal128 import Decimal128

from ..time_utils import to_timestamp_text

NATIVE_KEY = "_id"
EXTERNAL_KEY = "id"

_INTEGRAL_RE = re.compile(r"[-+]?\d+(?:\.0*)?")


def canonical_key(value: Any) -> str | None:
    """7, "7", " 7 ", 7.0 and "7.0" all map to "7"; ObjectIds to their hex string."""
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    text = str(value).strip()
    if _INTEGRAL_RE.fullmatch(text):
        return str(int(float(text))) if "." in text else str(int(text))
    return text


def to_native_key(value: Any) -> Any:
    """
    Best-effort conversion of a caller id to the document store key.

    Valid 24-hex strings become ObjectIds; anything else passes through
    unchanged so documents written with non-ObjectId keys stay reachable.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def from_native_key(value: Any) -> Any:
    return str(value) if value is not None else None


def to_native_filter(criteria: dict) -> dict:
    """Rename `id` to `_id` and convert its value; other fields are untouched."""
    native = {}
    for key, value in criteria.items():
        if key in (EXTERNAL_KEY, NATIVE_KEY):
            native[NATIVE_KEY] = to_native_key(value)
        else:
            native[key] = value
    return native


def to_native_fields(fields: dict) -> dict:
    """Same renaming for sort and projection specs (values are 1/-1)."""
    return {(NATIVE_KEY if key == EXTERNAL_KEY else key): value for key, value in fields.items()}


def _normalize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_timestamp_text(value)
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return float(value.to_decimal())
    if isinstance(value, dict):
        return from_document(value)
    if isinstance(value, list):
        return [_normalize_value(item) for item in value]
    return value


def from_document(doc: dict) -> dict:
    """Native document -> caller row: `_id` becomes a string `id`, dates become text."""
    row = {}
    for key, value in doc.items():
        if key == NATIVE_KEY:
            row[EXTERNAL_KEY] = from_native_key(value)
        else:
            row[key] = _normalize_value(value)
    return row


class KeyedIndex:
    """dict keyed by canonical_key(); lookups accept any key shape."""

    def __init__(self, items: Iterable[tuple[Any, Any]] = ()):
        self._data: dict[str, Any] = {}
        for key, value in items:
            self[key] = value

    @classmethod
    def from_rows(cls, rows: Iterable[dict], key: str = EXTERNAL_KEY) -> "KeyedIndex":
        index = cls()
        for row in rows:
            if row.get(key) is not None:
                index[row[key]] = row
        return index

    def __setitem__(self, key: Any, value: Any) -> None:
        self._data[canonical_key(key)] = value

    def __getitem__(self, key: Any) -> Any:
        return self._data[canonical_key(key)]

    def __contains__(self, key: Any) -> bool:
        return canonical_key(key) in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def get(self, key: Any, default: Any = None) -> Any:
        return self._data.get(canonical_key(key), default)

    def items(self):
        return self._data.items()

    def values(self):
        return self._data.values()
