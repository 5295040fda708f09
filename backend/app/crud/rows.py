# app/crud/rows.py
"""Row decoding shared by the repositories.

SQLite hands back 0/1 for booleans, ISO text for timestamps and JSON text for
list columns; asyncpg returns native types for the first two. Everything is
normalized here so callers see the same dict whichever engine is active.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from app.db.adapter import Row


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t"}
    return bool(value)


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        # both engines store UTC
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def json_list(value: Any) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return []
    return parsed if isinstance(parsed, list) else []


def dump_json(value: Any) -> str:
    # UTF-8 kept as-is so LIKE patterns built with the same call match stored text
    return json.dumps(value, ensure_ascii=False)


def dump_list(values: Iterable[Any]) -> str:
    return dump_json(list(values))


def normalize_row(
    row: Optional[Row],
    *,
    bools: Iterable[str] = (),
    datetimes: Iterable[str] = ("created_at", "updated_at"),
    lists: Iterable[str] = (),
) -> Optional[Row]:
    if row is None:
        return None
    out = dict(row)
    for key in bools:
        if key in out:
            out[key] = to_bool(out[key])
    for key in datetimes:
        if key in out:
            out[key] = to_datetime(out[key])
    for key in lists:
        if key in out:
            out[key] = json_list(out[key])
    return out
