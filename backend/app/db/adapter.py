"""Engine-neutral persistence contract.

Handlers and repositories write SQL once, in the embedded engine's flavour:
`?` placeholders, `datetime('now')` helpers and a trailing `RETURNING id` on
inserts whose generated key they need. Each adapter turns that into whatever
its engine understands and hands back plain dicts.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

Row = dict[str, Any]
Params = Sequence[Any]

_DATETIME_NOW = re.compile(
    r"""datetime\(\s*(['"])now\1\s*(?:,\s*(['"])\s*([+-])\s*(\d+)\s+([a-z]+?)s?\s*\2\s*)?\)""",
    re.IGNORECASE,
)
_RETURNING = re.compile(r"\s+RETURNING\s+[\w\s,]+?\s*;?\s*$", re.IGNORECASE)
_HAS_RETURNING = re.compile(r"\bRETURNING\b", re.IGNORECASE)


@dataclass(frozen=True)
class ExecResult:
    changes: int
    last_insert_id: Optional[int] = None


def translate_datetime_functions(sql: str) -> str:
    """
    datetime('now')               -> NOW()
    datetime('now', '+1 hour')    -> (NOW() + INTERVAL '1 hour')
    datetime('now', '-15 minutes') -> (NOW() - INTERVAL '15 minutes')
    """

    def _replace(match: re.Match) -> str:
        sign = match.group(3)
        if sign is None:
            return "NOW()"
        amount = int(match.group(4))
        unit = match.group(5).lower()
        if amount != 1:
            unit += "s"
        return f"(NOW() {sign} INTERVAL '{amount} {unit}')"

    return _DATETIME_NOW.sub(_replace, sql)


def translate_placeholders(sql: str) -> str:
    """Number `?` markers left to right: `a = ? AND b = ?` -> `a = $1 AND b = $2`.

    String literals are not inspected; a literal `?` inside quotes is
    renumbered too.
    """
    counter = 0

    def _next(_match: re.Match) -> str:
        nonlocal counter
        counter += 1
        return f"${counter}"

    return re.sub(r"\?", _next, sql)


def has_returning(sql: str) -> bool:
    return bool(_HAS_RETURNING.search(sql))


def strip_returning(sql: str) -> str:
    return _RETURNING.sub("", sql.rstrip())


class DatabaseAdapter(ABC):
    """One asynchronous query interface over either backing engine."""

    engine_name: str = ""

    @abstractmethod
    async def get_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        """First matching row, or None when nothing matches."""

    @abstractmethod
    async def get_many(self, sql: str, params: Params = ()) -> list[Row]:
        """All rows, in the order the engine returned them."""

    @abstractmethod
    async def execute(self, sql: str, params: Params = ()) -> ExecResult:
        """Run a mutation; reports affected rows and the generated id of an insert."""

    @abstractmethod
    async def init_schema(self) -> None:
        """Create missing tables and add missing columns; safe to call repeatedly."""

    @abstractmethod
    async def close(self) -> None:
        ...
