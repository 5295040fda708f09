from __future__ import annotations

import re

MAX_SLUG_LENGTH = 50

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")


def slugify(value: str) -> str:
    """
    Derive a tenant slug from a company name (or normalize a slug typed by hand).

    >>> slugify("Acme Corp!")
    'acme-corp'
    """
    s = _DISALLOWED.sub("", str(value).lower())
    s = _WHITESPACE.sub("-", s.strip())
    return s[:MAX_SLUG_LENGTH]
