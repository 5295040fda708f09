# backend/app/schemas/common.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


def normalize_email(value: str) -> str:
    return str(value).strip().lower()


def required_text(value: Optional[str]) -> str:
    v = (value or "").strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class MessageResponse(BaseModel):
    message: str
