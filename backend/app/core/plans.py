# ============================
# FILE: app/core/plans.py
# Canonical subscription plans and their note quotas
# ============================
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.core.config import settings

PLAN_FREE = "free"
PLAN_PRO = "pro"


@dataclass(frozen=True)
class PlanLimits:
    # None means unlimited
    max_notes: Optional[int]


def _plan_limits() -> dict[str, PlanLimits]:
    return {
        PLAN_FREE: PlanLimits(max_notes=settings.FREE_PLAN_NOTE_LIMIT),
        PLAN_PRO: PlanLimits(max_notes=None),
    }


def normalize_plan(value: str | None) -> str:
    return (value or "").strip().lower()


def get_note_limit_for_plan(plan: str | None) -> Optional[int]:
    """
    Returns the max number of notes a tenant on the given plan may hold.
    Unknown plans are treated as free.
    """
    limits = _plan_limits()
    p = normalize_plan(plan)
    if p in limits:
        return limits[p].max_notes
    return limits[PLAN_FREE].max_notes

