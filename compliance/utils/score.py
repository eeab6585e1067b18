"""Compliance health score computed from an organization's deadlines."""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable, Dict, Any

MAX_OVERDUE_PENALTY = 20
OVERDUE_PENALTY_PER_DAY = 2
DUE_SOON_PENALTY = 5
UPCOMING_PENALTY = 1
MAX_ON_TIME_BONUS = 10

LABEL_HEALTHY = "Healthy"
LABEL_NEEDS_ATTENTION = "Needs Attention"
LABEL_AT_RISK = "At Risk"


def _days(delta: timedelta) -> float:
    return delta.total_seconds() / 86400


def calculate_score_breakdown(deadlines: Iterable[Any], now: datetime) -> Dict[str, int]:
    """Score plus the contributing counts and penalties.

    Active (not completed) deadlines cost points: overdue ones two points per
    day late capped at twenty, ones due within 7 days five points, ones due
    within 30 days one point. Completions on or before the due date in the
    last 30 days add one point each, capped at ten.
    """
    items = [d for d in deadlines if getattr(d, "deleted_at", None) is None]
    breakdown = {
        "score": 100,
        "overdue_count": 0,
        "overdue_penalty": 0,
        "due_soon_count": 0,
        "due_soon_penalty": 0,
        "upcoming_count": 0,
        "upcoming_penalty": 0,
        "on_time_count": 0,
        "on_time_bonus": 0,
    }
    if not items:
        return breakdown

    recent_cutoff = now - timedelta(days=30)
    for d in items:
        if d.completed_at is not None:
            if d.completed_at >= recent_cutoff and d.completed_at <= d.due_date:
                breakdown["on_time_count"] += 1
            continue
        days_left = _days(d.due_date - now)
        if days_left < 0:
            penalty = min(MAX_OVERDUE_PENALTY, math.floor(-days_left) * OVERDUE_PENALTY_PER_DAY)
            breakdown["overdue_count"] += 1
            breakdown["overdue_penalty"] += penalty
        elif days_left <= 7:
            breakdown["due_soon_count"] += 1
            breakdown["due_soon_penalty"] += DUE_SOON_PENALTY
        elif days_left <= 30:
            breakdown["upcoming_count"] += 1
            breakdown["upcoming_penalty"] += UPCOMING_PENALTY

    breakdown["on_time_bonus"] = min(MAX_ON_TIME_BONUS, breakdown["on_time_count"])
    raw = (
        100
        - breakdown["overdue_penalty"]
        - breakdown["due_soon_penalty"]
        - breakdown["upcoming_penalty"]
        + breakdown["on_time_bonus"]
    )
    breakdown["score"] = max(0, min(100, round(raw)))
    return breakdown


def calculate_compliance_score(deadlines: Iterable[Any], now: datetime) -> int:
    return calculate_score_breakdown(deadlines, now)["score"]


def get_score_label(score: int) -> str:
    if score >= 80:
        return LABEL_HEALTHY
    if score >= 60:
        return LABEL_NEEDS_ATTENTION
    return LABEL_AT_RISK
