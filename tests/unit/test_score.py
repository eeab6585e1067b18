from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from compliance.utils.score import (
    calculate_compliance_score,
    calculate_score_breakdown,
    get_score_label,
)

NOW = datetime(2025, 5, 1, tzinfo=timezone.utc)


def _deadline(due_in_days, completed_days_ago=None, deleted=False):
    due = NOW + timedelta(days=due_in_days)
    completed = NOW - timedelta(days=completed_days_ago) if completed_days_ago is not None else None
    return SimpleNamespace(
        due_date=due,
        completed_at=completed,
        deleted_at=NOW if deleted else None,
    )


def test_empty_org_scores_100():
    assert calculate_compliance_score([], NOW) == 100


def test_overdue_penalty_is_two_per_day_capped():
    breakdown = calculate_score_breakdown([_deadline(-3), _deadline(-40)], NOW)
    assert breakdown["overdue_count"] == 2
    assert breakdown["overdue_penalty"] == 6 + 20
    assert breakdown["score"] == 74


def test_due_soon_and_upcoming_penalties():
    breakdown = calculate_score_breakdown([_deadline(3), _deadline(20), _deadline(90)], NOW)
    assert breakdown["due_soon_penalty"] == 5
    assert breakdown["upcoming_penalty"] == 1
    assert breakdown["score"] == 94


def test_on_time_bonus_capped_and_clamped():
    # due 10 days ago, completed 12 days ago: on time and recent
    on_time = [_deadline(-10, completed_days_ago=12) for _ in range(15)]
    breakdown = calculate_score_breakdown(on_time + [_deadline(2)], NOW)
    assert breakdown["on_time_count"] == 15
    assert breakdown["on_time_bonus"] == 10
    assert breakdown["score"] == 100


def test_late_completion_earns_no_bonus():
    late = _deadline(-10, completed_days_ago=5)
    assert calculate_score_breakdown([late], NOW)["on_time_count"] == 0


def test_deleted_deadlines_ignored():
    assert calculate_compliance_score([_deadline(-30, deleted=True)], NOW) == 100


def test_score_never_negative():
    assert calculate_compliance_score([_deadline(-30) for _ in range(10)], NOW) == 0


def test_labels():
    assert get_score_label(80) == "Healthy"
    assert get_score_label(79) == "Needs Attention"
    assert get_score_label(60) == "Needs Attention"
    assert get_score_label(59) == "At Risk"
