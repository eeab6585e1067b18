from datetime import timedelta

import pytest

from compliance.errors import InvalidInput
from compliance.services import reports_service
from tests.helpers import NOW, auth_headers

RANGE = (NOW - timedelta(days=30), NOW + timedelta(days=30))


def _complete(db, deadline, user, at):
    deadline.completed_at = at
    deadline.completed_by = user.id
    db.commit()
    return deadline


@pytest.fixture
def history(db, owner, team, deadline_factory):
    on_time = deadline_factory("Renew CLIA", due_in_days=-5, schedule_alerts=False)
    _complete(db, on_time, owner, NOW - timedelta(days=6))
    late = deadline_factory("Q4 payroll filing", due_in_days=-3, category="tax_filing", schedule_alerts=False)
    _complete(db, late, team["member"], NOW - timedelta(days=1))
    deadline_factory("Fire inspection", due_in_days=-2, schedule_alerts=False)
    deadline_factory(
        "Malpractice renewal", due_in_days=10, category="insurance",
        assigned_to=team["member"].id, schedule_alerts=False,
    )
    deadline_factory("Next year's audit", due_in_days=60, category="audit_reports", schedule_alerts=False)
    return {"on_time": on_time, "late": late}


class TestDateRange:
    def test_presets_and_bounds(self):
        assert reports_service.resolve_date_range(now=NOW) == (NOW - timedelta(days=30), NOW)
        assert reports_service.resolve_date_range("last_quarter", now=NOW)[0] == NOW - timedelta(days=90)
        start, end = reports_service.resolve_date_range(date_from=RANGE[0], date_to=RANGE[1], now=NOW)
        assert (start, end) == RANGE

    def test_invalid_ranges(self):
        with pytest.raises(InvalidInput):
            reports_service.resolve_date_range("last_decade", now=NOW)
        with pytest.raises(InvalidInput):
            reports_service.resolve_date_range(date_from=NOW, date_to=NOW - timedelta(days=1), now=NOW)


class TestComplianceSummary:
    def test_summary_counts(self, db, org, owner, history):
        report = reports_service.get_compliance_summary(db, org.id, owner.id, *RANGE, now=NOW)
        assert report["summary"] == {
            "total": 4,
            "completed": 2,
            "on_time": 1,
            "late": 1,
            "overdue": 1,
            "pending": 1,
            "completion_rate": 50,
            "on_time_rate": 50,
        }
        assert report["by_category"] == [
            {"category": "insurance", "count": 1, "overdue": 0},
            {"category": "licenses", "count": 1, "overdue": 1},
        ]
        assert [item["title"] for item in report["upcoming"]] == ["Malpractice renewal"]
        assert report["overdue_items"][0]["title"] == "Fire inspection"
        assert report["overdue_items"][0]["days_overdue"] == 2

    def test_score_history(self, db, org, owner, history):
        scores = reports_service.get_compliance_summary(db, org.id, owner.id, *RANGE, now=NOW)["score_history"]
        assert len(scores) == 12
        assert scores[0]["month"] == "Apr 2024"
        # One of the four deadlines due in March was done on time
        assert scores[-1] == {"month": "Mar 2025", "score": 25}
        assert scores[-2] == {"month": "Feb 2025", "score": 100}

    def test_empty_org(self, db, org, owner):
        report = reports_service.get_compliance_summary(db, org.id, owner.id, *RANGE, now=NOW)
        assert report["summary"]["completion_rate"] == 0
        assert report["summary"]["on_time_rate"] == 0
        assert {entry["score"] for entry in report["score_history"]} == {100}


class TestTeamPerformance:
    def test_per_member_stats(self, db, org, owner, team, history):
        rows = {row["email"]: row for row in reports_service.get_team_performance(db, org.id, owner.id, *RANGE)}
        assert set(rows) == {owner.email} | {user.email for user in team.values()}

        assert rows[owner.email]["completed"] == 1
        assert rows[owner.email]["on_time_rate"] == 100
        assert rows[owner.email]["avg_days_before"] == 1

        member = rows[team["member"].email]
        assert member["role"] == "member"
        assert member["on_time_rate"] == 0
        assert member["avg_days_before"] == -2
        assert member["active_assignments"] == 1

        assert rows[team["viewer"].email]["completed"] == 0

    def test_completions_outside_range_are_ignored(self, db, org, owner, team, history):
        rows = reports_service.get_team_performance(
            db, org.id, owner.id, NOW - timedelta(days=3), NOW
        )
        assert {row["email"]: row["completed"] for row in rows}[owner.email] == 0


class TestCostAvoidance:
    def test_only_on_time_completions_count(self, db, org, owner, history):
        report = reports_service.get_cost_avoidance(db, org.id, owner.id, *RANGE)
        assert report["deadlines_completed_on_time"] == 1
        assert report["total_avoided"] == 5000
        assert report["by_category"] == [{"category": "licenses", "count": 1, "total_avoided": 5000}]
        assert report["breakdown"][0]["title"] == "Renew CLIA"
        assert report["disclaimer"].startswith("Estimates based on average industry penalties")

    def test_template_penalty_amount_wins(self, db, org, owner, deadline_factory):
        posting = deadline_factory(
            "OSHA 300A posting", due_in_days=-1, category="regulatory",
            metadata={"penalty_range": "$15,625+ per violation"}, schedule_alerts=False,
        )
        _complete(db, posting, owner, NOW - timedelta(days=2))
        vague = deadline_factory(
            "State bar dues", due_in_days=-1, category="unlisted",
            metadata={"penalty_range": "Administrative suspension"}, schedule_alerts=False,
        )
        _complete(db, vague, owner, NOW - timedelta(days=2))

        report = reports_service.get_cost_avoidance(db, org.id, owner.id, *RANGE)
        penalties = {row["title"]: row["estimated_penalty"] for row in report["breakdown"]}
        assert penalties == {"OSHA 300A posting": 15625, "State bar dues": reports_service.DEFAULT_PENALTY}
        assert report["total_avoided"] == 16625


class TestReportRoutes:
    def test_routes(self, client, org, owner, team, history):
        params = {"date_from": RANGE[0].isoformat(), "date_to": RANGE[1].isoformat()}
        base = f"/organizations/{org.id}/reports"

        summary = client.get(f"{base}/compliance-summary", params=params, headers=auth_headers(team["viewer"].email))
        assert summary.status_code == 200
        assert summary.json()["summary"]["total"] == 4

        cost = client.get(f"{base}/cost-avoidance", params=params, headers=auth_headers(owner.email))
        assert cost.json()["total_avoided"] == 5000

        performance = client.get(f"{base}/team-performance", params=params, headers=auth_headers(team["manager"].email))
        assert performance.status_code == 200
        assert len(performance.json()) == 5

    def test_team_performance_needs_user_access(self, client, org, team):
        res = client.get(
            f"/organizations/{org.id}/reports/team-performance", headers=auth_headers(team["viewer"].email)
        )
        assert res.status_code == 403

    def test_bad_range_and_outsiders(self, client, org, owner, outsider):
        base = f"/organizations/{org.id}/reports"
        bad = client.get(f"{base}/compliance-summary", params={"range": "forever"}, headers=auth_headers(owner.email))
        assert bad.status_code == 422
        assert client.get(f"{base}/cost-avoidance", headers=auth_headers(outsider.email)).status_code == 403
