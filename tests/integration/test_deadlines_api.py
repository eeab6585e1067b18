from datetime import datetime, timedelta, timezone

import pytest

from compliance.db import schemas
from compliance.db.repositories import alerts as repo_alerts
from compliance.errors import Forbidden, InvalidInput, InvalidState
from compliance.services import deadline_service
from tests.helpers import NOW, auth_headers


def _iso(days: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


class TestCreateAndRead:
    def test_create_schedules_future_alerts(self, db, deadline_factory):
        deadline = deadline_factory(due_in_days=20)
        alerts = repo_alerts.list_by_deadline(db, deadline.id)
        # 30 days out is already past; 14 early, 7 and 3 medium, 1 high, 0 critical
        assert len(alerts) == 1 + 2 + 2 + 3 + 3
        assert {a.status for a in alerts} == {"scheduled"}
        assert alerts[-1].scheduled_for == deadline.due_date
        assert deadline.status == "upcoming"

    def test_schedule_alerts_can_be_skipped(self, db, deadline_factory):
        deadline = deadline_factory(schedule_alerts=False)
        assert repo_alerts.list_by_deadline(db, deadline.id) == []

    def test_assignee_must_be_member(self, deadline_factory, outsider):
        with pytest.raises(InvalidInput):
            deadline_factory(assigned_to=outsider.id)

    def test_viewer_cannot_create(self, deadline_factory, team):
        with pytest.raises(Forbidden):
            deadline_factory(user=team["viewer"])

    def test_status_filters(self, db, org, owner, deadline_factory):
        deadline_factory("Overdue filing", due_in_days=-2)
        deadline_factory("Soon filing", due_in_days=5)
        deadline_factory("Later filing", due_in_days=60)

        def titles(status):
            rows = deadline_service.list_deadlines(db, org.id, owner.id, status=status, now=NOW)
            return [row.title for row in rows]

        assert titles("overdue") == ["Overdue filing"]
        assert titles("due_soon") == ["Soon filing"]
        assert titles("upcoming") == ["Later filing"]
        assert [d.title for d in deadline_service.overdue(db, org.id, owner.id, now=NOW)] == ["Overdue filing"]
        assert [d.title for d in deadline_service.upcoming(db, org.id, owner.id, days=30, now=NOW)] == ["Soon filing"]
        with pytest.raises(InvalidInput):
            deadline_service.list_deadlines(db, org.id, owner.id, status="someday")

    def test_by_category(self, db, org, owner, deadline_factory):
        deadline_factory("HIPAA training", category="training")
        deadline_factory("DEA registration", category="licenses")
        grouped = deadline_service.by_category(db, org.id, owner.id, now=NOW)
        assert sorted(grouped) == ["licenses", "training"]


class TestUpdate:
    def test_moving_due_date_reschedules_alerts(self, db, org, owner, deadline_factory):
        deadline = deadline_factory(due_in_days=20)
        deadline_service.update_deadline(
            db, org.id, deadline.id, owner.id, schemas.DeadlineUpdate(due_date=NOW + timedelta(days=5)), now=NOW
        )
        alerts = repo_alerts.list_by_deadline(db, deadline.id, status="scheduled")
        # 3 medium, 1 high, 0 critical
        assert len(alerts) == 2 + 3 + 3

        history = deadline_service.audit_history(db, org.id, deadline.id, owner.id)
        actions = [entry.action for entry in history]
        assert "updated" in actions and "created" in actions
        updated = next(entry for entry in history if entry.action == "updated")
        assert set(updated.changes) == {"due_date"}

    def test_cannot_clear_due_date(self, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        with pytest.raises(InvalidInput):
            deadline_service.update_deadline(
                db, org.id, deadline.id, owner.id, schemas.DeadlineUpdate(due_date=None), now=NOW
            )


class TestCompletion:
    def test_monthly_recurrence_rolls_forward(self, db, org, owner, deadline_factory):
        deadline = deadline_factory("Payroll tax deposit", due_in_days=20, recurrence={"type": "monthly"})
        completed, next_id = deadline_service.complete_deadline(db, org.id, deadline.id, owner.id, now=NOW)

        assert completed.status == "completed"
        assert completed.completed_by == owner.id
        assert repo_alerts.list_by_deadline(db, deadline.id, status="scheduled") == []

        following = deadline_service.get_deadline(db, org.id, next_id, owner.id, now=NOW)
        assert following.title == "Payroll tax deposit"
        assert following.due_date == datetime(2025, 4, 30, 12, 0, tzinfo=timezone.utc)
        assert following.recurrence["type"] == "monthly"
        assert repo_alerts.list_by_deadline(db, next_id)

    def test_completion_date_base(self, db, org, owner, deadline_factory):
        deadline = deadline_factory(
            due_in_days=-10, recurrence={"type": "custom", "interval": 45, "base_date": "completion_date"}
        )
        _, next_id = deadline_service.complete_deadline(db, org.id, deadline.id, owner.id, now=NOW)
        following = deadline_service.get_deadline(db, org.id, next_id, owner.id, now=NOW)
        assert following.due_date == NOW + timedelta(days=45)

    def test_series_end_date_stops_recurrence(self, db, org, owner, deadline_factory):
        deadline = deadline_factory(
            due_in_days=20, recurrence={"type": "annual", "end_date": (NOW + timedelta(days=100)).isoformat()}
        )
        _, next_id = deadline_service.complete_deadline(db, org.id, deadline.id, owner.id, now=NOW)
        assert next_id is None

    def test_already_completed(self, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        deadline_service.complete_deadline(db, org.id, deadline.id, owner.id, now=NOW)
        with pytest.raises(InvalidState, match="Already completed"):
            deadline_service.complete_deadline(db, org.id, deadline.id, owner.id, now=NOW)

    def test_member_completes_only_assigned(self, db, org, team, deadline_factory):
        member = team["member"]
        mine = deadline_factory("Mine", assigned_to=member.id)
        theirs = deadline_factory("Theirs")

        completed, _ = deadline_service.complete_deadline(db, org.id, mine.id, member.id, now=NOW)
        assert completed.completed_at == NOW
        with pytest.raises(Forbidden):
            deadline_service.complete_deadline(db, org.id, theirs.id, member.id, now=NOW)

    def test_deleted_cannot_be_completed(self, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        deadline_service.soft_delete(db, org.id, deadline.id, owner.id, now=NOW)
        with pytest.raises(InvalidState, match="deleted"):
            deadline_service.complete_deadline(db, org.id, deadline.id, owner.id, now=NOW)


class TestTrash:
    def test_soft_delete_and_restore(self, db, org, owner, deadline_factory):
        deadline = deadline_factory(due_in_days=20)
        deadline_service.soft_delete(db, org.id, deadline.id, owner.id, now=NOW)

        assert deadline_service.list_deadlines(db, org.id, owner.id, now=NOW) == []
        assert [d.id for d in deadline_service.trash(db, org.id, owner.id)] == [deadline.id]
        assert repo_alerts.list_by_deadline(db, deadline.id, status="scheduled") == []

        deadline_service.restore(db, org.id, deadline.id, owner.id, now=NOW)
        assert deadline_service.trash(db, org.id, owner.id) == []
        assert len(repo_alerts.list_by_deadline(db, deadline.id, status="scheduled")) == 11

    def test_hard_delete_waits_for_retention(self, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        with pytest.raises(InvalidState, match="Must soft-delete first"):
            deadline_service.hard_delete(db, org.id, deadline.id, owner.id, now=NOW)

        deadline_service.soft_delete(db, org.id, deadline.id, owner.id, now=NOW)
        with pytest.raises(InvalidState, match="29 more days") as excinfo:
            deadline_service.hard_delete(db, org.id, deadline.id, owner.id, now=NOW + timedelta(days=1))
        assert excinfo.value.details["days_remaining"] == 29

        deadline_service.hard_delete(db, org.id, deadline.id, owner.id, now=NOW + timedelta(days=30))
        assert deadline_service.trash(db, org.id, owner.id) == []

    def test_manager_cannot_delete(self, db, org, team, deadline_factory):
        deadline = deadline_factory()
        with pytest.raises(Forbidden):
            deadline_service.soft_delete(db, org.id, deadline.id, team["manager"].id, now=NOW)


class TestDeadlineRoutes:
    def test_create_get_and_complete(self, client, org, owner):
        headers = auth_headers(owner.email)
        res = client.post(
            f"/organizations/{org.id}/deadlines/",
            json={
                "title": "OSHA log posting",
                "due_date": _iso(40),
                "category": "safety",
                "recurrence": {"type": "annual"},
                "importance": "high",
            },
            headers=headers,
        )
        assert res.status_code == 201, res.text
        created = res.json()
        assert created["status"] == "upcoming"

        fetched = client.get(f"/organizations/{org.id}/deadlines/{created['id']}", headers=headers)
        assert fetched.json()["title"] == "OSHA log posting"

        done = client.post(f"/organizations/{org.id}/deadlines/{created['id']}/complete", headers=headers)
        assert done.status_code == 200
        assert done.json()["deadline"]["status"] == "completed"
        assert done.json()["next_deadline_id"] is not None

        again = client.post(f"/organizations/{org.id}/deadlines/{created['id']}/complete", headers=headers)
        assert again.status_code == 409
        assert again.json()["error"] == "INVALID_STATE"

    def test_invalid_recurrence_rejected(self, client, org, owner):
        res = client.post(
            f"/organizations/{org.id}/deadlines/",
            json={"title": "Bad", "due_date": _iso(10), "category": "tax", "recurrence": {"type": "fortnightly"}},
            headers=auth_headers(owner.email),
        )
        assert res.status_code == 422

    def test_viewer_reads_but_cannot_write(self, client, org, owner, team):
        headers = auth_headers(owner.email)
        client.post(
            f"/organizations/{org.id}/deadlines/",
            json={"title": "Fire inspection", "due_date": _iso(3), "category": "safety"},
            headers=headers,
        )
        viewer = auth_headers(team["viewer"].email)
        listed = client.get(f"/organizations/{org.id}/deadlines/", params={"status": "due_soon"}, headers=viewer)
        assert [d["title"] for d in listed.json()] == ["Fire inspection"]
        denied = client.post(
            f"/organizations/{org.id}/deadlines/",
            json={"title": "Nope", "due_date": _iso(3), "category": "safety"},
            headers=viewer,
        )
        assert denied.status_code == 403

    def test_trash_routes(self, client, org, owner):
        headers = auth_headers(owner.email)
        created = client.post(
            f"/organizations/{org.id}/deadlines/",
            json={"title": "Old permit", "due_date": _iso(15), "category": "licenses"},
            headers=headers,
        ).json()
        base = f"/organizations/{org.id}/deadlines/{created['id']}"

        assert client.delete(base, headers=headers).json()["deleted_at"] is not None
        assert [d["id"] for d in client.get(f"/organizations/{org.id}/deadlines/trash", headers=headers).json()] == [created["id"]]
        blocked = client.delete(f"{base}/permanent", headers=headers)
        assert blocked.status_code == 409
        assert blocked.json()["detail"]["days_remaining"] == 30

        restored = client.post(f"{base}/restore", headers=headers)
        assert restored.json()["deleted_at"] is None
        history = client.get(f"{base}/history", headers=headers).json()
        assert {entry["action"] for entry in history} == {"created", "deleted", "restored"}
