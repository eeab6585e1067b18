from datetime import timedelta

import pytest

from compliance.db import schemas
from compliance.db.repositories import alerts as repo_alerts
from compliance.errors import Forbidden, InvalidInput, InvalidState
from compliance.services import alert_service, billing_service
from compliance.services.notification_service import NotificationService
from compliance.utils.feature_flags import refresh_feature_flag_cache
from tests.helpers import NOW, auth_headers


def _alerts(db, deadline, channel=None, urgency=None):
    rows = repo_alerts.list_by_deadline(db, deadline.id)
    return [
        row for row in rows
        if (channel is None or row.channel == channel) and (urgency is None or row.urgency == urgency)
    ]


class TestScheduling:
    def test_starter_plan_gets_no_sms(self, db, user_factory, organization_factory, deadline_factory):
        solo = user_factory("solo@clinic.test")
        clinic = organization_factory(solo, name="Solo Clinic", plan="starter")
        deadline = deadline_factory(organization=clinic, user=solo)
        assert _alerts(db, deadline, channel="sms") == []
        assert len(_alerts(db, deadline)) == 9

    def test_sms_kill_switch(self, db, monkeypatch, deadline_factory):
        monkeypatch.setenv("FEATURE_SMS_ALERTS_ENABLED", "false")
        refresh_feature_flag_cache()
        deadline = deadline_factory()
        assert _alerts(db, deadline, channel="sms") == []

    def test_custom_alert_days(self, db, deadline_factory):
        deadline = deadline_factory(due_in_days=60, alert_days=[45, 10])
        alerts = _alerts(db, deadline)
        assert [a.urgency for a in alerts] == ["early", "early"]
        assert alerts[0].scheduled_for == deadline.due_date - timedelta(days=45)

    def test_user_preferences_drive_channels(self, db, org, team, deadline_factory):
        member = team["member"]
        alert_service.save_preferences(
            db,
            org.id,
            member.id,
            schemas.AlertPreferenceUpdate(user_id=member.id, early_channels=["in_app"], alert_days=[14]),
        )
        deadline = deadline_factory(due_in_days=20, assigned_to=member.id)
        alerts = _alerts(db, deadline)
        assert [(a.channel, a.urgency) for a in alerts] == [("in_app", "early")]
        assert alerts[0].user_id == member.id


class TestDelivery:
    def test_email_alert_sent_to_owner(self, db, org, owner, deadline_factory, email_outbox):
        deadline = deadline_factory(due_in_days=20)
        alert = _alerts(db, deadline, channel="email", urgency="early")[0]

        result = alert_service.process_alert(db, alert.id, now=alert.scheduled_for)
        assert result == {"success": True}
        db.refresh(alert)
        assert alert.status == "sent"
        assert alert.sent_at == alert.scheduled_for

        message = email_outbox.sent[-1]
        assert message["to"] == owner.email
        assert message["subject"] == "[EARLY] Deadline Reminder: License renewal"
        assert "License renewal" in message["html"]
        assert billing_service.get_current_usage(db, org.id, now=NOW).alerts_sent == 1

    def test_in_app_alert_creates_notification(self, db, org, owner, deadline_factory):
        deadline = deadline_factory(due_in_days=20)
        alert = _alerts(db, deadline, channel="in_app", urgency="medium")[0]
        assert alert_service.process_alert(db, alert.id, now=alert.scheduled_for)["success"]

        notifications = NotificationService(db).list(owner.id, org.id)
        assert [n.type for n in notifications] == ["deadline_reminder"]
        assert notifications[0].data["alert_id"] == str(alert.id)

    def test_only_scheduled_alerts_are_processed(self, db, deadline_factory):
        deadline = deadline_factory()
        alert = _alerts(db, deadline, channel="email")[0]
        alert_service.process_alert(db, alert.id, now=alert.scheduled_for)
        again = alert_service.process_alert(db, alert.id, now=alert.scheduled_for)
        assert again == {"success": False, "error": "Alert not in scheduled status"}

    def test_failures_retry_then_escalate(self, db, org, owner, team, deadline_factory):
        alert_service.save_preferences(
            db, org.id, owner.id, schemas.AlertPreferenceUpdate(escalation_contacts=[team["admin"].id])
        )
        deadline = deadline_factory(due_in_days=20)
        alert = _alerts(db, deadline, channel="sms", urgency="high")[0]

        run_at = alert.scheduled_for
        for expected_delay in (15, 30, 45):
            result = alert_service.process_alert(db, alert.id, now=run_at)
            assert result == {"success": False, "error": "No phone number configured for SMS alerts"}
            db.refresh(alert)
            assert alert.status == "scheduled"
            assert alert.scheduled_for == run_at + timedelta(minutes=expected_delay)
            run_at = alert.scheduled_for

        alert_service.process_alert(db, alert.id, now=run_at)
        db.refresh(alert)
        assert alert.status == "failed"
        assert alert.retry_count == 4

        escalations = NotificationService(db).list(team["admin"].id, org.id)
        assert [n.type for n in escalations] == ["escalation"]
        actions = [entry.action for entry in alert_service.alert_history(db, org.id, alert.id, owner.id)]
        assert actions.count("failed") == 4
        assert "escalated" in actions
        assert [a.id for a in alert_service.failed_alerts(db, org.id, owner.id)] == [alert.id]

    def test_email_provider_failure_is_recorded(self, db, deadline_factory, email_outbox):
        email_outbox.failing = True
        deadline = deadline_factory()
        alert = _alerts(db, deadline, channel="email")[0]
        result = alert_service.process_alert(db, alert.id, now=alert.scheduled_for)
        assert result == {"success": False, "error": "provider unavailable"}
        db.refresh(alert)
        assert alert.retry_count == 1
        assert alert.error_message == "provider unavailable"

    def test_process_due_alerts_window(self, db, deadline_factory):
        deadline = deadline_factory(due_in_days=20)
        early = _alerts(db, deadline, urgency="early")[0]

        summary = alert_service.process_due_alerts(db, now=early.scheduled_for + timedelta(minutes=5))
        assert summary == {"processed": 1, "succeeded": 1, "failed": 0}
        # Outside the 15 minute window nothing is picked up
        later = early.scheduled_for + timedelta(days=1)
        assert alert_service.process_due_alerts(db, now=later)["processed"] == 0


class TestAlertActions:
    def test_snooze_rules(self, db, org, owner, deadline_factory):
        deadline = deadline_factory(due_in_days=20)
        alert = _alerts(db, deadline, urgency="early")[0]

        until = deadline.due_date - timedelta(days=2)
        snoozed = alert_service.snooze(db, org.id, alert.id, owner.id, until)
        assert snoozed.scheduled_for == until
        assert snoozed.snoozed_until == until

        with pytest.raises(InvalidInput):
            alert_service.snooze(db, org.id, alert.id, owner.id, deadline.due_date + timedelta(days=1))

        assert alert_service.unsnooze(db, org.id, alert.id, owner.id).snoozed_until is None

    def test_retry_only_failed(self, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        alert = _alerts(db, deadline)[0]
        with pytest.raises(InvalidState):
            alert_service.retry(db, org.id, alert.id, owner.id, now=NOW)

        alert.status = "failed"
        db.commit()
        retried = alert_service.retry(db, org.id, alert.id, owner.id, now=NOW)
        assert retried.status == "scheduled"
        assert retried.scheduled_for == NOW

    def test_member_sees_only_own_alerts(self, db, org, team, deadline_factory):
        member = team["member"]
        deadline_factory("Assigned", assigned_to=member.id)
        other = deadline_factory("Unassigned")

        visible = alert_service.list_by_org(db, org.id, member.id)
        assert visible and {a.user_id for a in visible} == {member.id}
        assert alert_service.list_by_deadline(db, org.id, other.id, member.id) == []
        with pytest.raises(Forbidden):
            alert_service.get_alert(db, org.id, _alerts(db, other)[0].id, member.id)
        with pytest.raises(Forbidden):
            alert_service.list_by_org(db, org.id, team["viewer"].id)


class TestAlertRoutes:
    def test_acknowledge_and_history(self, client, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        alert = _alerts(db, deadline)[0]
        headers = auth_headers(owner.email)

        res = client.post(
            f"/organizations/{org.id}/alerts/{alert.id}/acknowledge", json={"via": "email_link"}, headers=headers
        )
        assert res.status_code == 200
        assert res.json()["status"] == "acknowledged"
        assert res.json()["acknowledged_via"] == "email_link"

        history = client.get(f"/organizations/{org.id}/alerts/{alert.id}/history", headers=headers).json()
        assert history[0]["action"] == "acknowledged"

    def test_snooze_past_due_rejected(self, client, db, org, owner, deadline_factory):
        deadline = deadline_factory()
        alert = _alerts(db, deadline)[0]
        res = client.post(
            f"/organizations/{org.id}/alerts/{alert.id}/snooze",
            json={"until": (deadline.due_date + timedelta(hours=1)).isoformat()},
            headers=auth_headers(owner.email),
        )
        assert res.status_code == 422

    def test_retry_scheduled_alert_conflicts(self, client, db, org, owner, deadline_factory):
        alert = _alerts(db, deadline_factory())[0]
        res = client.post(f"/organizations/{org.id}/alerts/{alert.id}/retry", headers=auth_headers(owner.email))
        assert res.status_code == 409

    def test_preferences(self, client, org, owner, team):
        member_headers = auth_headers(team["member"].email)
        defaults = client.get(f"/organizations/{org.id}/alerts/preferences", headers=member_headers).json()
        assert defaults["alert_days"] == [30, 14, 7, 3, 1, 0]

        own = client.put(
            f"/organizations/{org.id}/alerts/preferences",
            json={"user_id": str(team["member"].id), "phone_number": "555-010-2030", "alert_days": [7, 1]},
            headers=member_headers,
        )
        assert own.status_code == 200
        assert own.json()["alert_days"] == [7, 1]

        org_wide = client.put(
            f"/organizations/{org.id}/alerts/preferences", json={"alert_days": [10]}, headers=member_headers
        )
        assert org_wide.status_code == 403

        resolved = client.get(
            f"/organizations/{org.id}/alerts/preferences",
            params={"user_id": str(team["member"].id)},
            headers=auth_headers(owner.email),
        ).json()
        assert resolved["phone_number"] == "555-010-2030"

    def test_send_test_alert(self, client, org, owner, email_outbox):
        headers = auth_headers(owner.email)
        res = client.post(f"/organizations/{org.id}/alerts/test", json={"channel": "email"}, headers=headers)
        assert res.status_code == 200
        assert res.json()["success"] is True
        assert email_outbox.sent[-1]["subject"] == "Test alert from Compliance Calendar"

        bad_phone = client.post(
            f"/organizations/{org.id}/alerts/test",
            json={"channel": "email_sms", "phone_number": "12345"},
            headers=headers,
        )
        assert bad_phone.status_code == 422
