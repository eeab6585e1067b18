from unittest.mock import Mock

import pytest

from compliance.db.repositories import alerts as repo_alerts
from compliance.services import alert_service

TOKEN = "hook-secret"


@pytest.fixture(autouse=True)
def _webhook_token(monkeypatch):
    monkeypatch.setenv("DELIVERY_WEBHOOK_TOKEN", TOKEN)


def _sent_alert(db, deadline, channel, sms=None):
    alert = next(a for a in repo_alerts.list_by_deadline(db, deadline.id) if a.channel == channel)
    result = alert_service.process_alert(db, alert.id, now=alert.scheduled_for, sms=sms)
    assert result == {"success": True}
    db.refresh(alert)
    return alert


def _twilio(message_id):
    sms = Mock()
    sms.send_sms.return_value = {"success": True, "provider": "twilio", "message_id": message_id}
    return sms


class TestDeliveryStatus:
    def test_sent_alert_keeps_provider_message_id(self, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "email")
        assert alert.status == "sent"
        assert alert.provider_message_id == "msg-1"

    def test_in_app_alert_is_delivered_on_send(self, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "in_app")
        assert alert.status == "delivered"
        assert alert.delivered_at == alert.scheduled_for

    def test_delivered_then_bounced(self, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "email")

        alert_service.record_delivery_status(db, "msg-1", delivered=True)
        db.refresh(alert)
        assert alert.status == "delivered"
        assert alert.delivered_at is not None

        alert_service.record_delivery_status(db, "msg-1", delivered=False, error="bounced")
        db.refresh(alert)
        assert alert.status == "failed"
        assert alert.error_message == "bounced"

    def test_unknown_message_ignored(self, db):
        assert alert_service.record_delivery_status(db, "msg-unknown", delivered=True) is None

    def test_late_delivery_does_not_revive_failed_alert(self, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "email")
        alert_service.record_delivery_status(db, "msg-1", delivered=False, error="bounced")
        alert_service.record_delivery_status(db, "msg-1", delivered=True)
        db.refresh(alert)
        assert alert.status == "failed"


class TestResendWebhook:
    def test_delivered_event(self, client, db, org, owner, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "email")
        res = client.post(
            f"/webhooks/resend?token={TOKEN}",
            json={"type": "email.delivered", "data": {"email_id": "msg-1"}},
        )
        assert res.status_code == 200
        assert res.json() == {"received": True}

        db.refresh(alert)
        assert alert.status == "delivered"
        history = alert_service.alert_history(db, org.id, alert.id, owner.id)
        assert history[0].action == "delivered"

    def test_bounce_marks_failed(self, client, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "email")
        client.post(
            f"/webhooks/resend?token={TOKEN}",
            json={"type": "email.bounced", "data": {"email_id": "msg-1"}},
        )
        db.refresh(alert)
        assert alert.status == "failed"
        assert alert.error_message == "Resend reported email.bounced"

    def test_other_events_are_acknowledged(self, client, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "email")
        res = client.post(
            f"/webhooks/resend?token={TOKEN}",
            json={"type": "email.opened", "data": {"email_id": "msg-1"}},
        )
        assert res.status_code == 200
        db.refresh(alert)
        assert alert.status == "sent"

    def test_bad_token_rejected(self, client):
        res = client.post("/webhooks/resend?token=wrong", json={"type": "email.delivered", "data": {}})
        assert res.status_code == 401

    def test_unset_token_rejects_everything(self, client, monkeypatch):
        monkeypatch.delenv("DELIVERY_WEBHOOK_TOKEN")
        res = client.post("/webhooks/resend", json={"type": "email.delivered", "data": {}})
        assert res.status_code == 401


class TestTwilioWebhook:
    def test_undelivered_sms(self, client, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "sms", sms=_twilio("SM123"))
        res = client.post(
            f"/webhooks/twilio?token={TOKEN}",
            data={"MessageSid": "SM123", "MessageStatus": "undelivered", "ErrorCode": "30003"},
        )
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/xml")
        assert "<Response></Response>" in res.text

        db.refresh(alert)
        assert alert.status == "failed"
        assert alert.error_message == "Twilio reported undelivered (error 30003)"

    def test_delivered_sms(self, client, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "sms", sms=_twilio("SM456"))
        client.post(f"/webhooks/twilio?token={TOKEN}", data={"MessageSid": "SM456", "MessageStatus": "delivered"})
        db.refresh(alert)
        assert alert.status == "delivered"

    def test_intermediate_status_is_ignored(self, client, db, deadline_factory):
        alert = _sent_alert(db, deadline_factory(), "sms", sms=_twilio("SM789"))
        client.post(f"/webhooks/twilio?token={TOKEN}", data={"MessageSid": "SM789", "MessageStatus": "queued"})
        db.refresh(alert)
        assert alert.status == "sent"
