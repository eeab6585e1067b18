from datetime import timedelta

import pytest

from compliance.errors import LimitExceeded, NotFound
from compliance.services import billing_service, deadline_service
from compliance.services.notification_service import NotificationService
from tests.helpers import NOW, auth_headers


@pytest.fixture
def starter_org(user_factory, organization_factory):
    solo = user_factory("solo@clinic.test")
    return organization_factory(solo, name="Solo Clinic", plan="starter"), solo


class TestLimits:
    def test_starter_deadline_cap(self, db, starter_org, deadline_factory):
        clinic, solo = starter_org
        created = [
            deadline_factory(f"Item {i}", organization=clinic, user=solo, schedule_alerts=False)
            for i in range(25)
        ]
        with pytest.raises(LimitExceeded) as excinfo:
            deadline_factory("One too many", organization=clinic, user=solo)
        assert excinfo.value.details == {"limit_type": "deadlines", "current": 25, "limit": 25}

        # Completed deadlines no longer count against the cap
        deadline_service.complete_deadline(db, clinic.id, created[0].id, solo.id, now=NOW)
        assert deadline_factory("Fits now", organization=clinic, user=solo, schedule_alerts=False)

    def test_limit_route(self, client, org, owner, starter_org):
        unlimited = client.get(f"/organizations/{org.id}/billing/limits/deadlines", headers=auth_headers(owner.email))
        assert unlimited.json() == {"allowed": True, "remaining": "unlimited", "limit": "unlimited", "current": 0}

        clinic, solo = starter_org
        capped = client.get(f"/organizations/{clinic.id}/billing/limits/users", headers=auth_headers(solo.email))
        assert capped.json() == {"allowed": False, "remaining": 0, "limit": 1, "current": 1}

        unknown = client.get(f"/organizations/{org.id}/billing/limits/widgets", headers=auth_headers(owner.email))
        assert unknown.status_code == 422

    def test_form_pre_fill_limit(self, db, org):
        for _ in range(10):
            billing_service.increment_usage(db, org.id, "form_pre_fills", now=NOW)
        db.commit()
        result = billing_service.check_limit(db, org.id, "form_pre_fills", now=NOW)
        assert result == {"allowed": False, "remaining": 0, "limit": 10, "current": 10}


class TestSubscription:
    def test_plans_are_public(self, client):
        res = client.get("/billing/plans")
        assert res.status_code == 200
        plans = {p["name"]: p for p in res.json()}
        assert plans["starter"]["limits"]["deadlines"] == 25
        assert plans["business"]["limits"]["form_pre_fills"] == -1

    def test_default_plan_without_subscription(self, client, org, owner):
        res = client.get(f"/organizations/{org.id}/billing/subscription", headers=auth_headers(owner.email))
        assert res.status_code == 200
        assert res.json()["subscription"] is None
        assert res.json()["plan"]["name"] == "professional"

    def test_only_owner_manages_billing(self, client, org, team):
        headers = auth_headers(team["admin"].email)
        assert client.get(f"/organizations/{org.id}/billing/subscription", headers=headers).status_code == 403
        res = client.put(f"/organizations/{org.id}/billing/subscription", json={"plan": "business"}, headers=headers)
        assert res.status_code == 403

    def test_start_change_and_cancel(self, client, org, owner):
        headers = auth_headers(owner.email)
        url = f"/organizations/{org.id}/billing/subscription"

        started = client.put(url, json={"plan": "business", "billing_interval": "yearly"}, headers=headers)
        assert started.status_code == 200
        assert started.json()["status"] == "trialing"
        assert started.json()["billing_interval"] == "yearly"

        changed = client.put(url, json={"plan": "starter"}, headers=headers)
        assert changed.json()["plan"] == "starter"
        assert changed.json()["billing_interval"] == "monthly"

        at_end = client.post(f"{url}/cancel", headers=headers)
        assert at_end.json()["cancel_at_period_end"] is True
        assert at_end.json()["status"] == "trialing"

        now_cancel = client.post(f"{url}/cancel", params={"at_period_end": "false"}, headers=headers)
        assert now_cancel.json()["status"] == "canceled"
        assert now_cancel.json()["canceled_at"] is not None

    def test_unknown_plan_rejected(self, client, org, owner):
        res = client.put(
            f"/organizations/{org.id}/billing/subscription", json={"plan": "platinum"}, headers=auth_headers(owner.email)
        )
        assert res.status_code == 422

    def test_payment_failure_notifies_owner(self, db, org, owner):
        billing_service.create_subscription(db, org.id, "professional", trial=False, now=NOW)
        subscription = billing_service.mark_payment_failed(db, org.id)
        assert subscription.status == "past_due"
        assert [n.type for n in NotificationService(db).list(owner.id, org.id)] == ["payment_failed"]

    def test_cancel_without_subscription(self, client, org, owner):
        res = client.post(f"/organizations/{org.id}/billing/subscription/cancel", headers=auth_headers(owner.email))
        assert res.status_code == 404
        assert res.json()["message"] == "No subscription found"
        follow_up = client.get(f"/organizations/{org.id}/billing/subscription", headers=auth_headers(owner.email))
        assert follow_up.json()["subscription"] is None

    def test_payment_failure_without_subscription(self, db, org, owner):
        with pytest.raises(NotFound):
            billing_service.mark_payment_failed(db, org.id)
        assert NotificationService(db).list(owner.id, org.id) == []


class TestUsageAndTrial:
    def test_usage_route(self, client, org, owner, team):
        headers = auth_headers(owner.email)
        client.post(
            f"/organizations/{org.id}/deadlines/",
            json={"title": "Renew CLIA", "due_date": "2099-01-01T00:00:00Z", "category": "licenses"},
            headers=headers,
        )
        usage = client.get(f"/organizations/{org.id}/billing/usage", headers=headers)
        assert usage.status_code == 200
        assert usage.json()["deadlines_created"] == 1
        assert client.get(f"/organizations/{org.id}/billing/usage", headers=auth_headers(team["admin"].email)).status_code == 403

    def test_new_org_is_in_trial(self, client, org, team):
        res = client.get(f"/organizations/{org.id}/billing/trial", headers=auth_headers(team["viewer"].email))
        assert res.json()["is_trialing"] is True
        assert res.json()["days_remaining"] == 14
        assert res.json()["plan"] == "professional"

    def test_trial_countdown(self, db, org):
        billing_service.create_subscription(db, org.id, "business", now=NOW)
        status = billing_service.get_trial_status(db, org.id, now=NOW + timedelta(days=10))
        assert status["is_trialing"] is True
        assert status["days_remaining"] == 4

        ended = billing_service.get_trial_status(db, org.id, now=NOW + timedelta(days=15))
        assert ended["is_trialing"] is False
        assert ended["days_remaining"] == 0

    def test_trial_warnings_sent_once(self, db, org, owner, email_outbox):
        billing_service.create_subscription(db, org.id, "professional", now=NOW)
        first = billing_service.send_trial_warnings(db, now=NOW + timedelta(days=7))
        assert first == {"checked": 1, "sent": 1}
        assert email_outbox.sent[-1]["to"] == owner.email
        assert email_outbox.sent[-1]["subject"] == "Your trial ends in 7 days"

        again = billing_service.send_trial_warnings(db, now=NOW + timedelta(days=7, hours=2))
        assert again["sent"] == 0

        last_day = billing_service.send_trial_warnings(db, now=NOW + timedelta(days=13, hours=1))
        assert last_day["sent"] == 1
        assert email_outbox.sent[-1]["subject"] == "Your trial ends in 1 day"
