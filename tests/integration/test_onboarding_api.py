from datetime import timedelta

import pytest

from compliance.errors import InvalidInput
from compliance.services import onboarding_service
from tests.helpers import NOW, auth_headers


def test_new_org_starts_checklist(db, org):
    progress = onboarding_service.get_progress(db, org.id)
    assert progress.steps["account_created"] is True
    assert progress.steps["org_setup"] is True
    assert onboarding_service.get_incomplete(progress) == [
        "template_imported",
        "alerts_configured",
        "first_deadline",
        "team_invited",
        "first_completion",
    ]


def test_first_deadline_marks_step(db, org, deadline_factory):
    deadline_factory()
    progress = onboarding_service.get_progress(db, org.id)
    assert progress.steps["first_deadline"] is True
    assert progress.last_activity_at == NOW


def test_unknown_step(db, org):
    with pytest.raises(InvalidInput):
        onboarding_service.mark_step_complete(db, org.id, "bought_coffee")


def test_all_steps_complete_the_checklist(db, org):
    for step in onboarding_service.ONBOARDING_STEPS:
        onboarding_service.mark_step_complete(db, org.id, step, now=NOW)
    db.commit()
    assert onboarding_service.get_progress(db, org.id).completed_at == NOW


def test_reminders_follow_inactivity(db, org, owner, email_outbox):
    progress = onboarding_service.get_progress(db, org.id)
    progress.last_activity_at = NOW
    db.commit()

    quiet = onboarding_service.send_onboarding_reminders(db, now=NOW + timedelta(hours=12))
    assert quiet == {"processed": 1, "sent_24h": 0, "sent_7d": 0}

    day = onboarding_service.send_onboarding_reminders(db, now=NOW + timedelta(hours=30))
    assert day["sent_24h"] == 1
    assert email_outbox.sent[-1]["to"] == owner.email
    assert email_outbox.sent[-1]["subject"] == "Finish setting up Acme Dental"

    again = onboarding_service.send_onboarding_reminders(db, now=NOW + timedelta(hours=40))
    assert again["sent_24h"] == 0

    week = onboarding_service.send_onboarding_reminders(db, now=NOW + timedelta(days=7, hours=2))
    assert week["sent_7d"] == 1
    assert set(onboarding_service.get_progress(db, org.id).reminders_sent) == {"24h", "7d"}


def test_completed_orgs_get_no_reminders(db, org, email_outbox):
    onboarding_service.mark_complete(db, org.id, now=NOW)
    result = onboarding_service.send_onboarding_reminders(db, now=NOW + timedelta(hours=30))
    assert result["processed"] == 0
    assert email_outbox.sent == []


def test_onboarding_routes(client, org, owner, team):
    headers = auth_headers(owner.email)
    url = f"/organizations/{org.id}/onboarding"

    mine = client.get("/onboarding", headers=headers)
    assert [p["organization_id"] for p in mine.json()] == [str(org.id)]

    step = client.post(f"{url}/steps", json={"step": "template_imported"}, headers=headers)
    assert step.status_code == 200
    assert "template_imported" not in step.json()["incomplete_steps"]

    bad = client.post(f"{url}/steps", json={"step": "bought_coffee"}, headers=headers)
    assert bad.status_code == 422

    done = client.post(f"{url}/complete", headers=auth_headers(team["member"].email))
    assert done.json()["incomplete_steps"] == []
    assert done.json()["completed_at"] is not None

    assert client.post(f"{url}/reset", headers=auth_headers(team["manager"].email)).status_code == 403
    reset = client.post(f"{url}/reset", headers=headers)
    assert reset.json()["completed_at"] is None
    assert "org_setup" in reset.json()["incomplete_steps"]


def test_onboarding_requires_membership(client, org, outsider):
    res = client.get(f"/organizations/{org.id}/onboarding", headers=auth_headers(outsider.email))
    assert res.status_code == 403
