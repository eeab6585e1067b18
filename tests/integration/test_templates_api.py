import uuid
from datetime import datetime, timezone

import pytest

from compliance.db import models, schemas
from compliance.errors import Duplicate, Forbidden, InvalidInput
from compliance.services import onboarding_service, template_service
from compliance.services.notification_service import NotificationService
from compliance.utils.feature_flags import refresh_feature_flag_cache
from tests.helpers import NOW, auth_headers


@pytest.fixture
def dental(db):
    assert template_service.seed_templates(db) == 3
    return template_service.get_by_slug(db, "healthcare-dental")


def _import(db, org, owner, template, **fields):
    return template_service.import_template(
        db, org.id, template.id, owner.id, schemas.TemplateImportRequest(**fields), now=NOW
    )


def test_seeding_is_idempotent(db, dental):
    assert template_service.seed_templates(db) == 3
    assert [i["industry"] for i in template_service.industries(db)] == ["Financial", "Healthcare", "Legal"]


def test_fixed_date_defaults_to_next_occurrence(db, org, owner, dental):
    record = _import(db, org, owner, dental, selected_deadline_ids=["osha-300a-posting"])
    assert record.template_version == "1.0.0"
    deadline = db.query(models.Deadline).filter(models.Deadline.id == uuid.UUID(record.imported_deadline_ids[0])).one()
    # Feb 1 has already passed in 2025
    assert deadline.due_date == datetime(2026, 2, 1, 23, 59, 59, tzinfo=timezone.utc)
    assert deadline.template_deadline_id == "osha-300a-posting"
    assert deadline.alert_days == [30, 14, 7]
    assert onboarding_service.get_progress(db, org.id).steps["template_imported"] is True


def test_custom_anchor_needs_a_date(db, org, owner, dental):
    with pytest.raises(InvalidInput) as excinfo:
        _import(db, org, owner, dental, selected_deadline_ids=["xray-equipment-inspection"])
    assert excinfo.value.details == {"deadline_id": "xray-equipment-inspection"}

    due = datetime(2025, 9, 15, tzinfo=timezone.utc)
    record = _import(
        db, org, owner, dental,
        selected_deadline_ids=["xray-equipment-inspection"],
        custom_dates={"xray-equipment-inspection": due},
    )
    assert record.customizations == {"xray-equipment-inspection": due.isoformat()}


def test_unknown_selection_and_duplicates(db, org, owner, dental):
    with pytest.raises(InvalidInput):
        _import(db, org, owner, dental, selected_deadline_ids=["not-a-deadline"])

    _import(db, org, owner, dental, selected_deadline_ids=["osha-300a-posting"])
    with pytest.raises(Duplicate):
        _import(db, org, owner, dental, selected_deadline_ids=["osha-300a-posting"])


def test_import_kill_switch(db, monkeypatch, org, owner, dental):
    monkeypatch.setenv("FEATURE_TEMPLATE_IMPORT_ENABLED", "false")
    refresh_feature_flag_cache()
    with pytest.raises(Forbidden):
        _import(db, org, owner, dental, selected_deadline_ids=["osha-300a-posting"])


def test_update_check_notifies_owner_once(db, org, owner, dental, email_outbox):
    _import(db, org, owner, dental, selected_deadline_ids=["osha-300a-posting"])
    assert template_service.check_for_updates(db) == {"checked": 1, "notified": 0}

    dental.version = "1.1.0"
    db.commit()
    assert template_service.check_for_updates(db) == {"checked": 1, "notified": 1}
    assert email_outbox.sent[-1]["subject"] == "Compliance template update: Dental Practice"
    notes = NotificationService(db).list(owner.id, org.id)
    assert [n.type for n in notes] == ["template_update"]
    assert notes[0].message == "Template updated from 1.0.0 to 1.1.0"

    assert template_service.check_for_updates(db)["notified"] == 0


def test_template_routes(client, org, owner, team, dental):
    headers = auth_headers(owner.email)
    listed = client.get("/templates", params={"industry": "Healthcare"}, headers=headers)
    assert listed.status_code == 200
    assert [(t["slug"], t["deadline_count"]) for t in listed.json()] == [("healthcare-dental", 7)]

    detail = client.get("/templates/by-slug/healthcare-dental", headers=headers).json()
    assert detail["id"] == str(dental.id)
    assert client.get("/templates/by-slug/veterinary", headers=headers).status_code == 404

    url = f"/organizations/{org.id}/templates/{dental.id}/import"
    assert client.get(url, headers=headers).json() is None

    missing = client.post(url, json={}, headers=headers)
    assert missing.status_code == 422

    denied = client.post(
        url, json={"selected_deadline_ids": ["osha-300a-posting"]}, headers=auth_headers(team["viewer"].email)
    )
    assert denied.status_code == 403

    created = client.post(url, json={"selected_deadline_ids": ["osha-300a-posting"]}, headers=headers)
    assert created.status_code == 201
    assert len(created.json()["imported_deadline_ids"]) == 1
    assert client.post(url, json={"selected_deadline_ids": ["osha-300a-posting"]}, headers=headers).status_code == 409
    assert client.get(url, headers=headers).json()["id"] == created.json()["id"]
