import uuid

import pytest

from compliance.services.notification_service import NotificationService
from tests.helpers import auth_headers


@pytest.fixture
def inbox(db, org, owner, team):
    service = NotificationService(db)
    created = [
        service.notify(
            organization_id=org.id,
            user_id=owner.id,
            type="deadline_reminder",
            title=f"Deadline Reminder: item {i}",
            message="Due soon",
            data={"index": i},
        )
        for i in range(3)
    ]
    service.notify(
        organization_id=org.id, user_id=team["admin"].id, type="escalation", title="Alert Escalation", message="x"
    )
    db.commit()
    return created


def test_list_only_own_notifications(client, owner, inbox):
    res = client.get("/notifications/", headers=auth_headers(owner.email))
    assert res.status_code == 200
    assert len(res.json()) == 3
    assert {n["type"] for n in res.json()} == {"deadline_reminder"}


def test_mark_read_and_unread_count(client, owner, inbox):
    headers = auth_headers(owner.email)
    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 3}

    read = client.post(f"/notifications/{inbox[0].id}/read", headers=headers)
    assert read.status_code == 200
    assert read.json()["read_at"] is not None
    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 2}

    unread = client.get("/notifications/", params={"unread_only": "true"}, headers=headers).json()
    assert inbox[0].id not in {uuid.UUID(n["id"]) for n in unread}

    assert client.post("/notifications/read-all", headers=headers).json() == {"updated": 2}
    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 0}


def test_cannot_touch_someone_elses_notification(client, team, inbox):
    res = client.post(f"/notifications/{inbox[0].id}/read", headers=auth_headers(team["admin"].email))
    assert res.status_code == 404


def test_delete(client, owner, inbox):
    headers = auth_headers(owner.email)
    assert client.delete(f"/notifications/{inbox[1].id}", headers=headers).status_code == 204
    assert len(client.get("/notifications/", headers=headers).json()) == 2
    assert client.delete(f"/notifications/{inbox[1].id}", headers=headers).status_code == 404
