from compliance.db import schemas
from compliance.services import deadline_service
from tests.helpers import NOW, auth_headers


def test_deadline_activity_is_paginated(client, org, owner, deadline_factory):
    for i in range(3):
        deadline_factory(f"Filing {i}")
    headers = auth_headers(owner.email)

    page = client.get(
        f"/organizations/{org.id}/audit-log/",
        params={"action_type": "deadline_created", "page_size": 2},
        headers=headers,
    )
    assert page.status_code == 200
    body = page.json()
    assert body["total"] == 3
    assert len(body["items"]) == 2
    assert body["items"][0]["actor_email"] == owner.email
    assert body["items"][0]["target_type"] == "deadline"

    second = client.get(
        f"/organizations/{org.id}/audit-log/",
        params={"action_type": "deadline_created", "page_size": 2, "page": 2},
        headers=headers,
    ).json()
    assert len(second["items"]) == 1


def test_organization_creation_is_logged(client, org, owner):
    types = client.get(f"/organizations/{org.id}/audit-log/action-types", headers=auth_headers(owner.email)).json()
    assert "settings_updated" in types

    entries = client.get(
        f"/organizations/{org.id}/audit-log/", params={"action_type": "settings_updated"}, headers=auth_headers(owner.email)
    ).json()["items"]
    assert entries[-1]["metadata"]["event"] == "organization_created"


def test_resource_history(client, db, org, owner, team, deadline_factory):
    deadline = deadline_factory()
    deadline_service.update_deadline(
        db, org.id, deadline.id, team["manager"].id, schemas.DeadlineUpdate(title="License renewal (state)"), now=NOW
    )
    res = client.get(f"/organizations/{org.id}/audit-log/deadline/{deadline.id}", headers=auth_headers(team["admin"].email))
    assert res.status_code == 200
    assert [e["action_type"] for e in res.json()] == ["deadline_updated", "deadline_created"]
    assert res.json()[0]["metadata"] == {"fields": ["title"]}
    assert res.json()[0]["actor_email"] == "manager@acme.test"

    actors = client.get(f"/organizations/{org.id}/audit-log/users", headers=auth_headers(owner.email)).json()
    assert {a["email"] for a in actors} >= {owner.email, "manager@acme.test"}


def test_requires_audit_permission(client, org, team):
    res = client.get(f"/organizations/{org.id}/audit-log/", headers=auth_headers(team["manager"].email))
    assert res.status_code == 403


def test_rejects_oversized_pages(client, org, owner):
    res = client.get(f"/organizations/{org.id}/audit-log/", params={"page_size": 500}, headers=auth_headers(owner.email))
    assert res.status_code == 422
