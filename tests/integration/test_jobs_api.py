import pytest

from tests.helpers import auth_headers


@pytest.fixture
def superadmin(user_factory):
    return user_factory("ops@platform.test", is_superadmin=True)


def test_list_jobs(client, superadmin):
    res = client.get("/jobs/", headers=auth_headers(superadmin.email))
    assert res.status_code == 200
    jobs = {job["name"]: job for job in res.json()}
    assert jobs["process-due-alerts"]["every_minutes"] == 15
    assert jobs["onboarding-reminders"]["daily_hour"] == 14


def test_run_job(client, superadmin):
    res = client.post("/jobs/check-template-updates/run", headers=auth_headers(superadmin.email))
    assert res.status_code == 200
    assert res.json() == {"job": "check-template-updates", "result": {"checked": 0, "notified": 0}}

    purge = client.post("/jobs/purge-old-deleted-documents/run", headers=auth_headers(superadmin.email))
    assert purge.json()["result"] == 0


def test_unknown_job(client, superadmin):
    assert client.post("/jobs/reindex-everything/run", headers=auth_headers(superadmin.email)).status_code == 404


def test_org_owners_cannot_trigger_jobs(client, owner, org):
    headers = auth_headers(owner.email)
    assert client.get("/jobs/", headers=headers).status_code == 403
    assert client.post("/jobs/process-due-alerts/run", headers=headers).status_code == 403
