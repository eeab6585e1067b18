import uuid

from tests.helpers import auth_headers


class TestOrganizationLifecycle:
    def test_create_makes_caller_owner(self, client, db):
        res = client.post(
            "/organizations/",
            json={"name": "  Bright Smiles  ", "industry": "healthcare"},
            headers=auth_headers("founder@bright.test"),
        )
        assert res.status_code == 201, res.text
        body = res.json()
        assert body["name"] == "Bright Smiles"
        assert body["settings"]["due_soon_days"] == 14

        role = client.get(f"/organizations/{body['id']}/role", headers=auth_headers("founder@bright.test"))
        assert role.json()["role"] == "owner"
        assert "billing:write" in role.json()["permissions"]
        assert role.json()["assignable_roles"] == ["admin", "manager", "member", "viewer"]

    def test_guest_writes_rejected(self, client):
        res = client.post("/organizations/", json={"name": "Nope"})
        assert res.status_code == 401
        assert res.json()["error"] == "UNAUTHENTICATED"

    def test_reads_require_identity(self, client):
        assert client.get("/organizations/").status_code == 401

    def test_list_only_own_organizations(self, client, org, owner, outsider, organization_factory):
        organization_factory(outsider, name="Other Firm")
        res = client.get("/organizations/", headers=auth_headers(owner.email))
        assert [o["name"] for o in res.json()] == ["Acme Dental"]

    def test_update_settings_requires_settings_write(self, client, org, team):
        payload = {"settings": {"due_soon_days": 21}}
        denied = client.put(f"/organizations/{org.id}", json=payload, headers=auth_headers(team["manager"].email))
        assert denied.status_code == 403
        assert denied.json()["error"] == "FORBIDDEN"

        ok = client.put(f"/organizations/{org.id}", json=payload, headers=auth_headers(team["admin"].email))
        assert ok.status_code == 200
        assert ok.json()["settings"]["due_soon_days"] == 21

    def test_non_member_forbidden_and_missing_org_not_found(self, client, org, outsider):
        assert client.get(f"/organizations/{org.id}", headers=auth_headers(outsider.email)).status_code == 403
        missing = client.get(f"/organizations/{uuid.uuid4()}", headers=auth_headers(outsider.email))
        assert missing.status_code == 404
        assert missing.json()["error"] == "NOT_FOUND"


class TestMembers:
    def test_list_members_includes_owner(self, client, org, owner, team):
        res = client.get(f"/organizations/{org.id}/members", headers=auth_headers(team["viewer"].email))
        assert res.status_code == 200
        roles = {m["email"]: m["role"] for m in res.json()}
        assert roles[owner.email] == "owner"
        assert roles["viewer@acme.test"] == "viewer"
        me = [m for m in res.json() if m["is_current_user"]]
        assert me[0]["email"] == "viewer@acme.test"

    def test_admin_changes_lower_roles_only(self, client, org, team):
        headers = auth_headers(team["admin"].email)
        res = client.put(
            f"/organizations/{org.id}/members/{team['member'].id}/role", json={"role": "manager"}, headers=headers
        )
        assert res.status_code == 200
        escalate = client.put(
            f"/organizations/{org.id}/members/{team['member'].id}/role", json={"role": "admin"}, headers=headers
        )
        assert escalate.status_code == 403

    def test_owner_role_cannot_be_changed(self, client, org, owner, team):
        res = client.put(
            f"/organizations/{org.id}/members/{owner.id}/role",
            json={"role": "viewer"},
            headers=auth_headers(team["admin"].email),
        )
        assert res.status_code == 403

    def test_remove_member(self, client, org, owner, team):
        res = client.delete(f"/organizations/{org.id}/members/{team['viewer'].id}", headers=auth_headers(owner.email))
        assert res.status_code == 204
        gone = client.get(f"/organizations/{org.id}/deadlines/", headers=auth_headers(team["viewer"].email))
        assert gone.status_code == 403

    def test_leave_organization(self, client, org, owner, team):
        assert client.post(f"/organizations/{org.id}/leave", headers=auth_headers(team["member"].email)).status_code == 204
        assert client.post(f"/organizations/{org.id}/leave", headers=auth_headers(owner.email)).status_code == 403

    def test_transfer_ownership(self, client, org, owner, team):
        res = client.post(
            f"/organizations/{org.id}/transfer-ownership",
            json={"new_owner_user_id": str(team["manager"].id)},
            headers=auth_headers(owner.email),
        )
        assert res.status_code == 200
        assert res.json()["owner_user_id"] == str(team["manager"].id)
        old = client.get(f"/organizations/{org.id}/role", headers=auth_headers(owner.email))
        assert old.json()["role"] == "admin"

    def test_only_owner_transfers(self, client, org, team):
        res = client.post(
            f"/organizations/{org.id}/transfer-ownership",
            json={"new_owner_user_id": str(team["member"].id)},
            headers=auth_headers(team["admin"].email),
        )
        assert res.status_code == 403


class TestInvitations:
    def test_invite_and_accept(self, client, db, org, owner, email_outbox):
        res = client.post(
            f"/organizations/{org.id}/invitations",
            json={"email": "New.Hire@Acme.test", "role": "manager"},
            headers=auth_headers(owner.email),
        )
        assert res.status_code == 201, res.text
        invitation = res.json()
        assert invitation["email"] == "new.hire@acme.test"
        assert invitation["status"] == "pending"
        assert email_outbox.sent[-1]["to"] == "new.hire@acme.test"
        assert "Acme Dental" in email_outbox.sent[-1]["subject"]

        accepted = client.post(
            f"/organizations/{org.id}/invitations/{invitation['id']}/accept",
            headers=auth_headers("new.hire@acme.test"),
        )
        assert accepted.status_code == 200
        assert accepted.json()["role"] == "manager"

        pending = client.get(f"/organizations/{org.id}/invitations", headers=auth_headers(owner.email))
        assert pending.json() == []

    def test_duplicate_pending_invite(self, client, org, owner):
        payload = {"email": "dup@acme.test", "role": "member"}
        assert client.post(f"/organizations/{org.id}/invitations", json=payload, headers=auth_headers(owner.email)).status_code == 201
        again = client.post(f"/organizations/{org.id}/invitations", json=payload, headers=auth_headers(owner.email))
        assert again.status_code == 409
        assert again.json()["error"] == "DUPLICATE"

    def test_cannot_invite_owner_role(self, client, org, owner):
        res = client.post(
            f"/organizations/{org.id}/invitations",
            json={"email": "boss@acme.test", "role": "owner"},
            headers=auth_headers(owner.email),
        )
        assert res.status_code == 422

    def test_wrong_user_cannot_accept(self, client, org, owner):
        inv = client.post(
            f"/organizations/{org.id}/invitations",
            json={"email": "intended@acme.test", "role": "member"},
            headers=auth_headers(owner.email),
        ).json()
        res = client.post(
            f"/organizations/{org.id}/invitations/{inv['id']}/accept",
            headers=auth_headers("someone.else@acme.test"),
        )
        assert res.status_code == 403

    def test_revoke(self, client, org, owner):
        inv = client.post(
            f"/organizations/{org.id}/invitations",
            json={"email": "revoked@acme.test", "role": "viewer"},
            headers=auth_headers(owner.email),
        ).json()
        res = client.post(f"/organizations/{org.id}/invitations/{inv['id']}/revoke", headers=auth_headers(owner.email))
        assert res.status_code == 200
        assert res.json()["status"] == "revoked"
        again = client.post(f"/organizations/{org.id}/invitations/{inv['id']}/revoke", headers=auth_headers(owner.email))
        assert again.status_code == 409

    def test_user_limit_blocks_invites(self, client, org, owner, team):
        # professional plan: owner plus four members fills all five seats
        res = client.post(
            f"/organizations/{org.id}/invitations",
            json={"email": "sixth@acme.test", "role": "member"},
            headers=auth_headers(owner.email),
        )
        assert res.status_code == 402
        assert res.json()["detail"]["limit_type"] == "users"
