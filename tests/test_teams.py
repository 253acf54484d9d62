"""
CigroTrack
Tests — teams, invitations, membership roles and the activity feed.
"""

from datetime import timedelta

from app.models import db, utcnow
from app.models.notification import Notification
from app.models.team import TeamInvite, TeamMember
from app.services.team_service import expire_invites


def _activity(client, team, user):
    res = client.get(f"/api/teams/{team['id']}/activity", headers=user["headers"])
    assert res.status_code == 200
    return [a["action"] for a in res.get_json()["data"]]


# ═══════════════════════════════════════════════════════════════
# Team CRUD
# ═══════════════════════════════════════════════════════════════

class TestTeamCrud:
    def test_create_team_makes_owner(self, client, owner):
        res = client.post("/api/teams", json={"name": "  Core  "}, headers=owner["headers"])
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["name"] == "Core"
        assert data["owner_id"] == owner["user"]["id"]
        assert data["my_role"] == "OWNER"
        assert data["member_count"] == 1

    def test_create_team_logs_activity(self, client, owner, team):
        assert _activity(client, team, owner) == ["created team"]

    def test_name_validation(self, client, owner):
        res = client.post("/api/teams", json={"name": "x" * 51}, headers=owner["headers"])
        assert res.status_code == 400
        res = client.post("/api/teams", json={}, headers=owner["headers"])
        assert res.status_code == 400

    def test_name_boundaries(self, client, owner):
        res = client.post("/api/teams", json={"name": "n" * 50}, headers=owner["headers"])
        assert res.status_code == 201
        assert res.get_json()["data"]["name"] == "n" * 50
        res = client.post("/api/teams", json={"name": "   "}, headers=owner["headers"])
        assert res.status_code == 400

    def test_list_only_my_teams(self, client, owner, team, outsider):
        client.post("/api/teams", json={"name": "Other"}, headers=outsider["headers"])
        res = client.get("/api/teams", headers=owner["headers"])
        names = [t["name"] for t in res.get_json()["data"]]
        assert names == ["Platform"]

    def test_non_member_gets_404(self, client, team, outsider):
        res = client.get(f"/api/teams/{team['id']}", headers=outsider["headers"])
        assert res.status_code == 404

    def test_rename_by_owner(self, client, owner, team):
        res = client.put(f"/api/teams/{team['id']}", json={"name": "Infra"}, headers=owner["headers"])
        assert res.status_code == 200
        assert res.get_json()["data"]["name"] == "Infra"
        assert _activity(client, team, owner)[0] == 'updated team name to "Infra"'

    def test_rename_by_member_forbidden(self, client, team, member):
        res = client.put(f"/api/teams/{team['id']}", json={"name": "Nope"}, headers=member["headers"])
        assert res.status_code == 403

    def test_delete_owner_only(self, client, owner, team, member):
        res = client.delete(f"/api/teams/{team['id']}", headers=member["headers"])
        assert res.status_code == 403
        res = client.delete(f"/api/teams/{team['id']}", headers=owner["headers"])
        assert res.status_code == 200
        assert client.get(f"/api/teams/{team['id']}", headers=owner["headers"]).status_code == 404
        assert client.get("/api/teams", headers=owner["headers"]).get_json()["data"] == []


# ═══════════════════════════════════════════════════════════════
# Invitations
# ═══════════════════════════════════════════════════════════════

class TestInvites:
    def test_invite_normalizes_email_and_notifies(self, client, owner, team, make_user):
        invitee = make_user(email="new@acme.io")
        res = client.post(f"/api/teams/{team['id']}/invite",
                          json={"email": "  NEW@acme.io "}, headers=owner["headers"])
        assert res.status_code == 201
        invite = res.get_json()["data"]
        assert invite["email"] == "new@acme.io"
        assert invite["role"] == "MEMBER"
        assert invite["status"] == "pending"

        notes = Notification.query.filter_by(user_id=invitee["user"]["id"], type="team_invite").all()
        assert len(notes) == 1
        assert _activity(client, team, owner)[0] == "invited new@acme.io as MEMBER"

    def test_duplicate_pending_invite(self, client, owner, team):
        client.post(f"/api/teams/{team['id']}/invite", json={"email": "x@acme.io"}, headers=owner["headers"])
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "x@acme.io"}, headers=owner["headers"])
        assert res.status_code == 409

    def test_invite_as_owner_rejected(self, client, owner, team, make_user, add_member):
        admin = make_user(email="admin@acme.io")
        add_member(team, admin, role="ADMIN")
        res = client.post(f"/api/teams/{team['id']}/invite",
                          json={"email": "crony@acme.io", "role": "OWNER"}, headers=admin["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "INVALID_ROLE"
        assert TeamInvite.query.filter_by(email="crony@acme.io").count() == 0

    def test_reinvite_after_expiry(self, client, owner, team):
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "again@acme.io"},
                          headers=owner["headers"])
        stale_id = res.get_json()["data"]["id"]
        stale = db.session.get(TeamInvite, stale_id)
        stale.expires_at = utcnow() - timedelta(hours=1)
        db.session.commit()

        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "again@acme.io"},
                          headers=owner["headers"])
        assert res.status_code == 201
        assert res.get_json()["data"]["id"] != stale_id
        db.session.expire_all()
        assert db.session.get(TeamInvite, stale_id).status == "expired"

    def test_invite_existing_member(self, client, owner, team, member):
        res = client.post(f"/api/teams/{team['id']}/invite",
                          json={"email": member["user"]["email"]}, headers=owner["headers"])
        assert res.status_code == 409
        assert res.get_json()["error"]["code"] == "ALREADY_MEMBER"

    def test_member_cannot_invite(self, client, team, member):
        res = client.post(f"/api/teams/{team['id']}/invite",
                          json={"email": "y@acme.io"}, headers=member["headers"])
        assert res.status_code == 403

    def test_pending_invites_for_user(self, client, owner, team, make_user):
        invitee = make_user(email="inv@acme.io")
        client.post(f"/api/teams/{team['id']}/invite", json={"email": "inv@acme.io"}, headers=owner["headers"])
        res = client.get("/api/teams/invites", headers=invitee["headers"])
        invites = res.get_json()["data"]
        assert len(invites) == 1
        assert invites[0]["team"]["name"] == "Platform"
        assert invites[0]["invited_by_user"]["id"] == owner["user"]["id"]

    def test_accept_creates_membership(self, client, owner, team, make_user, add_member):
        invitee = make_user(email="join@acme.io")
        membership = add_member(team, invitee, role="ADMIN")
        assert membership["role"] == "ADMIN"
        res = client.get(f"/api/teams/{team['id']}", headers=invitee["headers"])
        assert res.get_json()["data"]["my_role"] == "ADMIN"
        assert "joined team" in _activity(client, team, owner)

    def test_accept_wrong_email(self, client, owner, team, outsider):
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "someone@acme.io"},
                          headers=owner["headers"])
        invite_id = res.get_json()["data"]["id"]
        res = client.post(f"/api/teams/invites/{invite_id}/accept", headers=outsider["headers"])
        assert res.status_code == 403

    def test_accept_expired_invite(self, client, owner, team, make_user):
        invitee = make_user(email="late@acme.io")
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "late@acme.io"},
                          headers=owner["headers"])
        invite_id = res.get_json()["data"]["id"]
        invite = db.session.get(TeamInvite, invite_id)
        invite.expires_at = utcnow() - timedelta(days=1)
        db.session.commit()

        res = client.post(f"/api/teams/invites/{invite_id}/accept", headers=invitee["headers"])
        assert res.status_code == 400
        assert db.session.get(TeamInvite, invite_id).status == "expired"

    def test_decline(self, client, owner, team, make_user):
        invitee = make_user(email="no@acme.io")
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "no@acme.io"},
                          headers=owner["headers"])
        invite_id = res.get_json()["data"]["id"]
        res = client.post(f"/api/teams/invites/{invite_id}/decline", headers=invitee["headers"])
        assert res.status_code == 200
        assert db.session.get(TeamInvite, invite_id).status == "expired"
        assert client.get("/api/teams/invites", headers=invitee["headers"]).get_json()["data"] == []

    def test_resend_extends_expiry(self, client, owner, team):
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "r@acme.io"},
                          headers=owner["headers"])
        invite_id = res.get_json()["data"]["id"]
        invite = db.session.get(TeamInvite, invite_id)
        invite.expires_at = utcnow() + timedelta(hours=1)
        db.session.commit()

        res = client.post(f"/api/teams/invites/{invite_id}/resend", headers=owner["headers"])
        assert res.status_code == 200
        assert res.get_json()["message"] == "Invitation resent successfully"
        assert res.get_json()["data"]["expires_at"] > (utcnow() + timedelta(days=6)).isoformat()

    def test_revoke_deletes_invite(self, client, owner, team):
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "gone@acme.io"},
                          headers=owner["headers"])
        invite_id = res.get_json()["data"]["id"]
        res = client.delete(f"/api/teams/{team['id']}/invites/{invite_id}", headers=owner["headers"])
        assert res.status_code == 200
        assert db.session.get(TeamInvite, invite_id) is None
        assert _activity(client, team, owner)[0] == "revoked invite for gone@acme.io"

    def test_expire_invites_job(self, client, owner, team):
        res = client.post(f"/api/teams/{team['id']}/invite", json={"email": "old@acme.io"},
                          headers=owner["headers"])
        invite_id = res.get_json()["data"]["id"]
        assert expire_invites(now=utcnow() + timedelta(days=8)) == 1
        assert db.session.get(TeamInvite, invite_id).status == "expired"


# ═══════════════════════════════════════════════════════════════
# Members & roles
# ═══════════════════════════════════════════════════════════════

class TestMembers:
    def _owner_membership(self, team_id, user_id):
        return TeamMember.query.filter_by(team_id=team_id, user_id=user_id).one()

    def test_list_members(self, client, owner, team, member):
        res = client.get(f"/api/teams/{team['id']}/members", headers=owner["headers"])
        members = res.get_json()["data"]
        assert {m["role"] for m in members} == {"OWNER", "MEMBER"}
        assert all(m["user"]["email"] for m in members)

    def test_promote_to_admin_notifies(self, client, owner, team, member):
        res = client.put(f"/api/teams/{team['id']}/members/{member['membership']['id']}/role",
                         json={"role": "ADMIN"}, headers=owner["headers"])
        assert res.status_code == 200
        assert res.get_json()["message"] == "Role changed successfully"
        assert res.get_json()["data"]["role"] == "ADMIN"
        assert Notification.query.filter_by(user_id=member["user"]["id"], type="role_changed").count() == 1
        assert _activity(client, team, owner)[0] == "changed Mia Member's role to ADMIN"

    def test_only_owner_changes_roles(self, client, owner, team, member):
        owner_member = self._owner_membership(team["id"], owner["user"]["id"])
        res = client.put(f"/api/teams/{team['id']}/members/{owner_member.id}/role",
                         json={"role": "ADMIN"}, headers=member["headers"])
        assert res.status_code == 403

    def test_invalid_role(self, client, owner, team, member):
        res = client.put(f"/api/teams/{team['id']}/members/{member['membership']['id']}/role",
                         json={"role": "GOD"}, headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "INVALID_ROLE"

    def test_owner_to_member_rejected(self, client, owner, team):
        owner_member = self._owner_membership(team["id"], owner["user"]["id"])
        res = client.put(f"/api/teams/{team['id']}/members/{owner_member.id}/role",
                         json={"role": "MEMBER"}, headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "INVALID_ROLE_CHANGE"

    def test_sole_owner_cannot_demote(self, client, owner, team):
        owner_member = self._owner_membership(team["id"], owner["user"]["id"])
        res = client.put(f"/api/teams/{team['id']}/members/{owner_member.id}/role",
                         json={"role": "ADMIN"}, headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "SOLE_OWNER"

    def test_transfer_ownership(self, client, owner, team, member):
        res = client.put(f"/api/teams/{team['id']}/members/{member['membership']['id']}/role",
                         json={"role": "OWNER"}, headers=owner["headers"])
        assert res.status_code == 200

        detail = client.get(f"/api/teams/{team['id']}", headers=member["headers"]).get_json()["data"]
        assert detail["owner_id"] == member["user"]["id"]
        assert detail["my_role"] == "OWNER"
        mine = client.get(f"/api/teams/{team['id']}", headers=owner["headers"]).get_json()["data"]
        assert mine["my_role"] == "ADMIN"
        assert _activity(client, team, owner)[0] == "transferred ownership to Mia Member"

    def test_owner_removes_member(self, client, owner, team, member):
        res = client.delete(f"/api/teams/{team['id']}/members/{member['membership']['id']}",
                            headers=owner["headers"])
        assert res.status_code == 200
        assert res.get_json()["message"] == "Member removed successfully"
        assert client.get(f"/api/teams/{team['id']}", headers=member["headers"]).status_code == 404
        assert _activity(client, team, owner)[0] == "removed Mia Member from team"

    def test_owner_cannot_be_removed(self, client, owner, team, member, add_member, make_user):
        admin = make_user(email="admin@acme.io")
        add_member(team, admin, role="ADMIN")
        owner_member = self._owner_membership(team["id"], owner["user"]["id"])
        res = client.delete(f"/api/teams/{team['id']}/members/{owner_member.id}",
                            headers=admin["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "CANNOT_REMOVE_OWNER"
        assert TeamMember.query.filter_by(id=owner_member.id).count() == 1

    def test_member_cannot_remove_others(self, client, owner, team, member):
        owner_member = self._owner_membership(team["id"], owner["user"]["id"])
        res = client.delete(f"/api/teams/{team['id']}/members/{owner_member.id}",
                            headers=member["headers"])
        assert res.status_code == 403

    def test_leave_team(self, client, owner, team, member):
        res = client.post(f"/api/teams/{team['id']}/leave", headers=member["headers"])
        assert res.status_code == 200
        assert res.get_json()["message"] == "Left team successfully"
        assert _activity(client, team, owner)[0] == "left team"

    def test_owner_cannot_leave(self, client, owner, team):
        res = client.post(f"/api/teams/{team['id']}/leave", headers=owner["headers"])
        assert res.status_code == 400


class TestActivity:
    def test_paginated_newest_first(self, client, owner, team):
        for i in range(3):
            client.put(f"/api/teams/{team['id']}", json={"name": f"Name {i}"}, headers=owner["headers"])
        res = client.get(f"/api/teams/{team['id']}/activity?page=1&limit=2", headers=owner["headers"])
        body = res.get_json()
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 4, "total_pages": 2}
        assert body["data"][0]["action"] == 'updated team name to "Name 2"'
