"""
CigroTrack
Tests — projects, favorites, board data and labels.
"""

from app.models import db
from app.models.project import Project
from app.services import project_service


class TestProjectCrud:
    def test_create(self, client, owner, team):
        res = client.post("/api/projects", json={
            "team_id": team["id"], "name": "API", "description": "Backend",
        }, headers=owner["headers"])
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["status"] == "active"
        assert data["owner_id"] == owner["user"]["id"]
        assert data["team"]["name"] == "Platform"
        assert data["is_favorite"] is False

    def test_requires_team_membership(self, client, team, outsider):
        res = client.post("/api/projects", json={"team_id": team["id"], "name": "X"},
                          headers=outsider["headers"])
        assert res.status_code == 404

    def test_validation(self, client, owner, team):
        res = client.post("/api/projects", json={"team_id": team["id"], "name": "x" * 101},
                          headers=owner["headers"])
        assert res.status_code == 400
        res = client.post("/api/projects", json={
            "team_id": team["id"], "name": "ok", "description": "d" * 2001,
        }, headers=owner["headers"])
        assert res.status_code == 400

    def test_limit_per_team(self, client, owner, team, monkeypatch):
        monkeypatch.setattr(project_service, "MAX_PROJECTS_PER_TEAM", 2)
        for i in range(2):
            res = client.post("/api/projects", json={"team_id": team["id"], "name": f"P{i}"},
                              headers=owner["headers"])
            assert res.status_code == 201
        res = client.post("/api/projects", json={"team_id": team["id"], "name": "P3"},
                          headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "LIMIT_EXCEEDED"
        assert Project.query.filter_by(team_id=team["id"]).count() == 2

    def test_sixteenth_project_refused(self, client, owner, team):
        for i in range(15):
            res = client.post("/api/projects", json={"team_id": team["id"], "name": f"P{i}"},
                              headers=owner["headers"])
            assert res.status_code == 201
        res = client.post("/api/projects", json={"team_id": team["id"], "name": "P15"},
                          headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "LIMIT_EXCEEDED"
        assert "15" in res.get_json()["error"]["message"]
        assert Project.query.filter_by(team_id=team["id"]).count() == 15

    def test_deleted_projects_free_the_limit(self, client, owner, team, monkeypatch):
        monkeypatch.setattr(project_service, "MAX_PROJECTS_PER_TEAM", 1)
        first = client.post("/api/projects", json={"team_id": team["id"], "name": "P1"},
                            headers=owner["headers"]).get_json()["data"]
        client.delete(f"/api/projects/{first['id']}", headers=owner["headers"])
        res = client.post("/api/projects", json={"team_id": team["id"], "name": "P2"},
                          headers=owner["headers"])
        assert res.status_code == 201

    def test_list_by_team_and_status(self, client, owner, team, project):
        other = client.post("/api/projects", json={"team_id": team["id"], "name": "Old"},
                            headers=owner["headers"]).get_json()["data"]
        client.post(f"/api/projects/{other['id']}/archive", headers=owner["headers"])

        res = client.get(f"/api/projects?team_id={team['id']}", headers=owner["headers"])
        assert {p["name"] for p in res.get_json()["data"]} == {"Website", "Old"}
        res = client.get("/api/projects?status=archived", headers=owner["headers"])
        assert [p["name"] for p in res.get_json()["data"]] == ["Old"]

    def test_list_across_teams(self, client, owner, team, project, outsider):
        client.post("/api/teams", json={"name": "Solo"}, headers=outsider["headers"])
        res = client.get("/api/projects", headers=owner["headers"])
        assert [p["id"] for p in res.get_json()["data"]] == [project["id"]]
        assert client.get("/api/projects", headers=outsider["headers"]).get_json()["data"] == []

    def test_get_missing(self, client, owner):
        res = client.get("/api/projects/does-not-exist", headers=owner["headers"])
        assert res.status_code == 404
        assert res.get_json()["error"]["message"] == "Project not found"

    def test_update_owner_only(self, client, owner, project, member):
        res = client.put(f"/api/projects/{project['id']}", json={"name": "Hacked"},
                         headers=member["headers"])
        assert res.status_code == 403
        res = client.put(f"/api/projects/{project['id']}", json={"name": "Site v2"},
                         headers=owner["headers"])
        assert res.status_code == 200
        assert res.get_json()["data"]["name"] == "Site v2"

    def test_archive_and_restore(self, client, owner, project):
        res = client.post(f"/api/projects/{project['id']}/archive", headers=owner["headers"])
        assert res.get_json()["data"]["status"] == "archived"
        res = client.put(f"/api/projects/{project['id']}", json={"status": "active"},
                         headers=owner["headers"])
        assert res.get_json()["data"]["status"] == "active"

    def test_soft_delete(self, client, owner, project):
        res = client.delete(f"/api/projects/{project['id']}", headers=owner["headers"])
        assert res.status_code == 200
        assert client.get(f"/api/projects/{project['id']}", headers=owner["headers"]).status_code == 404
        assert db.session.get(Project, project["id"]).deleted_at is not None


class TestFavorites:
    def test_toggle(self, client, owner, project):
        res = client.post(f"/api/projects/{project['id']}/favorite", headers=owner["headers"])
        assert res.get_json()["data"] == {"is_favorite": True}
        favs = client.get("/api/projects/favorites", headers=owner["headers"]).get_json()["data"]
        assert [p["id"] for p in favs] == [project["id"]]
        assert favs[0]["is_favorite"] is True

        res = client.post(f"/api/projects/{project['id']}/favorite", headers=owner["headers"])
        assert res.get_json()["data"] == {"is_favorite": False}
        assert client.get("/api/projects/favorites", headers=owner["headers"]).get_json()["data"] == []

    def test_favorites_are_per_user(self, client, owner, project, member):
        client.post(f"/api/projects/{project['id']}/favorite", headers=owner["headers"])
        res = client.get(f"/api/projects/{project['id']}", headers=member["headers"])
        assert res.get_json()["data"]["is_favorite"] is False


def _column(data, status):
    return next(c["issues"] for c in data["columns"] if c["status"] == status)


class TestBoard:
    def test_columns_always_present(self, client, owner, project):
        res = client.get(f"/api/projects/{project['id']}/board", headers=owner["headers"])
        data = res.get_json()["data"]
        assert [c["status"] for c in data["columns"]] == ["Backlog", "In Progress", "Done"]
        assert all(c["issues"] == [] for c in data["columns"])
        assert data["statuses"] == []
        assert data["wip_limits"] == []

    def test_issues_grouped_and_ordered(self, client, owner, project, make_issue):
        a = make_issue(title="A")
        b = make_issue(title="B")
        make_issue(title="C", status="Done")
        client.put(f"/api/issues/{a['id']}", json={"order": 5}, headers=owner["headers"])

        data = client.get(f"/api/projects/{project['id']}/board", headers=owner["headers"]).get_json()["data"]
        assert [i["title"] for i in _column(data, "Backlog")] == ["B", "A"]
        assert [i["title"] for i in _column(data, "Done")] == ["C"]
        assert b["order"] == 1

    def test_custom_columns_follow_board_order(self, client, owner, project):
        for name in ("Review", "QA", "Blocked"):
            client.post(f"/api/kanban/projects/{project['id']}/statuses", json={"name": name},
                        headers=owner["headers"])
        data = client.get(f"/api/projects/{project['id']}/board", headers=owner["headers"]).get_json()["data"]
        assert [c["status"] for c in data["columns"]] == [
            "Backlog", "In Progress", "Done", "Review", "QA", "Blocked",
        ]
        assert [s["name"] for s in data["statuses"]] == ["Review", "QA", "Blocked"]


class TestLabels:
    def test_create_and_list(self, client, owner, project):
        res = client.post(f"/api/projects/{project['id']}/labels", json={"name": "bug", "color": "#ff0000"},
                          headers=owner["headers"])
        assert res.status_code == 201
        assert res.get_json()["data"]["color"] == "#FF0000"

        res = client.post(f"/api/projects/{project['id']}/labels", json={"name": "chore"},
                          headers=owner["headers"])
        assert res.get_json()["data"]["color"] == "#6B7280"

        labels = client.get(f"/api/projects/{project['id']}/labels", headers=owner["headers"]).get_json()["data"]
        assert [lb["name"] for lb in labels] == ["bug", "chore"]

    def test_duplicate_name(self, client, owner, project):
        client.post(f"/api/projects/{project['id']}/labels", json={"name": "bug"}, headers=owner["headers"])
        res = client.post(f"/api/projects/{project['id']}/labels", json={"name": "bug"},
                          headers=owner["headers"])
        assert res.status_code == 409

    def test_bad_color(self, client, owner, project):
        res = client.post(f"/api/projects/{project['id']}/labels", json={"name": "x", "color": "red"},
                          headers=owner["headers"])
        assert res.status_code == 400

    def test_delete_detaches_from_issues(self, client, owner, project, make_issue):
        label = client.post(f"/api/projects/{project['id']}/labels", json={"name": "bug"},
                            headers=owner["headers"]).get_json()["data"]
        issue = make_issue(labels=[label["id"]])
        assert len(issue["labels"]) == 1

        res = client.delete(f"/api/projects/{project['id']}/labels/{label['id']}", headers=owner["headers"])
        assert res.status_code == 200
        res = client.get(f"/api/issues/{issue['id']}", headers=owner["headers"])
        assert res.get_json()["data"]["labels"] == []
