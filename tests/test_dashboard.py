"""
CigroTrack
Tests — project, personal and team dashboards.
"""

from datetime import datetime, timedelta, timezone


def _in_days(days):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


class TestProjectDashboard:
    def test_counts_and_completion(self, client, owner, project, make_issue):
        make_issue(priority="HIGH")
        make_issue(status="Done")
        make_issue(status="Done", priority="LOW")
        make_issue(status="In Progress")

        res = client.get(f"/api/dashboard/projects/{project['id']}", headers=owner["headers"])
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["total_issues"] == 4
        assert data["completion_rate"] == 0.5
        by_status = {row["status"]: row["count"] for row in data["issue_count_by_status"]}
        assert by_status == {"Backlog": 1, "Done": 2, "In Progress": 1}
        assert data["issue_count_by_priority"] == [
            {"priority": "HIGH", "count": 1},
            {"priority": "MEDIUM", "count": 2},
            {"priority": "LOW", "count": 1},
        ]
        assert len(data["recently_created_issues"]) == 4

    def test_due_soon_window(self, client, owner, project, make_issue):
        soon = make_issue(title="soon", due_date=_in_days(2))
        make_issue(title="later", due_date=_in_days(30))
        make_issue(title="overdue", due_date=_in_days(-2))
        data = client.get(f"/api/dashboard/projects/{project['id']}", headers=owner["headers"]).get_json()["data"]
        assert [i["id"] for i in data["issues_due_soon"]] == [soon["id"]]

    def test_empty_project(self, client, owner, project):
        data = client.get(f"/api/dashboard/projects/{project['id']}", headers=owner["headers"]).get_json()["data"]
        assert data["total_issues"] == 0
        assert data["completion_rate"] == 0

    def test_deleted_issues_excluded(self, client, owner, project, make_issue):
        gone = make_issue()
        client.delete(f"/api/issues/{gone['id']}", headers=owner["headers"])
        data = client.get(f"/api/dashboard/projects/{project['id']}", headers=owner["headers"]).get_json()["data"]
        assert data["total_issues"] == 0

    def test_outsider(self, client, outsider, project):
        res = client.get(f"/api/dashboard/projects/{project['id']}", headers=outsider["headers"])
        assert res.status_code == 404


class TestPersonalDashboard:
    def test_assigned_grouped_by_status(self, client, owner, member, make_issue):
        make_issue(assignee_id=member["user"]["id"])
        make_issue(assignee_id=member["user"]["id"], status="Done")
        make_issue(assignee_id=member["user"]["id"], due_date=_in_days(3))
        make_issue()

        data = client.get("/api/dashboard/personal", headers=member["headers"]).get_json()["data"]
        assert data["total_assigned_count"] == 3
        groups = {g["status"]: len(g["issues"]) for g in data["assigned_issues"]}
        assert groups == {"Backlog": 2, "Done": 1}
        assert len(data["issues_due_soon"]) == 1

    def test_recent_comments_and_projects(self, client, owner, project, issue):
        client.post("/api/comments", json={"issue_id": issue["id"], "content": "noted"},
                    headers=owner["headers"])
        data = client.get("/api/dashboard/personal", headers=owner["headers"]).get_json()["data"]
        assert [c["content"] for c in data["recent_comments"]] == ["noted"]
        assert data["teams_and_projects"][0]["team"]["name"] == "Platform"
        assert [p["name"] for p in data["teams_and_projects"][0]["projects"]] == ["Website"]

    def test_user_without_teams(self, client, outsider):
        data = client.get("/api/dashboard/personal", headers=outsider["headers"]).get_json()["data"]
        assert data["total_assigned_count"] == 0
        assert data["teams_and_projects"] == []


class TestTeamStatistics:
    def test_statistics(self, client, owner, member, team, make_issue):
        make_issue(assignee_id=member["user"]["id"], status="Done")
        make_issue(assignee_id=member["user"]["id"])
        make_issue()

        res = client.get(f"/api/dashboard/teams/{team['id']}/statistics?period=7days",
                         headers=owner["headers"])
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["period"] == "7days"
        assert sum(row["count"] for row in data["issue_creation_trend"]) == 3
        assert sum(row["count"] for row in data["issue_completion_trend"]) == 1
        assert data["assigned_issues_per_member"] == [
            {"member": data["assigned_issues_per_member"][0]["member"], "count": 2},
        ]
        assert data["assigned_issues_per_member"][0]["member"]["id"] == member["user"]["id"]
        assert data["completed_issues_per_member"][0]["count"] == 1
        assert data["issue_status_per_project"][0]["project"]["name"] == "Website"

    def test_default_period(self, client, owner, team):
        res = client.get(f"/api/dashboard/teams/{team['id']}/statistics", headers=owner["headers"])
        assert res.get_json()["data"]["period"] == "30days"

    def test_invalid_period(self, client, owner, team):
        res = client.get(f"/api/dashboard/teams/{team['id']}/statistics?period=1year",
                         headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "INVALID_PERIOD"

    def test_non_member(self, client, outsider, team):
        res = client.get(f"/api/dashboard/teams/{team['id']}/statistics", headers=outsider["headers"])
        assert res.status_code == 404
