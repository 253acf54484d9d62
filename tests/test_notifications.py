"""
CigroTrack
Tests — in-app notifications and due-date reminders.
"""

from datetime import timedelta

from app.models import db, utcnow
from app.models.notification import Notification
from app.services.notification import NotificationService


def _assign(client, owner, issue, who):
    client.put(f"/api/issues/{issue['id']}/assign", json={"assignee_id": who["user"]["id"]},
               headers=owner["headers"])


class TestNotificationApi:
    def test_list_and_unread_count(self, client, owner, member, make_issue):
        for _ in range(2):
            _assign(client, owner, make_issue(), member)

        res = client.get("/api/notifications", headers=member["headers"])
        assert res.status_code == 200
        items = res.get_json()["data"]
        # invite notice + two assignments
        assert [n["type"] for n in items][:2] == ["issue_assigned", "issue_assigned"]
        count = client.get("/api/notifications/unread-count", headers=member["headers"]).get_json()["data"]
        assert count == {"count": len(items)}

    def test_read_filter_and_mark_read(self, client, owner, member, issue):
        _assign(client, owner, issue, member)
        notif = client.get("/api/notifications?read=false", headers=member["headers"]).get_json()["data"][0]

        res = client.put(f"/api/notifications/{notif['id']}/read", headers=member["headers"])
        assert res.status_code == 200
        assert res.get_json()["data"]["read"] is True

        read = client.get("/api/notifications?read=true", headers=member["headers"]).get_json()["data"]
        assert [n["id"] for n in read] == [notif["id"]]

    def test_read_all(self, client, owner, member, make_issue):
        for _ in range(3):
            _assign(client, owner, make_issue(), member)
        before = client.get("/api/notifications/unread-count", headers=member["headers"]).get_json()["data"]["count"]

        res = client.put("/api/notifications/read-all", headers=member["headers"])
        assert res.get_json()["data"] == {"updated": before}
        after = client.get("/api/notifications/unread-count", headers=member["headers"]).get_json()["data"]
        assert after == {"count": 0}

    def test_limit_is_clamped(self, client, owner, member, make_issue):
        for _ in range(3):
            _assign(client, owner, make_issue(), member)
        res = client.get("/api/notifications?limit=2", headers=member["headers"])
        assert len(res.get_json()["data"]) == 2
        res = client.get("/api/notifications?limit=0", headers=member["headers"])
        assert len(res.get_json()["data"]) == 1
        res = client.get("/api/notifications?limit=abc", headers=member["headers"])
        assert res.status_code == 400

    def test_other_users_notifications_are_hidden(self, client, owner, member, issue):
        _assign(client, owner, issue, member)
        notif = client.get("/api/notifications", headers=member["headers"]).get_json()["data"][0]

        assert client.put(f"/api/notifications/{notif['id']}/read", headers=owner["headers"]).status_code == 404
        assert client.delete(f"/api/notifications/{notif['id']}", headers=owner["headers"]).status_code == 404

        res = client.delete(f"/api/notifications/{notif['id']}", headers=member["headers"])
        assert res.status_code == 200
        assert db.session.get(Notification, notif["id"]) is None


class TestNotifyHelper:
    def test_bad_input_is_skipped(self, owner):
        assert NotificationService.notify(user_id=owner["user"]["id"], type="nonsense", title="x") is None
        assert NotificationService.notify(user_id=None, type="issue_assigned", title="x") is None
        assert NotificationService.notify(user_id=owner["user"]["id"], type="issue_assigned", title="  ") is None


# ═══════════════════════════════════════════════════════════════
# Due-date reminders
# ═══════════════════════════════════════════════════════════════

class TestDueDateReminders:
    def test_today_and_approaching(self, owner, member, make_issue):
        now = utcnow().replace(hour=6, minute=0, second=0, microsecond=0)
        make_issue(title="today", assignee_id=member["user"]["id"],
                   due_date=(now + timedelta(hours=4)).isoformat())
        make_issue(title="tomorrow", assignee_id=member["user"]["id"],
                   due_date=(now + timedelta(hours=20)).isoformat())
        make_issue(title="next week", assignee_id=member["user"]["id"],
                   due_date=(now + timedelta(days=6)).isoformat())
        make_issue(title="nobody", due_date=(now + timedelta(hours=2)).isoformat())

        counts = NotificationService.notify_due_dates(now=now)
        assert counts == {"due_date_today": 1, "due_date_approaching": 1}

        titles = {n.title for n in Notification.query.filter_by(user_id=member["user"]["id"])}
        assert "Issue due today: today" in titles
        assert "Issue due soon: tomorrow" in titles

    def test_runs_once_per_day(self, owner, member, make_issue):
        now = utcnow().replace(hour=6, minute=0, second=0, microsecond=0)
        make_issue(assignee_id=member["user"]["id"], due_date=(now + timedelta(hours=4)).isoformat())

        NotificationService.notify_due_dates(now=now)
        again = NotificationService.notify_due_dates(now=now + timedelta(minutes=5))
        assert again == {"due_date_today": 0, "due_date_approaching": 0}

    def test_cli_command(self, app):
        result = app.test_cli_runner().invoke(args=["notify-due-dates"])
        assert result.exit_code == 0
        assert "due_date_today: 0" in result.output
