"""
CigroTrack
Tests — issue comments and the notifications they trigger.
"""

from app.models import db
from app.models.comment import Comment


def _comment_notes(client, who):
    res = client.get("/api/notifications", headers=who["headers"])
    return [n for n in res.get_json()["data"] if n["type"] == "comment_added"]


class TestComments:
    def test_create_and_list_oldest_first(self, client, owner, member, issue):
        for text in ("first", "second", "third"):
            res = client.post("/api/comments", json={"issue_id": issue["id"], "content": text},
                              headers=member["headers"])
            assert res.status_code == 201

        res = client.get(f"/api/comments?issue_id={issue['id']}", headers=owner["headers"])
        body = res.get_json()
        assert [c["content"] for c in body["data"]] == ["first", "second", "third"]
        assert body["data"][0]["author"]["name"] == "Mia Member"
        assert body["pagination"]["total"] == 3

    def test_content_is_trimmed_and_bounded(self, client, owner, issue):
        res = client.post("/api/comments", json={"issue_id": issue["id"], "content": "  hi  "},
                          headers=owner["headers"])
        assert res.get_json()["data"]["content"] == "hi"

        res = client.post("/api/comments", json={"issue_id": issue["id"], "content": "   "},
                          headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "MISSING_CONTENT"

        res = client.post("/api/comments", json={"issue_id": issue["id"], "content": "x" * 1001},
                          headers=owner["headers"])
        assert res.status_code == 400

    def test_issue_required(self, client, owner):
        res = client.post("/api/comments", json={"content": "hi"}, headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "MISSING_ISSUE_ID"

    def test_non_string_issue_id(self, client, owner, issue):
        res = client.post("/api/comments", json={"issue_id": [issue["id"]], "content": "hi"},
                          headers=owner["headers"])
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "MISSING_ISSUE_ID"

    def test_outsider_cannot_comment(self, client, outsider, issue):
        res = client.post("/api/comments", json={"issue_id": issue["id"], "content": "hi"},
                          headers=outsider["headers"])
        assert res.status_code == 404


class TestCommentNotifications:
    def test_reporter_notified(self, client, owner, member, issue):
        client.post("/api/comments", json={"issue_id": issue["id"], "content": "Looking into it"},
                    headers=member["headers"])
        notes = _comment_notes(client, owner)
        assert len(notes) == 1
        assert notes[0]["message"] == "Looking into it"
        assert notes[0]["metadata"]["issue_id"] == issue["id"]

    def test_author_never_notified(self, client, owner, member, issue):
        client.put(f"/api/issues/{issue['id']}/assign", json={"assignee_id": member["user"]["id"]},
                   headers=owner["headers"])
        client.post("/api/comments", json={"issue_id": issue["id"], "content": "Self note"},
                    headers=owner["headers"])
        assert _comment_notes(client, owner) == []
        assert len(_comment_notes(client, member)) == 1


class TestCommentEdits:
    def test_author_only(self, client, owner, member, issue):
        comment = client.post("/api/comments", json={"issue_id": issue["id"], "content": "typo"},
                              headers=member["headers"]).get_json()["data"]

        res = client.put(f"/api/comments/{comment['id']}", json={"content": "edited"},
                         headers=owner["headers"])
        assert res.status_code == 403
        res = client.delete(f"/api/comments/{comment['id']}", headers=owner["headers"])
        assert res.status_code == 403

        res = client.put(f"/api/comments/{comment['id']}", json={"content": "fixed"},
                         headers=member["headers"])
        assert res.status_code == 200
        assert res.get_json()["data"]["content"] == "fixed"

    def test_soft_delete(self, client, owner, issue):
        comment = client.post("/api/comments", json={"issue_id": issue["id"], "content": "bye"},
                              headers=owner["headers"]).get_json()["data"]
        res = client.delete(f"/api/comments/{comment['id']}", headers=owner["headers"])
        assert res.status_code == 200

        listing = client.get(f"/api/comments?issue_id={issue['id']}", headers=owner["headers"]).get_json()
        assert listing["data"] == []
        assert db.session.get(Comment, comment["id"]).deleted_at is not None
        res = client.put(f"/api/comments/{comment['id']}", json={"content": "back"},
                         headers=owner["headers"])
        assert res.status_code == 404
