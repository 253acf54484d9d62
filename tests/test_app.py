"""
CigroTrack
Tests — app factory wiring: health, envelopes, guards and headers.
"""

import json
import logging

from flask import g

from app.middleware.logging_config import JSONFormatter, RequestContextFilter
from app.utils.errors import api_paginated, pagination_meta


class TestHealth:
    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "ok"
        assert body["timestamp"]

    def test_api_root(self, client):
        body = client.get("/api").get_json()
        assert body == {"message": "CigroTrack API v1", "version": "1.0.0"}


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        res = client.get("/api/nowhere")
        assert res.status_code == 404
        assert res.get_json() == {
            "success": False,
            "error": {"message": "Route not found", "code": "NOT_FOUND"},
        }

    def test_method_not_allowed(self, client):
        res = client.patch("/health")
        assert res.status_code == 405
        assert res.get_json()["success"] is False

    def test_non_json_body_rejected(self, client, owner):
        res = client.post("/api/teams", data="name=Platform",
                          content_type="application/x-www-form-urlencoded", headers=owner["headers"])
        assert res.status_code == 415
        assert res.get_json()["error"]["code"] == "UNSUPPORTED_MEDIA_TYPE"

    def test_non_object_json(self, client, owner):
        res = client.post("/api/teams", json=["Platform"], headers=owner["headers"])
        assert res.status_code == 400

    def test_success_envelope(self, client, owner):
        body = client.get("/api/auth/me", headers=owner["headers"]).get_json()
        assert body["success"] is True
        assert "data" in body


class TestHeaders:
    def test_security_headers(self, client):
        res = client.get("/health")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "default-src 'none'" in res.headers["Content-Security-Policy"]
        assert res.headers["Cache-Control"] == "no-store"
        assert "Server" not in res.headers

    def test_request_id_round_trip(self, client):
        res = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_request_id_generated(self, client):
        assert len(client.get("/health").headers["X-Request-ID"]) == 12


class TestPaginationHelper:
    def test_meta(self):
        assert pagination_meta(1, 20, 57) == {"page": 1, "limit": 20, "total": 57, "total_pages": 3}
        assert pagination_meta(1, 20, 0)["total_pages"] == 0

    def test_paginated_response(self, app):
        with app.test_request_context():
            response, status = api_paginated([1, 2], page=1, limit=2, total=5)
            body = response.get_json()
        assert status == 200
        assert body["data"] == [1, 2]
        assert body["pagination"]["total_pages"] == 3


# ═══════════════════════════════════════════════════════════════
# Logging
# ═══════════════════════════════════════════════════════════════

class TestLogging:
    def _record(self, **extra):
        record = logging.LogRecord("app.services.issue_service", logging.INFO, __file__, 1,
                                   "Issue created %s", ("abc",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_context(self):
        line = JSONFormatter().format(self._record(request_id="r1", project_id="p1"))
        entry = json.loads(line)
        assert entry["msg"] == "Issue created abc"
        assert entry["level"] == "INFO"
        assert entry["request_id"] == "r1"
        assert entry["project_id"] == "p1"
        assert "team_id" not in entry

    def test_filter_stamps_request_id(self, app):
        record = self._record()
        with app.test_request_context("/api/teams"):
            g.request_id = "req-42"
            assert RequestContextFilter().filter(record) is True
        assert record.request_id == "req-42"

    def test_filter_outside_request(self):
        record = self._record()
        RequestContextFilter().filter(record)
        assert getattr(record, "request_id", None) is None
