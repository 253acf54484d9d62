"""
Shared pytest fixtures for the CigroTrack test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client without a cookie jar; requests authenticate
      with the ``Authorization: Bearer`` header from the user factories
    - make_user / owner / member: signed-up users as {"user", "token", "headers"}
    - team / project / issue: entities created through the API
    - add_member: invite + accept helper
"""

import itertools

import pytest

from app import create_app
from app.models import db as _db

_counter = itertools.count(1)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client. Cookies are off so several users can share it."""
    return app.test_client(use_cookies=False)


# ── Factories ────────────────────────────────────────────────────────────


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def signup(client, name=None, email=None, password="secret123"):
    """Sign up through the API and return {"user", "token", "headers"}."""
    n = next(_counter)
    res = client.post("/api/auth/signup", json={
        "name": name or f"User {n}",
        "email": email or f"user{n}@acme.io",
        "password": password,
    })
    assert res.status_code == 201, res.get_json()
    data = res.get_json()["data"]
    return {"user": data["user"], "token": data["token"], "headers": bearer(data["token"])}


@pytest.fixture()
def make_user(client):
    def _make(**kwargs):
        return signup(client, **kwargs)
    return _make


@pytest.fixture()
def owner(make_user):
    return make_user(name="Olivia Owner", email="owner@acme.io")


@pytest.fixture()
def team(client, owner):
    res = client.post("/api/teams", json={"name": "Platform"}, headers=owner["headers"])
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]


@pytest.fixture()
def add_member(client, owner):
    """Invite ``who`` to ``team`` as ``role`` and accept; returns the membership."""
    def _add(team, who, role="MEMBER", inviter=None):
        inviter = inviter or owner
        res = client.post(
            f"/api/teams/{team['id']}/invite",
            json={"email": who["user"]["email"], "role": role},
            headers=inviter["headers"],
        )
        assert res.status_code == 201, res.get_json()
        invite_id = res.get_json()["data"]["id"]
        res = client.post(f"/api/teams/invites/{invite_id}/accept", headers=who["headers"])
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]
    return _add


@pytest.fixture()
def member(make_user, team, add_member):
    """A second user who has joined ``team`` as MEMBER."""
    user = make_user(name="Mia Member", email="member@acme.io")
    user["membership"] = add_member(team, user)
    return user


@pytest.fixture()
def outsider(make_user):
    """A user who belongs to no team."""
    return make_user(name="Oscar Outsider", email="outsider@acme.io")


@pytest.fixture()
def project(client, owner, team):
    res = client.post(
        "/api/projects",
        json={"team_id": team["id"], "name": "Website", "description": "Marketing site"},
        headers=owner["headers"],
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]


@pytest.fixture()
def make_issue(client, owner, project):
    def _make(headers=None, **fields):
        body = {"project_id": project["id"], "title": f"Issue {next(_counter)}"}
        body.update(fields)
        res = client.post("/api/issues", json=body, headers=headers or owner["headers"])
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]
    return _make


@pytest.fixture()
def issue(make_issue):
    return make_issue(title="Login button misaligned",
                      description="The login button overlaps the footer on mobile.")
