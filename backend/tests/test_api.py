from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import main
from config import LOGIN_MAX_FAILURES
from dependencies import get_aggregation_policy
from services.goal_service import GoalService
from services.progress_service import build_policy

GOAL = {"title": "Learn Web Development", "start_date": "2030-01-01", "end_date": "2030-12-31"}


def _create_goal(client, headers, **fields):
    resp = client.post("/api/v1/goals", json={**GOAL, **fields}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _create_milestone(client, headers, goal_id, **fields):
    body = {"title": "Frontend basics", "due_date": "2030-06-30", **fields}
    resp = client.post(f"/api/v1/goals/{goal_id}/milestones", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _create_task(client, headers, milestone_id, **fields):
    body = {"title": "HTML course", **fields}
    resp = client.post(f"/api/v1/milestones/{milestone_id}/tasks", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _register(client, email, password="password123"):
    resp = client.post("/api/v1/auth/register", json={"name": "Someone", "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['authorization']['token']}"}


# ── envelope & plumbing ──────────────────────────────────────────────

def test_health_check_uses_envelope(client):
    resp = client.get("/api/v1/health-check")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["status_code"] == 200
    assert body["meta"]["api_version"] == "1.0"
    assert "timestamp" in body["meta"]


def test_routes_are_registered():
    paths = set(main.app.openapi()["paths"])
    for path in (
        "/api/v1/auth/register",
        "/api/v1/auth/login",
        "/api/v1/auth/logout",
        "/api/v1/auth/profile",
        "/api/v1/goals",
        "/api/v1/goals/all",
        "/api/v1/goals/{goal_id}",
        "/api/v1/goals/{goal_id}/milestones",
        "/api/v1/goals/{goal_id}/milestones/{milestone_id}",
        "/api/v1/tasks",
        "/api/v1/milestones/{milestone_id}/tasks",
        "/api/v1/milestones/{milestone_id}/tasks/{task_id}",
    ):
        assert path in paths


def test_missing_token_is_401_with_challenge(client):
    resp = client.get("/api/v1/goals")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"
    body = resp.json()
    assert body["success"] is False
    assert body["status_code"] == 401


def test_garbage_token_is_401(client):
    resp = client.get("/api/v1/goals", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_request_validation_errors_are_keyed_by_field(client, auth_headers):
    resp = client.post("/api/v1/goals", json={"title": "", "start_date": "2030-01-01"}, headers=auth_headers)
    assert resp.status_code == 422
    body = resp.json()
    assert body["message"] == "Validation failed"
    assert "title" in body["errors"]
    assert "end_date" in body["errors"]


# ── auth ─────────────────────────────────────────────────────────────

def test_register_login_logout(client):
    resp = client.post("/api/v1/auth/register", json={
        "name": "John Doe", "email": "John.Doe@Example.com", "password": "password123",
    })
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["user"]["email"] == "john.doe@example.com"
    assert data["authorization"]["type"] == "bearer"
    assert "hashed_password" not in data["user"]

    resp = client.post("/api/v1/auth/login", json={"email": "john.doe@example.com", "password": "password123"})
    assert resp.status_code == 200
    headers = {"Authorization": f"Bearer {resp.json()['data']['authorization']['token']}"}

    assert client.get("/api/v1/auth/profile", headers=headers).status_code == 200
    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200

    resp = client.get("/api/v1/auth/profile", headers=headers)
    assert resp.status_code == 401


def test_duplicate_email_is_422(client):
    _register(client, "dup@example.com")
    resp = client.post("/api/v1/auth/register", json={
        "name": "Again", "email": "DUP@example.com", "password": "password123",
    })
    assert resp.status_code == 422
    assert "email" in resp.json()["errors"]


def test_wrong_password_is_401(client):
    _register(client, "someone@example.com")
    resp = client.post("/api/v1/auth/login", json={"email": "someone@example.com", "password": "wrong-pass"})
    assert resp.status_code == 401
    assert "credentials" in resp.json()["errors"]


def test_login_is_throttled_after_repeated_failures(client):
    for _ in range(LOGIN_MAX_FAILURES):
        resp = client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": "whatever"})
        assert resp.status_code == 401

    resp = client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": "whatever"})
    assert resp.status_code == 429
    assert resp.json()["success"] is False


def test_profile_password_change_needs_current_password(client, auth_headers):
    resp = client.put("/api/v1/auth/profile", json={"password": "new-password"}, headers=auth_headers)
    assert resp.status_code == 422
    assert "current_password" in resp.json()["errors"]

    resp = client.put("/api/v1/auth/profile", json={
        "name": "Ada King", "password": "new-password", "current_password": "password123",
    }, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Ada King"

    resp = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "new-password"})
    assert resp.status_code == 200


# ── goals, milestones, tasks ─────────────────────────────────────────

def test_progress_flows_up_through_the_api(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    assert goal["progress_percentage"] == 0
    assert goal["status"] == "pending"

    busy = _create_milestone(client, auth_headers, goal["id"])["milestone"]
    done = _create_milestone(client, auth_headers, goal["id"], title="Setup", status="completed")
    assert done["goal"]["progress_percentage"] == 50

    first = _create_task(client, auth_headers, busy["id"])
    for title in ("CSS", "JavaScript", "Projects"):
        _create_task(client, auth_headers, busy["id"], title=title)

    resp = client.put(f"/api/v1/milestones/{busy['id']}/tasks/{first['id']}",
                      json={"status": "completed"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["milestone"]["progress_percentage"] == 25

    resp = client.get(f"/api/v1/goals/{goal['id']}", headers=auth_headers)
    data = resp.json()["data"]
    assert data["progress_percentage"] == 40.0
    assert data["status"] == "in_progress"
    assert data["milestone_count"] == 2
    assert data["task_stats"] == {"total": 4, "completed": 1, "in_progress": 3}
    assert [m["title"] for m in data["milestones"]] == ["Frontend basics", "Setup"]


def test_milestone_with_tasks_rejects_manual_status(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    milestone = _create_milestone(client, auth_headers, goal["id"])["milestone"]
    _create_task(client, auth_headers, milestone["id"])

    resp = client.put(f"/api/v1/goals/{goal['id']}/milestones/{milestone['id']}",
                      json={"status": "completed"}, headers=auth_headers)
    assert resp.status_code == 422
    body = resp.json()
    assert body["message"] == "Status cannot be manually updated when milestone has tasks"
    assert "status" in body["errors"]


def test_milestone_due_date_outside_goal_is_422(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    resp = client.post(f"/api/v1/goals/{goal['id']}/milestones",
                       json={"title": "Too early", "due_date": "2029-06-01"}, headers=auth_headers)
    assert resp.status_code == 422
    assert "due_date" in resp.json()["errors"]


def test_goal_end_before_start_is_422(client, auth_headers):
    resp = client.post("/api/v1/goals", json={**GOAL, "end_date": "2029-12-31"}, headers=auth_headers)
    assert resp.status_code == 422
    assert "end_date" in resp.json()["errors"]


def test_foreign_goal_is_403_and_missing_goal_is_404(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    intruder = _register(client, "mallory@example.com")

    resp = client.get(f"/api/v1/goals/{goal['id']}", headers=intruder)
    assert resp.status_code == 403
    assert resp.json()["message"] == "You do not have permission to view this goal"

    resp = client.get("/api/v1/goals/9999", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Goal not found"


def test_task_under_wrong_milestone_is_404(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    first = _create_milestone(client, auth_headers, goal["id"], title="First")["milestone"]
    second = _create_milestone(client, auth_headers, goal["id"], title="Second")["milestone"]
    task = _create_task(client, auth_headers, first["id"])

    resp = client.get(f"/api/v1/milestones/{second['id']}/tasks/{task['id']}", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Task not found in this milestone"


def test_goal_listing_is_paginated(client, auth_headers):
    for n in range(3):
        _create_goal(client, auth_headers, title=f"Goal {n}")

    resp = client.get("/api/v1/goals", params={"per_page": 2, "sort_by": "title", "sort_order": "asc"},
                      headers=auth_headers)
    data = resp.json()["data"]
    assert [g["title"] for g in data["goals"]] == ["Goal 0", "Goal 1"]
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["last_page"] == 2

    resp = client.get("/api/v1/goals/all", headers=auth_headers)
    assert len(resp.json()["data"]["goals"]) == 3


def test_deleting_a_goal_removes_its_tree(client, auth_headers):
    goal = _create_goal(client, auth_headers)
    milestone = _create_milestone(client, auth_headers, goal["id"])["milestone"]
    _create_task(client, auth_headers, milestone["id"])

    resp = client.delete(f"/api/v1/goals/{goal['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    assert client.get(f"/api/v1/milestones/{milestone['id']}/tasks", headers=auth_headers).status_code == 404
    assert client.get("/api/v1/tasks", headers=auth_headers).json()["data"]["tasks"] == []


@pytest.mark.parametrize("policy_name,expected", [
    ("task_weighted", 50.0),
    ("tasks_only", 50.0),
    ("milestone_count", 0),
])
def test_aggregation_policy_is_injected(client, auth_headers, policy_name, expected):
    main.app.dependency_overrides[get_aggregation_policy] = lambda: build_policy(policy_name)

    goal = _create_goal(client, auth_headers)
    milestone = _create_milestone(client, auth_headers, goal["id"])["milestone"]
    _create_task(client, auth_headers, milestone["id"], status="completed")
    _create_task(client, auth_headers, milestone["id"])

    data = client.get(f"/api/v1/goals/{goal['id']}", headers=auth_headers).json()["data"]
    assert data["progress_percentage"] == expected


# ── failure paths ────────────────────────────────────────────────────

def test_unexpected_errors_hide_their_details(client, auth_headers, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("secret connection string")

    monkeypatch.setattr(GoalService, "get_unpaginated", staticmethod(broken))
    with TestClient(main.app, raise_server_exceptions=False) as quiet:
        resp = quiet.get("/api/v1/goals/all", headers=auth_headers)

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Server error"
    assert "secret" not in resp.text


def test_health_check_reports_unreachable_database(monkeypatch):
    def down():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(main, "ping_db", down)
    with TestClient(main.app, raise_server_exceptions=False) as quiet:
        resp = quiet.get("/api/v1/health-check")

    assert resp.status_code == 503
    body = resp.json()
    assert body["success"] is False
    assert body["status_code"] == 503
    assert body["message"] == "Database unavailable"
    assert "connection refused" not in resp.text


def test_manual_goal_progress_must_be_whole_number(client, auth_headers):
    goal = _create_goal(client, auth_headers)

    resp = client.put(f"/api/v1/goals/{goal['id']}", json={"progress_percentage": 99.95}, headers=auth_headers)
    assert resp.status_code == 422
    assert "progress_percentage" in resp.json()["errors"]

    resp = client.put(f"/api/v1/goals/{goal['id']}", json={"progress_percentage": 99}, headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert (data["progress_percentage"], data["status"]) == (99, "in_progress")


def test_milestone_due_date_must_be_in_the_future(client, auth_headers):
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    goal = _create_goal(client, auth_headers, start_date="2020-01-01")

    resp = client.post(f"/api/v1/goals/{goal['id']}/milestones",
                       json={"title": "Already late", "due_date": yesterday}, headers=auth_headers)
    assert resp.status_code == 422
    assert "due_date" in resp.json()["errors"]

    milestone = _create_milestone(client, auth_headers, goal["id"])["milestone"]
    resp = client.put(f"/api/v1/goals/{goal['id']}/milestones/{milestone['id']}",
                      json={"due_date": date.today().isoformat()}, headers=auth_headers)
    assert resp.status_code == 422
    assert "due_date" in resp.json()["errors"]
