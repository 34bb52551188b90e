import os

# Must be set before config.py is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GOAL_AGGREGATION_POLICY"] = "task_weighted"
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402
from services.goal_service import GoalService  # noqa: E402
from services.milestone_service import MilestoneService  # noqa: E402
from services.progress_service import build_policy  # noqa: E402
from services.task_service import TaskService  # noqa: E402
from services.user_service import UserService  # noqa: E402

GOAL_START = date(2030, 1, 1)
GOAL_END = date(2030, 12, 31)


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def policy():
    return build_policy("task_weighted")


@pytest.fixture
def user(db):
    account, _ = UserService.register(db, "Ada Lovelace", "ada@example.com", "password123")
    return account


@pytest.fixture
def other_user(db):
    account, _ = UserService.register(db, "Grace Hopper", "grace@example.com", "password123")
    return account


@pytest.fixture
def make_goal(db, user):
    def _make(owner=None, **fields):
        data = {"title": "Run a marathon", "start_date": GOAL_START, "end_date": GOAL_END}
        data.update(fields)
        return GoalService.create(db, (owner or user).id, data)
    return _make


@pytest.fixture
def make_milestone(db, user, policy):
    def _make(goal, owner=None, with_policy=None, **fields):
        data = {"title": "Base training", "due_date": date(2030, 6, 30)}
        data.update(fields)
        return MilestoneService.create(db, (owner or user).id, goal.id, data, with_policy or policy)
    return _make


@pytest.fixture
def make_task(db, user, policy):
    def _make(milestone, owner=None, with_policy=None, **fields):
        data = {"title": "Long run", "status": "pending"}
        data.update(fields)
        return TaskService.create(db, (owner or user).id, milestone.id, data, with_policy or policy)
    return _make


@pytest.fixture
def client():
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    resp = client.post("/api/v1/auth/register", json={
        "name": "Ada Lovelace", "email": "ada@example.com", "password": "password123",
    })
    assert resp.status_code == 201
    token = resp.json()["data"]["authorization"]["token"]
    return {"Authorization": f"Bearer {token}"}
