"""Shared fixtures: in-memory SQLite database, seeded users, API client."""
from datetime import timedelta

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.main import create_app
from core.database import Database
from core.models.base import utcnow
from patterns.domain_config import DatabaseConfig, TaskHubConfig
from verticals.tasks.models.schemas import SubTaskCreate, TaskCreate
from verticals.tasks.service import TaskService
from verticals.users.models.db_models import User

SQLITE_URL = "sqlite+aiosqlite://"

USERS = {
    "alice": ("Alice", "Nguyen", "alice@example.com"),
    "bob": ("Bob", "Okafor", "bob@example.com"),
    "carol": ("Carol", "Smith", "carol@example.com"),
}


async def seed_users(database: Database) -> dict[str, str]:
    """Insert the USERS directory and return {name: user id}."""
    async with database.transaction() as session:
        rows = {
            key: User(first_name=first, last_name=last, email=email)
            for key, (first, last, email) in USERS.items()
        }
        session.add_all(rows.values())
        await session.flush()
        return {key: user.id for key, user in rows.items()}


def tomorrow():
    return utcnow() + timedelta(days=1)


# ---------------------------------------------------------------------------
# Service-level fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database():
    db = Database(DatabaseConfig(url=SQLITE_URL))
    await db.connect()
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def users(database):
    return await seed_users(database)


@pytest.fixture
def task_service(database):
    return TaskService(database)


@pytest.fixture
def make_task(task_service, users):
    """Create a task owned by alice; keyword overrides go into TaskCreate."""
    async def _make(**overrides):
        data = {
            "title": "Ship release",
            "description": "Cut and publish the release",
            "due_date": tomorrow(),
            **overrides,
        }
        return await task_service.create_task(TaskCreate(**data), created_by=users["alice"])
    return _make


@pytest.fixture
def make_subtask(task_service, users):
    async def _make(task_id, progress=0, **overrides):
        data = {"title": "Step", "due_date": tomorrow(), "progress": progress, **overrides}
        return await task_service.create_subtask(
            task_id, SubTaskCreate(**data), created_by=users["alice"]
        )
    return _make


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    config = TaskHubConfig(database=DatabaseConfig(url=SQLITE_URL), env="test")
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def api_users(client):
    return client.portal.call(seed_users, client.app.state.database)


@pytest.fixture
def as_user(api_users):
    """Headers identifying one of the seeded users: as_user("alice")."""
    def _headers(name):
        return {"X-User-ID": api_users[name]}
    return _headers
