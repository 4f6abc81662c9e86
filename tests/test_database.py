"""Test transaction scopes on SQLite under concurrent use."""
import asyncio

import pytest
import pytest_asyncio

from core.database import Database
from patterns.domain_config import DatabaseConfig
from verticals.users.models.db_models import User
from verticals.users.repository import UserRepository


async def _write_user(database, email, fail=False):
    async with database.transaction() as session:
        session.add(User(first_name="Temp", last_name="User", email=email))
        await session.flush()
        # Yield so the other scope gets a chance to run in between
        await asyncio.sleep(0.01)
        if fail:
            raise RuntimeError("abort")


async def _emails(database):
    async with database.transaction() as session:
        found = [await UserRepository(session).find_by_email(e) for e in ("kept@x.io", "dropped@x.io")]
    return {u.email for u in found if u is not None}


@pytest_asyncio.fixture
async def file_database(tmp_path):
    db = Database(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'taskhub.db'}"))
    await db.connect()
    await db.create_all()
    yield db
    await db.dispose()


def test_memory_detection():
    assert DatabaseConfig(url="sqlite+aiosqlite://").is_memory
    assert DatabaseConfig(url="sqlite+aiosqlite:///:memory:").is_memory
    assert not DatabaseConfig(url="sqlite+aiosqlite:///taskhub.db").is_memory
    assert not DatabaseConfig().is_memory


@pytest.mark.asyncio
async def test_overlapping_scopes_stay_separate(database):
    results = await asyncio.gather(
        _write_user(database, "kept@x.io"),
        _write_user(database, "dropped@x.io", fail=True),
        return_exceptions=True,
    )

    assert results[0] is None
    assert isinstance(results[1], RuntimeError)
    assert await _emails(database) == {"kept@x.io"}


@pytest.mark.asyncio
async def test_file_database_overlapping_scopes(file_database):
    results = await asyncio.gather(
        _write_user(file_database, "dropped@x.io", fail=True),
        _write_user(file_database, "kept@x.io"),
        return_exceptions=True,
    )

    assert isinstance(results[0], RuntimeError)
    assert results[1] is None
    assert await _emails(file_database) == {"kept@x.io"}
