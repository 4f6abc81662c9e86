"""Test participant membership on tasks."""
import asyncio

import pytest

from core.errors import Conflict, NotFound, ValidationError
from core.models.base import new_id
from verticals.tasks.repository import TaskRepository


def _member_ids(task):
    return {p.id for p in task.participants}


@pytest.mark.asyncio
async def test_owner_is_participant(make_task, users):
    task = await make_task()
    assert _member_ids(task) == {users["alice"]}


@pytest.mark.asyncio
async def test_add_participant(make_task, task_service, users):
    task = await make_task()
    task = await task_service.add_participant(task.id, users["bob"])
    assert _member_ids(task) == {users["alice"], users["bob"]}


@pytest.mark.asyncio
async def test_add_participant_twice_conflicts(make_task, task_service, users):
    task = await make_task()
    await task_service.add_participant(task.id, users["bob"])

    with pytest.raises(Conflict, match="User is already a participant"):
        await task_service.add_participant(task.id, users["bob"])

    task = await task_service.get_task(task.id)
    assert [p.id for p in task.participants].count(users["bob"]) == 1


@pytest.mark.asyncio
async def test_add_participant_invalid_ids(make_task, task_service, users):
    task = await make_task()
    with pytest.raises(ValidationError, match="Invalid user ID format"):
        await task_service.add_participant(task.id, "bob")
    with pytest.raises(ValidationError, match="Invalid task ID format"):
        await task_service.add_participant("nope", users["bob"])


@pytest.mark.asyncio
async def test_add_participant_missing_entities(make_task, task_service, users):
    task = await make_task()
    with pytest.raises(NotFound, match="User not found"):
        await task_service.add_participant(task.id, new_id())
    with pytest.raises(NotFound, match="Task not found"):
        await task_service.add_participant(new_id(), users["bob"])


@pytest.mark.asyncio
async def test_remove_participant_is_idempotent(make_task, task_service, users):
    task = await make_task(participants=[users["bob"]])
    assert users["bob"] in _member_ids(task)

    task = await task_service.remove_participant(task.id, users["bob"])
    assert users["bob"] not in _member_ids(task)

    task = await task_service.remove_participant(task.id, users["bob"])
    assert _member_ids(task) == {users["alice"]}


@pytest.mark.asyncio
async def test_remove_participant_missing_task(task_service, users):
    with pytest.raises(NotFound, match="Task not found"):
        await task_service.remove_participant(new_id(), users["bob"])


@pytest.mark.asyncio
async def test_concurrent_adds_of_same_user(make_task, task_service, users):
    task = await make_task()

    results = await asyncio.gather(
        task_service.add_participant(task.id, users["bob"]),
        task_service.add_participant(task.id, users["bob"]),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, Conflict)]
    added = [r for r in results if not isinstance(r, Exception)]
    assert len(conflicts) == 1
    assert len(added) == 1
    task = await task_service.get_task(task.id)
    assert [p.id for p in task.participants].count(users["bob"]) == 1


@pytest.mark.asyncio
async def test_concurrent_adds_of_different_users(make_task, task_service, users):
    task = await make_task()

    await asyncio.gather(
        task_service.add_participant(task.id, users["bob"]),
        task_service.add_participant(task.id, users["carol"]),
    )

    task = await task_service.get_task(task.id)
    assert _member_ids(task) == {users["alice"], users["bob"], users["carol"]}


@pytest.mark.asyncio
async def test_add_rejected_by_unique_row(make_task, task_service, users, monkeypatch):
    """The insert itself reports a duplicate when the membership check saw none."""
    task = await make_task(participants=[users["bob"]])

    async def stale_ids(self, task_id):
        return []

    monkeypatch.setattr(TaskRepository, "participant_ids", stale_ids)

    with pytest.raises(Conflict, match="User is already a participant"):
        await task_service.add_participant(task.id, users["bob"])

    monkeypatch.undo()
    task = await task_service.get_task(task.id)
    assert [p.id for p in task.participants].count(users["bob"]) == 1
