"""Task service — the task vertical's write and query facade.

Each public method is one unit of work on the Database. Subtask writes
that move progress commit first and then ask the ProgressAggregator for a
separate refresh; deletes go through the CascadeManager and membership
through the ParticipantManager.

Methods return detached snapshots (see models/refs.py); rendering to the
wire shape happens in views.py.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from fastapi import Depends

from core.database import Database, get_database
from core.errors import NotFound, ValidationError
from core.logging_setup import get_logger
from core.models.base import as_utc, utcnow
from verticals.tasks.cascade import CascadeManager
from verticals.tasks.models.refs import TaskSnapshot
from verticals.tasks.models.schemas import (
    SORTABLE_FIELDS,
    CommentCreate,
    SortOrder,
    SubTaskCreate,
    SubTaskUpdate,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
)
from verticals.tasks.participants import ParticipantManager
from verticals.tasks.progress import ProgressAggregator
from verticals.tasks.repository import CommentRepository, SubTaskRepository, TaskRepository
from verticals.tasks.rules import check_parent_comment, check_valid_id, enforce, evaluate_rules
from verticals.users.repository import UserRepository

logger = get_logger(__name__)


def _changes(model, *, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Fields the client actually sent, minus nulls; enums as plain values."""
    data = model.model_dump(exclude_unset=True, exclude_none=True, exclude=set(exclude))
    for key, value in data.items():
        if isinstance(value, Enum):
            data[key] = value.value
        elif isinstance(value, datetime):
            data[key] = as_utc(value)
    return data


class TaskService:
    """Task, subtask and comment operations for one application instance."""

    def __init__(self, database: Database):
        self.database = database
        self.aggregator = ProgressAggregator(database)
        self.cascade = CascadeManager(database, self.aggregator)
        self.participants = ParticipantManager(database)

    # -----------------------------------------------------------------------
    # Tasks
    # -----------------------------------------------------------------------

    async def create_task(self, data: TaskCreate, created_by: str) -> TaskSnapshot:
        """Create a task owned by `created_by`; the owner is always a participant."""
        values = _changes(data, exclude={"participants"})
        members = [created_by, *(p for p in data.participants if p != created_by)]

        async with self.database.transaction() as session:
            await _require_users(session, [*members, *filter(None, [data.assigned_to])])
            tasks = TaskRepository(session)
            task = await tasks.create({**values, "created_by": created_by, "progress": 0})
            for user_id in dict.fromkeys(members):
                await tasks.add_participant(task.id, user_id)
            snapshot = await tasks.load_graph(task.id)

        logger.info(
            "Task created",
            extra={"extra_data": {"task_id": snapshot.id, "created_by": created_by}},
        )
        return snapshot

    async def get_task(self, task_id: str) -> TaskSnapshot:
        async with self.database.transaction() as session:
            return await TaskRepository(session).load_graph(task_id)

    async def update_task(self, task_id: str, data: TaskUpdate) -> TaskSnapshot:
        values = _changes(data)
        async with self.database.transaction() as session:
            if "assigned_to" in values:
                await _require_users(session, [values["assigned_to"]])
            tasks = TaskRepository(session)
            await tasks.update(task_id, values)
            return await tasks.load_graph(task_id)

    async def update_status(self, task_id: str, status: TaskStatus) -> TaskSnapshot:
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            await tasks.update(task_id, {"status": TaskStatus(status).value})
            return await tasks.load_graph(task_id)

    async def assign_task(self, task_id: str, user_id: str) -> TaskSnapshot:
        async with self.database.transaction() as session:
            await _require_users(session, [user_id])
            tasks = TaskRepository(session)
            await tasks.update(task_id, {"assigned_to": user_id})
            snapshot = await tasks.load_graph(task_id)

        logger.info("Task assigned", extra={"extra_data": {"task_id": task_id, "user_id": user_id}})
        return snapshot

    async def unassign_task(self, task_id: str, user_id: str) -> TaskSnapshot:
        """Clear the assignee, but only if it is `user_id`; otherwise a no-op."""
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            task = await tasks.require(task_id)
            if task.assigned_to == user_id:
                task.assigned_to = None
                await session.flush()
            return await tasks.load_graph(task_id)

    async def delete_task(self, task_id: str) -> None:
        await self.cascade.delete_task(task_id)

    async def recompute_progress(self, task_id: str) -> int:
        return await self.aggregator.recompute_task_progress(task_id)

    # -----------------------------------------------------------------------
    # Queries (list views: no subtask tree)
    # -----------------------------------------------------------------------

    async def tasks_for_user(self, user_id: str, status: Optional[TaskStatus] = None) -> list[TaskSnapshot]:
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            found = await tasks.for_user(user_id, TaskStatus(status).value if status else None)
            return await tasks.load_summaries(found)

    async def tasks_by_status(self, status: TaskStatus) -> list[TaskSnapshot]:
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            return await tasks.load_summaries(await tasks.with_status(TaskStatus(status).value))

    async def search_tasks(self, query: Optional[str]) -> list[TaskSnapshot]:
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            return await tasks.load_summaries(await tasks.search(query.strip()))

    async def overdue_tasks(self, now: Optional[datetime] = None) -> list[TaskSnapshot]:
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            return await tasks.load_summaries(await tasks.overdue(as_utc(now or utcnow())))

    async def tasks_due_between(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> list[TaskSnapshot]:
        if start is None or end is None:
            raise ValidationError("Start date and end date are required")
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            found = await tasks.due_between(as_utc(start), as_utc(end))
            return await tasks.load_summaries(found)

    async def sorted_tasks(self, sort_by: Optional[str], order: str = "asc") -> list[TaskSnapshot]:
        if not sort_by:
            raise ValidationError("Sort field is required")
        column = SORTABLE_FIELDS.get(sort_by)
        if column is None:
            raise ValidationError(f"Invalid sort field '{sort_by}'")
        try:
            direction = SortOrder(order)
        except ValueError:
            raise ValidationError(f"Invalid sort order '{order}'") from None

        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            found = await tasks.sorted_by(column, descending=direction is SortOrder.DESC)
            return await tasks.load_summaries(found)

    # -----------------------------------------------------------------------
    # Subtasks
    # -----------------------------------------------------------------------

    async def create_subtask(self, task_id: str, data: SubTaskCreate, created_by: str) -> TaskSnapshot:
        async with self.database.transaction() as session:
            await TaskRepository(session).require(task_id)
            await _require_users(session, [created_by, *filter(None, [data.assigned_to])])
            subtask = await SubTaskRepository(session).create(
                {**_changes(data), "task_id": task_id, "created_by": created_by}
            )

        logger.info(
            "Subtask created",
            extra={"extra_data": {"task_id": task_id, "subtask_id": subtask.id}},
        )
        await self.aggregator.recompute_task_progress(task_id)
        return await self.get_task(task_id)

    async def update_subtask(self, task_id: str, subtask_id: str, data: SubTaskUpdate) -> TaskSnapshot:
        values = _changes(data)
        async with self.database.transaction() as session:
            await TaskRepository(session).require(task_id)
            subtasks = SubTaskRepository(session)
            if await subtasks.get_in_task(task_id, subtask_id) is None:
                raise NotFound.of("Subtask")
            if "assigned_to" in values:
                await _require_users(session, [values["assigned_to"]])
            await subtasks.update(subtask_id, values)

        if "progress" in values or "status" in values:
            await self.aggregator.recompute_task_progress(task_id)
        return await self.get_task(task_id)

    async def update_subtask_progress(self, task_id: str, subtask_id: str, progress: int) -> TaskSnapshot:
        if not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationError("Progress must be a number between 0 and 100")
        async with self.database.transaction() as session:
            await TaskRepository(session).require(task_id)
            subtasks = SubTaskRepository(session)
            if await subtasks.get_in_task(task_id, subtask_id) is None:
                raise NotFound.of("Subtask")
            await subtasks.update(subtask_id, {"progress": progress})

        await self.aggregator.recompute_task_progress(task_id)
        return await self.get_task(task_id)

    async def delete_subtask(self, task_id: str, subtask_id: str) -> TaskSnapshot:
        await self.cascade.delete_subtask(task_id, subtask_id)
        return await self.get_task(task_id)

    # -----------------------------------------------------------------------
    # Comments
    # -----------------------------------------------------------------------

    async def create_comment(
        self,
        task_id: str,
        subtask_id: str,
        author_id: str,
        data: CommentCreate,
    ) -> TaskSnapshot:
        """Add a comment (or a reply, when parent_comment_id is set)."""
        async with self.database.transaction() as session:
            await TaskRepository(session).require(task_id)
            if await SubTaskRepository(session).get_in_task(task_id, subtask_id) is None:
                raise NotFound.of("Subtask")
            await _require_users(session, [author_id])

            comments = CommentRepository(session)
            if data.parent_comment_id:
                parent = await comments.get(data.parent_comment_id)
                enforce(check_parent_comment(parent.subtask_id if parent else None, subtask_id))

            comment = await comments.create({
                "text": data.text,
                "author_id": author_id,
                "subtask_id": subtask_id,
                "parent_comment_id": data.parent_comment_id,
            })
            snapshot = await TaskRepository(session).load_graph(task_id)

        logger.info(
            "Comment created",
            extra={"extra_data": {"subtask_id": subtask_id, "comment_id": comment.id}},
        )
        return snapshot

    # -----------------------------------------------------------------------
    # Participants
    # -----------------------------------------------------------------------

    async def add_participant(self, task_id: str, user_id: str) -> TaskSnapshot:
        return await self.participants.add_participant(task_id, user_id)

    async def remove_participant(self, task_id: str, participant_id: str) -> TaskSnapshot:
        return await self.participants.remove_participant(task_id, participant_id)


async def _require_users(session, user_ids: Iterable[str]) -> None:
    """ValidationError for malformed ids, NotFound if any user is missing."""
    wanted = list(dict.fromkeys(user_ids))
    enforce(evaluate_rules(*(check_valid_id(u, "user ID") for u in wanted)))
    found = await UserRepository(session).snapshots(wanted)
    if len(found) != len(wanted):
        raise NotFound.of("User")


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_task_service(database: Database = Depends(get_database)) -> TaskService:
    """FastAPI dependency for TaskService."""
    return TaskService(database)
