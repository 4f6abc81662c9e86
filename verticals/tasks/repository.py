"""Task hierarchy repositories — async database access.

Extends BaseRepository with task-specific queries (by user, status, text,
due date), participant set membership, and graph loading with an explicit
population choice (see models/refs.py).
"""

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import case, delete, or_, select, update

from patterns.repository import BaseRepository
from verticals.tasks.models.db_models import Comment, SubTask, Task, task_participants
from verticals.tasks.models.refs import (
    CommentSnapshot,
    Ref,
    Resolved,
    SubTaskSnapshot,
    TaskSnapshot,
    Unresolved,
    UserSnapshot,
)
from verticals.tasks.models.schemas import TaskStatus
from verticals.tasks.rules import PRIORITY_WEIGHT
from verticals.users.repository import UserRepository

_priority_weight = case(PRIORITY_WEIGHT, value=Task.priority, else_=0)


# ---------------------------------------------------------------------------
# Task repository
# ---------------------------------------------------------------------------

class TaskRepository(BaseRepository[Task]):
    """Repository for tasks, their participant set, and graph snapshots."""

    model = Task
    label = "Task"
    immutable = ("created_by",)

    # -- Queries --

    async def for_user(self, user_id: str, status: Optional[str] = None) -> list[Task]:
        """Tasks the user created or is assigned to, soonest due first."""
        stmt = select(Task).where(
            or_(Task.assigned_to == user_id, Task.created_by == user_id)
        )
        if status:
            stmt = stmt.where(Task.status == status)
        stmt = stmt.order_by(Task.due_date.asc(), Task.id)
        return await self._all(stmt)

    async def with_status(self, status: str) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.status == status)
            .order_by(_priority_weight.desc(), Task.due_date.asc(), Task.id)
        )
        return await self._all(stmt)

    async def search(self, query: str) -> list[Task]:
        """Case-insensitive substring match on title or description."""
        stmt = (
            select(Task)
            .where(
                or_(
                    Task.title.icontains(query, autoescape=True),
                    Task.description.icontains(query, autoescape=True),
                )
            )
            .order_by(_priority_weight.desc(), Task.due_date.asc(), Task.id)
        )
        return await self._all(stmt)

    async def overdue(self, now: datetime) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.status != TaskStatus.COMPLETED.value, Task.due_date < now)
            .order_by(Task.due_date.asc(), Task.id)
        )
        return await self._all(stmt)

    async def due_between(self, start: datetime, end: datetime) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.due_date >= start, Task.due_date <= end)
            .order_by(Task.due_date.asc(), Task.id)
        )
        return await self._all(stmt)

    async def sorted_by(self, column: str, descending: bool = False) -> list[Task]:
        """All tasks ordered by one column; priority sorts by weight, not text."""
        key = _priority_weight if column == "priority" else getattr(Task, column)
        stmt = select(Task).order_by(key.desc() if descending else key.asc(), Task.id)
        return await self._all(stmt)

    async def _all(self, stmt) -> list[Task]:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # -- Derived progress --

    async def set_progress(self, task_id: str, progress: int) -> bool:
        result = await self.session.execute(
            update(Task).where(Task.id == task_id).values(progress=progress)
        )
        return result.rowcount > 0

    # -- Participants (set semantics) --

    async def participant_ids(self, task_id: str) -> list[str]:
        stmt = (
            select(task_participants.c.user_id)
            .where(task_participants.c.task_id == task_id)
            .order_by(task_participants.c.added_at, task_participants.c.user_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_participant(self, task_id: str, user_id: str) -> bool:
        return await self.add_member(task_participants, task_id=task_id, user_id=user_id)

    async def remove_participant(self, task_id: str, user_id: str) -> bool:
        return await self.remove_member(task_participants, task_id=task_id, user_id=user_id)

    async def clear_participants(self, task_id: str) -> int:
        result = await self.session.execute(
            delete(task_participants).where(task_participants.c.task_id == task_id)
        )
        return result.rowcount or 0

    # -- Snapshots --

    async def load_graph(self, task_id: str) -> TaskSnapshot:
        """The task with its subtasks and every comment on them.

        User references come back Resolved; ids that point at missing
        users stay Unresolved. Raises NotFound.
        """
        task = await self.require(task_id)
        subtasks = await SubTaskRepository(self.session).for_task(task_id)
        comments = await CommentRepository(self.session).for_subtasks([s.id for s in subtasks])
        participant_ids = await self.participant_ids(task_id)

        user_ids = {task.created_by, *participant_ids}
        if task.assigned_to:
            user_ids.add(task.assigned_to)
        for s in subtasks:
            user_ids.add(s.created_by)
            if s.assigned_to:
                user_ids.add(s.assigned_to)
        user_ids.update(c.author_id for c in comments)
        users = await self._users(user_ids)

        by_subtask: dict[str, list[Comment]] = {}
        for c in comments:
            by_subtask.setdefault(c.subtask_id, []).append(c)

        return _task_snapshot(
            task,
            users,
            participant_ids,
            tuple(
                _subtask_snapshot(s, users, by_subtask.get(s.id, []))
                for s in subtasks
            ),
        )

    async def load_summaries(self, tasks: Sequence[Task]) -> list[TaskSnapshot]:
        """Snapshots for list endpoints: users resolved, no subtask tree."""
        user_ids: set[str] = set()
        for t in tasks:
            user_ids.add(t.created_by)
            if t.assigned_to:
                user_ids.add(t.assigned_to)
        users = await self._users(user_ids)
        return [_task_snapshot(t, users, (), ()) for t in tasks]

    async def _users(self, user_ids: set[str]) -> dict[str, UserSnapshot]:
        return await UserRepository(self.session).snapshots(list(user_ids))


# ---------------------------------------------------------------------------
# Subtask repository
# ---------------------------------------------------------------------------

class SubTaskRepository(BaseRepository[SubTask]):
    """Repository for subtasks; ordering is creation order."""

    model = SubTask
    label = "Subtask"
    immutable = ("task_id", "created_by")

    async def for_task(self, task_id: str) -> list[SubTask]:
        stmt = (
            select(SubTask)
            .where(SubTask.task_id == task_id)
            .order_by(SubTask.created_at, SubTask.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def ids_for_task(self, task_id: str) -> list[str]:
        result = await self.session.execute(
            select(SubTask.id).where(SubTask.task_id == task_id)
        )
        return list(result.scalars().all())

    async def progress_values(self, task_id: str) -> list[Optional[int]]:
        result = await self.session.execute(
            select(SubTask.progress).where(SubTask.task_id == task_id)
        )
        return list(result.scalars().all())

    async def get_in_task(self, task_id: str, subtask_id: str) -> SubTask | None:
        """The subtask only if it belongs to the given task."""
        stmt = select(SubTask).where(SubTask.id == subtask_id, SubTask.task_id == task_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Comment repository
# ---------------------------------------------------------------------------

class CommentRepository(BaseRepository[Comment]):
    """Repository for subtask comments."""

    model = Comment
    label = "Comment"
    immutable = ("subtask_id", "author_id", "parent_comment_id")

    async def for_subtasks(self, subtask_ids: Sequence[str]) -> list[Comment]:
        if not subtask_ids:
            return []
        stmt = (
            select(Comment)
            .where(Comment.subtask_id.in_(list(subtask_ids)))
            .order_by(Comment.created_at, Comment.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_for_subtasks(self, subtask_ids: Sequence[str]) -> int:
        if not subtask_ids:
            return 0
        return await self.delete_where(Comment.subtask_id.in_(list(subtask_ids)))


# ---------------------------------------------------------------------------
# Snapshot builders
# ---------------------------------------------------------------------------

def _ref(user_id: str, users: dict[str, UserSnapshot]) -> Ref[UserSnapshot]:
    user = users.get(user_id)
    return Resolved(user) if user is not None else Unresolved(user_id)


def _optional_ref(user_id: Optional[str], users: dict[str, UserSnapshot]):
    return _ref(user_id, users) if user_id else None


def _comment_snapshot(c: Comment, users: dict[str, UserSnapshot]) -> CommentSnapshot:
    return CommentSnapshot(
        id=c.id,
        text=c.text,
        author=_ref(c.author_id, users),
        subtask_id=c.subtask_id,
        parent_comment_id=c.parent_comment_id,
        is_edited=c.is_edited,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _subtask_snapshot(
    s: SubTask,
    users: dict[str, UserSnapshot],
    comments: Sequence[Comment],
) -> SubTaskSnapshot:
    return SubTaskSnapshot(
        id=s.id,
        task_id=s.task_id,
        title=s.title,
        description=s.description,
        status=s.status,
        priority=s.priority,
        due_date=s.due_date,
        created_by=_ref(s.created_by, users),
        assigned_to=_optional_ref(s.assigned_to, users),
        progress=s.progress,
        created_at=s.created_at,
        updated_at=s.updated_at,
        comments=tuple(_comment_snapshot(c, users) for c in comments),
    )


def _task_snapshot(
    t: Task,
    users: dict[str, UserSnapshot],
    participant_ids: Sequence[str],
    subtasks: tuple[SubTaskSnapshot, ...],
) -> TaskSnapshot:
    return TaskSnapshot(
        id=t.id,
        title=t.title,
        description=t.description,
        status=t.status,
        priority=t.priority,
        due_date=t.due_date,
        created_by=_ref(t.created_by, users),
        assigned_to=_optional_ref(t.assigned_to, users),
        progress=t.progress,
        created_at=t.created_at,
        updated_at=t.updated_at,
        participants=tuple(_ref(pid, users) for pid in participant_ids),
        subtasks=subtasks,
    )
