"""SQLAlchemy models for the task hierarchy.

Task -> SubTask -> Comment. Parent links are plain foreign keys; there are
no ORM relationships with delete cascades. Deletion of dependents is an
explicit transactional procedure (verticals/tasks/cascade.py), and replies
are computed at render time (verticals/tasks/views.py).

Participants are a set stored in the task_participants association table;
its primary key makes (task_id, user_id) unique so membership changes are
single atomic statements.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, EntityMixin, utcnow
from verticals.tasks.models.schemas import TaskPriority, TaskStatus

_STATUSES = ", ".join(f"'{s.value}'" for s in TaskStatus)
_PRIORITIES = ", ".join(f"'{p.value}'" for p in TaskPriority)


task_participants = Table(
    "task_participants",
    Base.metadata,
    Column("task_id", String(36), ForeignKey("tasks.id"), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id"), primary_key=True),
    Column("added_at", DateTime(timezone=True), nullable=False, default=utcnow),
)


class Task(EntityMixin, Base):
    """Top-level unit of work. `progress` is derived from its subtasks."""

    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUSES})", name="ck_task_status"),
        CheckConstraint(f"priority IN ({_PRIORITIES})", name="ck_task_priority"),
        CheckConstraint("progress BETWEEN 0 AND 100", name="ck_task_progress"),
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.IN_PROGRESS.value, index=True
    )
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TaskPriority.MEDIUM.value, index=True
    )
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    assigned_to: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True, index=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SubTask(EntityMixin, Base):
    """A decomposition unit of a Task with its own authoritative progress."""

    __tablename__ = "subtasks"
    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUSES})", name="ck_subtask_status"),
        CheckConstraint(f"priority IN ({_PRIORITIES})", name="ck_subtask_priority"),
        CheckConstraint("progress BETWEEN 0 AND 100", name="ck_subtask_progress"),
    )

    task_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tasks.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.IN_PROGRESS.value
    )
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TaskPriority.MEDIUM.value
    )
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    assigned_to: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Comment(EntityMixin, Base):
    """A threaded remark on a subtask. Replies point at their parent."""

    __tablename__ = "comments"

    text: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    subtask_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subtasks.id"), nullable=False, index=True
    )
    parent_comment_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("comments.id"), nullable=True, index=True
    )
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
