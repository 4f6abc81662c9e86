"""Typed population contract for task graphs.

A reference field either carries only the foreign key (`Unresolved`) or
the referenced entity's snapshot (`Resolved`). Readers match on the tag
instead of guessing from the object's shape::

    match snapshot.created_by:
        case Resolved(user):
            name = user.first_name
        case Unresolved(user_id):
            ...

Snapshots are immutable, detached from the ORM session, and produced by
TaskRepository.load_graph().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Reference tags
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Unresolved:
    """A foreign key whose target was not loaded (or no longer exists)."""

    id: str


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """A foreign key together with the referenced entity."""

    value: T

    @property
    def id(self) -> str:
        return self.value.id


Ref = Union[Unresolved, Resolved[T]]


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserSnapshot:
    id: str
    first_name: str
    last_name: str
    email: str


@dataclass(frozen=True)
class CommentSnapshot:
    id: str
    text: str
    author: Ref[UserSnapshot]
    subtask_id: str
    parent_comment_id: Optional[str]
    is_edited: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class SubTaskSnapshot:
    id: str
    task_id: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    due_date: datetime
    created_by: Ref[UserSnapshot]
    assigned_to: Optional[Ref[UserSnapshot]]
    progress: int
    created_at: datetime
    updated_at: datetime
    # Every comment on the subtask (roots and replies), oldest first
    comments: tuple[CommentSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TaskSnapshot:
    id: str
    title: str
    description: str
    status: str
    priority: str
    due_date: datetime
    created_by: Ref[UserSnapshot]
    assigned_to: Optional[Ref[UserSnapshot]]
    progress: int
    created_at: datetime
    updated_at: datetime
    participants: tuple[Ref[UserSnapshot], ...] = field(default_factory=tuple)
    subtasks: tuple[SubTaskSnapshot, ...] = field(default_factory=tuple)
