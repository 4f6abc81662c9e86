"""View transformer — task graph snapshots to client-facing dicts.

Input is a TaskSnapshot from TaskRepository.load_graph(). Output uses
camelCase keys, string ids and ISO-8601 timestamps. Reply trees are
computed here from parentComment links; nothing about replies is stored.

An Unresolved user reference or a snapshot missing a required field means
the caller loaded too little. That is a programming error and is raised
as ValidationError rather than rendered half-populated.
"""

from typing import Any, Optional, Sequence

from core.errors import ValidationError
from core.models.base import as_utc, isoformat
from verticals.tasks.models.refs import (
    CommentSnapshot,
    Ref,
    Resolved,
    SubTaskSnapshot,
    TaskSnapshot,
    Unresolved,
    UserSnapshot,
)
from verticals.tasks.models.schemas import TaskPriority, TaskStatus

_STATUSES = {s.value for s in TaskStatus}
_PRIORITIES = {p.value for p in TaskPriority}


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def render_user(ref: Ref[UserSnapshot]) -> dict[str, str]:
    match ref:
        case Resolved(value=user):
            return {
                "id": user.id,
                "firstName": user.first_name or "",
                "lastName": user.last_name or "",
                "email": user.email or "",
            }
        case Unresolved(id=user_id):
            raise ValidationError(f"User reference {user_id} is not populated")
        case _:
            raise ValidationError("Invalid user object")


def _optional_user(ref: Optional[Ref[UserSnapshot]]) -> dict[str, Any]:
    return {"assignedTo": render_user(ref)} if ref is not None else {}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

def build_comment_tree(comments: Sequence[CommentSnapshot]) -> list[dict[str, Any]]:
    """Root comments of a subtask, each with its replies nested recursively.

    A comment is a root when it has no parent, or its parent is not among
    `comments`. Siblings keep creation order.
    """
    ids = {c.id for c in comments}
    children: dict[str, list[CommentSnapshot]] = {}
    roots: list[CommentSnapshot] = []
    for c in comments:
        if c.parent_comment_id and c.parent_comment_id in ids:
            children.setdefault(c.parent_comment_id, []).append(c)
        else:
            roots.append(c)

    def render(comment: CommentSnapshot) -> dict[str, Any]:
        return {
            "id": comment.id,
            "text": comment.text,
            "author": render_user(comment.author),
            "subtask": comment.subtask_id,
            "parentComment": comment.parent_comment_id,
            "isEdited": bool(comment.is_edited),
            "createdAt": isoformat(comment.created_at),
            "updatedAt": isoformat(comment.updated_at),
            "replies": [render(child) for child in children.get(comment.id, [])],
        }

    return [render(root) for root in roots]


# ---------------------------------------------------------------------------
# Subtasks & tasks
# ---------------------------------------------------------------------------

def _require_shape(kind: str, snapshot: TaskSnapshot | SubTaskSnapshot) -> None:
    for name in ("id", "title", "due_date", "created_by"):
        if not getattr(snapshot, name, None):
            raise ValidationError(f"{kind} is missing required field '{name}'")
    if snapshot.status not in _STATUSES:
        raise ValidationError(f"{kind} has invalid status '{snapshot.status}'")
    if snapshot.priority not in _PRIORITIES:
        raise ValidationError(f"{kind} has invalid priority '{snapshot.priority}'")


def render_subtask(subtask: SubTaskSnapshot) -> dict[str, Any]:
    _require_shape("Subtask", subtask)
    return {
        "id": subtask.id,
        "task": subtask.task_id,
        "title": subtask.title,
        "description": subtask.description or "",
        "status": subtask.status,
        "priority": subtask.priority,
        "dueDate": isoformat(subtask.due_date),
        **_optional_user(subtask.assigned_to),
        "createdBy": render_user(subtask.created_by),
        "createdAt": isoformat(subtask.created_at),
        "updatedAt": isoformat(subtask.updated_at),
        "progress": subtask.progress or 0,
        "comments": build_comment_tree(subtask.comments),
    }


def duration_ms(task: TaskSnapshot) -> int:
    """Milliseconds from creation to due date (negative if created late)."""
    delta = as_utc(task.due_date) - as_utc(task.created_at)
    return int(delta.total_seconds() * 1000)


def render_task_summary(task: TaskSnapshot) -> dict[str, Any]:
    """List-endpoint shape: users resolved, no participants or subtask tree."""
    _require_shape("Task", task)
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description or "",
        "status": task.status,
        "priority": task.priority,
        "dueDate": isoformat(task.due_date),
        **_optional_user(task.assigned_to),
        "createdBy": render_user(task.created_by),
        "createdAt": isoformat(task.created_at),
        "updatedAt": isoformat(task.updated_at),
        "progress": task.progress or 0,
        "duration": duration_ms(task),
    }


def render_task(task: TaskSnapshot) -> dict[str, Any]:
    """Full task view with participants and the subtask/comment tree."""
    view = render_task_summary(task)
    view["participants"] = [render_user(p) for p in task.participants]
    view["subtasks"] = [render_subtask(s) for s in task.subtasks]
    return view
