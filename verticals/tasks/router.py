"""Tasks API router — tasks, subtasks, comments and participants.

Responses follow the client contract: {"task": {...}} for single-task
operations and {"tasks": [...]} for lists. Every route requires a caller
identity (X-User-ID); creators and comment authors are always the caller.

Static paths (/user, /search, /sort, ...) are registered before /{task_id}
so they are not captured as ids.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from api.middleware import require_user
from verticals.tasks.models.refs import TaskSnapshot
from verticals.tasks.models.schemas import (
    CommentCreate,
    ProgressUpdate,
    StatusUpdate,
    SubTaskCreate,
    SubTaskUpdate,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
    UserRef,
)
from verticals.tasks.service import TaskService, get_task_service
from verticals.tasks.views import render_task, render_task_summary

router = APIRouter(dependencies=[Depends(require_user)])


def _one(snapshot: TaskSnapshot) -> dict:
    return {"task": render_task(snapshot)}


def _many(snapshots: list[TaskSnapshot]) -> dict:
    return {"tasks": [render_task_summary(s) for s in snapshots]}


# ============================================================================
# Queries
# ============================================================================

@router.get("/user")
async def my_tasks(
    status: Optional[TaskStatus] = None,
    user_id: str = Depends(require_user),
    service: TaskService = Depends(get_task_service),
):
    """Tasks the caller created or is assigned to, soonest due first."""
    return _many(await service.tasks_for_user(user_id, status))


@router.get("/user/{user_id}")
async def user_tasks(
    user_id: str,
    status: Optional[TaskStatus] = None,
    service: TaskService = Depends(get_task_service),
):
    return _many(await service.tasks_for_user(user_id, status))


@router.get("/status/{status}")
async def tasks_by_status(
    status: TaskStatus,
    service: TaskService = Depends(get_task_service),
):
    return _many(await service.tasks_by_status(status))


@router.get("/search")
async def search_tasks(
    q: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
):
    """Case-insensitive match on title or description."""
    return _many(await service.search_tasks(q))


@router.get("/overdue")
async def overdue_tasks(service: TaskService = Depends(get_task_service)):
    return _many(await service.overdue_tasks())


@router.get("/due-date")
async def tasks_by_due_date(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    service: TaskService = Depends(get_task_service),
):
    """Tasks due within [startDate, endDate], both ends inclusive."""
    return _many(await service.tasks_due_between(start_date, end_date))


@router.get("/sort")
async def sorted_tasks(
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: str = "asc",
    service: TaskService = Depends(get_task_service),
):
    return _many(await service.sorted_tasks(sort_by, order))


# ============================================================================
# Task CRUD
# ============================================================================

@router.post("", status_code=201)
async def create_task(
    request: TaskCreate,
    user_id: str = Depends(require_user),
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.create_task(request, created_by=user_id))


@router.get("/{task_id}")
async def get_task(task_id: str, service: TaskService = Depends(get_task_service)):
    return _one(await service.get_task(task_id))


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    request: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.update_task(task_id, request))


@router.delete("/{task_id}", status_code=204)
async def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    """Delete the task with its subtasks, comments and participant rows."""
    await service.delete_task(task_id)
    return Response(status_code=204)


# ============================================================================
# Progress, status, assignment
# ============================================================================

@router.post("/{task_id}/progress")
async def recompute_progress(task_id: str, service: TaskService = Depends(get_task_service)):
    progress = await service.recompute_progress(task_id)
    return {"taskId": task_id, "progress": progress}


@router.put("/{task_id}/status")
async def update_status(
    task_id: str,
    request: StatusUpdate,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.update_status(task_id, request.status))


@router.post("/{task_id}/assign")
async def assign_task(
    task_id: str,
    request: UserRef,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.assign_task(task_id, request.user_id))


@router.delete("/{task_id}/assign")
async def unassign_task(
    task_id: str,
    request: UserRef,
    service: TaskService = Depends(get_task_service),
):
    """Unassign only if the task is currently assigned to the given user."""
    return _one(await service.unassign_task(task_id, request.user_id))


# ============================================================================
# Subtasks & comments
# ============================================================================

@router.post("/{task_id}/subtasks", status_code=201)
async def create_subtask(
    task_id: str,
    request: SubTaskCreate,
    user_id: str = Depends(require_user),
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.create_subtask(task_id, request, created_by=user_id))


@router.put("/{task_id}/subtasks/{subtask_id}")
async def update_subtask(
    task_id: str,
    subtask_id: str,
    request: SubTaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.update_subtask(task_id, subtask_id, request))


@router.delete("/{task_id}/subtasks/{subtask_id}")
async def delete_subtask(
    task_id: str,
    subtask_id: str,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.delete_subtask(task_id, subtask_id))


@router.put("/{task_id}/subtasks/{subtask_id}/progress")
async def update_subtask_progress(
    task_id: str,
    subtask_id: str,
    request: ProgressUpdate,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.update_subtask_progress(task_id, subtask_id, request.progress))


@router.post("/{task_id}/subtasks/{subtask_id}/comments", status_code=201)
async def create_comment(
    task_id: str,
    subtask_id: str,
    request: CommentCreate,
    user_id: str = Depends(require_user),
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.create_comment(task_id, subtask_id, user_id, request))


# ============================================================================
# Participants
# ============================================================================

@router.post("/{task_id}/participants")
async def add_participant(
    task_id: str,
    request: UserRef,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.add_participant(task_id, request.user_id))


@router.delete("/{task_id}/participants/{participant_id}")
async def remove_participant(
    task_id: str,
    participant_id: str,
    service: TaskService = Depends(get_task_service),
):
    return _one(await service.remove_participant(task_id, participant_id))
