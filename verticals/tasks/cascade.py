"""Hierarchy cascade — transactional deletion of tasks and subtasks.

Dependents are removed explicitly, leaf first, inside one transaction:

    comments -> subtasks -> participant rows -> task

Either every row goes or none does. Lower-level failures are logged with
their cause and surfaced as TransactionAborted; a missing task or subtask
still surfaces as NotFound.
"""

from core.database import Database
from core.errors import NotFound, TransactionAborted
from core.logging_setup import get_logger
from verticals.tasks.models.db_models import Comment, SubTask
from verticals.tasks.progress import ProgressAggregator
from verticals.tasks.repository import CommentRepository, SubTaskRepository, TaskRepository

logger = get_logger(__name__)


class CascadeManager:
    """Deletes a task or subtask together with everything it owns."""

    def __init__(self, database: Database, aggregator: ProgressAggregator):
        self.database = database
        self.aggregator = aggregator

    async def delete_task(self, task_id: str) -> None:
        try:
            async with self.database.transaction() as session:
                tasks = TaskRepository(session)
                subtasks = SubTaskRepository(session)

                await tasks.require(task_id)
                subtask_ids = await subtasks.ids_for_task(task_id)
                comments = await CommentRepository(session).delete_for_subtasks(subtask_ids)
                removed = await subtasks.delete_where(SubTask.task_id == task_id)
                await tasks.clear_participants(task_id)
                await tasks.delete(task_id)
        except NotFound:
            raise
        except Exception as exc:
            logger.exception(
                "Task cascade aborted",
                extra={"extra_data": {"task_id": task_id, "error": type(exc).__name__}},
            )
            raise TransactionAborted("Failed to delete task and its associated data") from exc

        logger.info(
            "Task deleted",
            extra={"extra_data": {"task_id": task_id, "subtasks": removed, "comments": comments}},
        )

    async def delete_subtask(self, task_id: str, subtask_id: str) -> int:
        """Delete one subtask and its comments, then refresh task progress.

        Returns the task's new progress.
        """
        try:
            async with self.database.transaction() as session:
                await TaskRepository(session).require(task_id)
                subtasks = SubTaskRepository(session)
                if await subtasks.get_in_task(task_id, subtask_id) is None:
                    raise NotFound.of("Subtask")

                comments = await CommentRepository(session).delete_where(
                    Comment.subtask_id == subtask_id
                )
                await subtasks.delete(subtask_id)
        except NotFound:
            raise
        except Exception as exc:
            logger.exception(
                "Subtask cascade aborted",
                extra={"extra_data": {"task_id": task_id, "subtask_id": subtask_id}},
            )
            raise TransactionAborted("Failed to delete subtask and its associated data") from exc

        logger.info(
            "Subtask deleted",
            extra={"extra_data": {"task_id": task_id, "subtask_id": subtask_id, "comments": comments}},
        )
        return await self.aggregator.recompute_task_progress(task_id)
