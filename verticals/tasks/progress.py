"""Progress aggregation — keeps a task's progress in line with its subtasks.

The math lives in rules.aggregate_progress(); this module reads the subtask
values and persists the result in a transaction of its own. Callers invoke
it after their own write has committed, so a failed refresh never undoes
the subtask change that triggered it.
"""

from core.database import Database
from core.logging_setup import get_logger
from verticals.tasks.repository import SubTaskRepository, TaskRepository
from verticals.tasks.rules import aggregate_progress

logger = get_logger(__name__)


class ProgressAggregator:
    """Recomputes and stores Task.progress from subtask progress."""

    def __init__(self, database: Database):
        self.database = database

    async def recompute_task_progress(self, task_id: str) -> int:
        """Rounded mean of subtask progress (0 with no subtasks).

        Raises NotFound for an unknown task.
        """
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            await tasks.require(task_id)
            values = await SubTaskRepository(session).progress_values(task_id)
            progress = aggregate_progress(values)
            await tasks.set_progress(task_id, progress)

        logger.debug(
            "Task progress recomputed",
            extra={"extra_data": {"task_id": task_id, "subtasks": len(values), "progress": progress}},
        )
        return progress
