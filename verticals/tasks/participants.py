"""Participant membership on tasks.

Membership is a set backed by the task_participants association table.
Adds and removes are single statements; the table's primary key keeps a
concurrent double-add from producing a duplicate.
"""

from core.database import Database
from core.errors import Conflict, NotFound
from core.logging_setup import get_logger
from verticals.tasks.models.refs import TaskSnapshot
from verticals.tasks.repository import TaskRepository
from verticals.tasks.rules import check_not_participant, check_valid_id, enforce, evaluate_rules
from verticals.users.repository import UserRepository

logger = get_logger(__name__)


class ParticipantManager:
    """Adds and removes task participants; returns the populated task graph."""

    def __init__(self, database: Database):
        self.database = database

    async def add_participant(self, task_id: str, user_id: str) -> TaskSnapshot:
        enforce(evaluate_rules(
            check_valid_id(task_id, "task ID"),
            check_valid_id(user_id, "user ID"),
        ))

        async with self.database.transaction() as session:
            if await UserRepository(session).get(user_id) is None:
                raise NotFound.of("User")
            tasks = TaskRepository(session)
            await tasks.require(task_id)

            enforce(check_not_participant(await tasks.participant_ids(task_id), user_id), Conflict)
            # Another request may have added the same user since the check
            if not await tasks.add_participant(task_id, user_id):
                raise Conflict("User is already a participant")

            snapshot = await tasks.load_graph(task_id)

        logger.info(
            "Participant added",
            extra={"extra_data": {"task_id": task_id, "user_id": user_id}},
        )
        return snapshot

    async def remove_participant(self, task_id: str, participant_id: str) -> TaskSnapshot:
        """Idempotent: removing a non-participant leaves the task unchanged."""
        async with self.database.transaction() as session:
            tasks = TaskRepository(session)
            await tasks.require(task_id)
            removed = await tasks.remove_participant(task_id, participant_id)
            snapshot = await tasks.load_graph(task_id)

        if removed:
            logger.info(
                "Participant removed",
                extra={"extra_data": {"task_id": task_id, "user_id": participant_id}},
            )
        return snapshot
