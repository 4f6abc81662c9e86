"""Chat repositories — conversations, messages and read receipts."""

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import DateTime, String, delete, exists, literal, select, update

from patterns.repository import BaseRepository
from verticals.chat.models.db_models import (
    Conversation,
    ConversationParticipant,
    Message,
    message_reads,
)


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversations and their participant rows."""

    model = Conversation
    label = "Conversation"
    immutable = ("task_id",)

    async def for_user(self, user_id: str) -> list[Conversation]:
        """Conversations the user is in, most recently active first."""
        stmt = (
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(ConversationParticipant.user_id == user_id)
            .order_by(Conversation.updated_at.desc(), Conversation.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().unique().all())

    async def add_participant(self, conversation_id: str, position: int, **fields: Any) -> bool:
        return await self.add_member(
            ConversationParticipant.__table__,
            conversation_id=conversation_id,
            position=position,
            **fields,
        )

    async def participants(
        self,
        conversation_ids: Sequence[str],
    ) -> dict[str, list[ConversationParticipant]]:
        grouped: dict[str, list[ConversationParticipant]] = {cid: [] for cid in conversation_ids}
        if not conversation_ids:
            return grouped
        stmt = (
            select(ConversationParticipant)
            .where(ConversationParticipant.conversation_id.in_(list(conversation_ids)))
            .order_by(ConversationParticipant.position, ConversationParticipant.user_id)
        )
        result = await self.session.execute(stmt)
        for p in result.scalars().all():
            grouped[p.conversation_id].append(p)
        return grouped

    async def record_message(self, conversation_id: str, summary: dict, at: datetime) -> bool:
        """Store the last-message summary and bump the unread counter.

        The counter is incremented in SQL, so concurrent senders never
        lose an increment. Returns False if the conversation is missing.
        """
        result = await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(
                last_message=summary,
                updated_at=at,
                unread_count=Conversation.unread_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def reset_unread(self, conversation_id: str) -> bool:
        result = await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class MessageRepository(BaseRepository[Message]):
    """Repository for messages and their read receipts."""

    model = Message
    label = "Message"
    immutable = ("conversation_id", "sender_id", "sender_name", "timestamp", "reply_to")

    async def for_conversation(self, conversation_id: str) -> list[Message]:
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.timestamp.asc(), Message.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def read_by(self, message_ids: Sequence[str]) -> dict[str, list[str]]:
        """Map of message id -> ids of users who read it, in read order."""
        grouped: dict[str, list[str]] = {mid: [] for mid in message_ids}
        if not message_ids:
            return grouped
        stmt = (
            select(message_reads.c.message_id, message_reads.c.user_id)
            .where(message_reads.c.message_id.in_(list(message_ids)))
            .order_by(message_reads.c.read_at, message_reads.c.user_id)
        )
        result = await self.session.execute(stmt)
        for message_id, user_id in result.all():
            grouped[message_id].append(user_id)
        return grouped

    async def mark_read(self, message_id: str, user_id: str) -> bool:
        return await self.add_member(message_reads, message_id=message_id, user_id=user_id)

    async def mark_all_read(self, conversation_id: str, user_id: str, at: datetime) -> int:
        """Add a receipt for every message in the conversation the user lacks.

        One INSERT ... SELECT; receipts written concurrently by another
        request are skipped, not duplicated. Returns the number added.
        """
        already_read = exists().where(
            message_reads.c.message_id == Message.id,
            message_reads.c.user_id == user_id,
        )
        unread = select(
            Message.id,
            literal(user_id, String),
            literal(at, DateTime(timezone=True)),
        ).where(Message.conversation_id == conversation_id, ~already_read)

        stmt = (
            self.insert_ignoring_duplicates(message_reads)
            .from_select(["message_id", "user_id", "read_at"], unread)
            .on_conflict_do_nothing()
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_receipts(self, message_id: str) -> int:
        result = await self.session.execute(
            delete(message_reads).where(message_reads.c.message_id == message_id)
        )
        return result.rowcount or 0
