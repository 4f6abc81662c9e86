"""Chat service — conversations, messages and their realtime events.

Every mutation commits before its event is emitted, so a client that
re-fetches after receiving an event sees the state that produced it.
"""

from typing import Any, Iterable, Optional

from fastapi import Depends, Request

from core.database import Database, get_database
from core.errors import NotFound, Unauthorized
from core.logging_setup import get_logger
from core.models.base import as_utc, new_id, utcnow
from core.realtime import Broadcaster, ChatEvent
from verticals.chat.models.db_models import Message
from verticals.chat.models.schemas import ParticipantIn, ReplyTo
from verticals.chat.repository import ConversationRepository, MessageRepository
from verticals.tasks.models.schemas import TaskStatus
from verticals.users.repository import UserRepository

logger = get_logger(__name__)


class ChatService:
    """Conversation/message store plus fan-out through the Broadcaster."""

    def __init__(self, database: Database, broadcaster: Broadcaster):
        self.database = database
        self.broadcaster = broadcaster

    # -----------------------------------------------------------------------
    # Conversations
    # -----------------------------------------------------------------------

    async def create_conversation(
        self,
        task_id: str,
        task_title: str,
        task_status: TaskStatus | str,
        participants: Iterable[ParticipantIn],
    ) -> dict[str, Any]:
        """Always creates a new conversation; callers check for an existing one."""
        async with self.database.transaction() as session:
            conversations = ConversationRepository(session)
            conversation = await conversations.create({
                "task_id": task_id,
                "task_title": task_title,
                "task_status": TaskStatus(task_status).value,
                "unread_count": 0,
            })
            for position, p in enumerate(participants):
                await conversations.add_participant(
                    conversation.id,
                    position,
                    user_id=p.id,
                    name=p.name,
                    avatar=p.avatar,
                    role=p.role.value,
                    last_seen=as_utc(p.last_seen) if p.last_seen else None,
                )
            members = await conversations.participants([conversation.id])

        logger.info(
            "Conversation created",
            extra={"extra_data": {"conversation_id": conversation.id, "task_id": task_id}},
        )
        return conversation.to_dict(members[conversation.id])

    async def get_conversations(self, user_id: str) -> list[dict[str, Any]]:
        async with self.database.transaction() as session:
            conversations = ConversationRepository(session)
            found = await conversations.for_user(user_id)
            members = await conversations.participants([c.id for c in found])
        return [c.to_dict(members[c.id]) for c in found]

    async def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        """The conversation with its messages, oldest first."""
        async with self.database.transaction() as session:
            conversations = ConversationRepository(session)
            conversation = await conversations.require(conversation_id)
            members = await conversations.participants([conversation_id])
            messages_repo = MessageRepository(session)
            messages = await messages_repo.for_conversation(conversation_id)
            read_by = await messages_repo.read_by([m.id for m in messages])

        data = conversation.to_dict(members[conversation_id])
        data["messages"] = [m.to_dict(read_by[m.id]) for m in messages]
        if data["messages"]:
            data["lastMessage"] = data["messages"][-1]
        else:
            data.pop("lastMessage", None)
        return data

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    async def resolve_sender(self, user_id: str) -> str:
        """Display name of the caller, frozen into each message they send."""
        async with self.database.transaction() as session:
            user = await UserRepository(session).get(user_id)
        if user is None or not user.display_name:
            raise Unauthorized()
        return user.display_name

    async def send_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        content: str,
        reply_to: Optional[ReplyTo | dict] = None,
    ) -> dict[str, Any]:
        if isinstance(reply_to, ReplyTo):
            reply_to = reply_to.model_dump(by_alias=True)
        now = utcnow()

        async with self.database.transaction() as session:
            messages = MessageRepository(session)
            message = Message(
                id=new_id(),
                conversation_id=conversation_id,
                sender_id=sender_id,
                sender_name=sender_name,
                content=content,
                timestamp=now,
                reply_to=reply_to,
            )
            if not await ConversationRepository(session).record_message(
                conversation_id, message.summary(), now
            ):
                raise NotFound.of("Conversation")
            session.add(message)
            await session.flush()
            await messages.mark_read(message.id, sender_id)
            payload = message.to_dict(read_by=[sender_id])

        logger.info(
            "Message sent",
            extra={"extra_data": {"conversation_id": conversation_id, "message_id": message.id}},
        )
        self.broadcaster.emit(conversation_id, ChatEvent.NEW_MESSAGE, payload)
        return payload

    async def mark_as_read(self, conversation_id: str, user_id: str) -> int:
        """Add the user to every message's readers and zero the unread count."""
        async with self.database.transaction() as session:
            added = await MessageRepository(session).mark_all_read(conversation_id, user_id, utcnow())
            if not await ConversationRepository(session).reset_unread(conversation_id):
                raise NotFound.of("Conversation")

        logger.debug(
            "Messages marked as read",
            extra={"extra_data": {"conversation_id": conversation_id, "user_id": user_id, "added": added}},
        )
        self.broadcaster.emit(
            conversation_id,
            ChatEvent.CONVERSATION_UPDATE,
            {"id": conversation_id, "unreadCount": 0},
        )
        return added

    async def edit_message(self, message_id: str, content: str) -> dict[str, Any]:
        async with self.database.transaction() as session:
            messages = MessageRepository(session)
            message = await messages.update(message_id, {"content": content})
            read_by = await messages.read_by([message_id])
            payload = message.to_dict(read_by[message_id])

        self.broadcaster.emit(message.conversation_id, ChatEvent.MESSAGE_UPDATE, payload)
        return payload

    async def delete_message(self, message_id: str) -> None:
        async with self.database.transaction() as session:
            messages = MessageRepository(session)
            message = await messages.require(message_id)
            conversation_id = message.conversation_id
            await messages.delete_receipts(message_id)
            await messages.delete(message_id)

        logger.info(
            "Message deleted",
            extra={"extra_data": {"conversation_id": conversation_id, "message_id": message_id}},
        )
        self.broadcaster.emit(conversation_id, ChatEvent.MESSAGE_DELETED, message_id)


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_chat_service(
    database: Database = Depends(get_database),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> ChatService:
    """FastAPI dependency for ChatService."""
    return ChatService(database, broadcaster)
