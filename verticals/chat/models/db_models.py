"""SQLAlchemy models for task chat.

Conversations correlate to a task by id only (no foreign key), carrying a
denormalized copy of its title and status. Participants and read receipts
are association rows with composite primary keys, so membership changes
are single atomic statements.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import (
    JSON,
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

from core.models.base import Base, EntityMixin, isoformat, utcnow


message_reads = Table(
    "message_reads",
    Base.metadata,
    Column("message_id", String(36), ForeignKey("messages.id"), primary_key=True),
    Column("user_id", String(64), primary_key=True),
    Column("read_at", DateTime(timezone=True), nullable=False, default=utcnow),
)


class Conversation(EntityMixin, Base):
    """Chat channel for one task."""

    __tablename__ = "conversations"

    task_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    task_title: Mapped[str] = mapped_column(String(200), nullable=False)
    task_status: Mapped[str] = mapped_column(String(20), nullable=False)
    # {"id", "content", "senderId", "senderName", "timestamp"}
    last_message: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self, participants: Iterable["ConversationParticipant"] = ()) -> dict:
        data = {
            "id": self.id,
            "taskId": self.task_id,
            "taskTitle": self.task_title,
            "taskStatus": self.task_status,
            "participants": [p.to_dict() for p in participants],
            "unreadCount": self.unread_count,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if self.last_message:
            data["lastMessage"] = self.last_message
        return data


class ConversationParticipant(Base):
    """A member of a conversation, with display data captured at creation."""

    __tablename__ = "conversation_participants"
    __table_args__ = (
        CheckConstraint("role IN ('owner', 'member')", name="ck_participant_role"),
    )

    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default="member")
    last_seen: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        data = {"id": self.user_id, "name": self.name, "role": self.role}
        if self.avatar:
            data["avatar"] = self.avatar
        if self.last_seen:
            data["lastSeen"] = isoformat(self.last_seen)
        return data


class Message(EntityMixin, Base):
    """One chat message. `reply_to` is a snapshot frozen at send time."""

    __tablename__ = "messages"

    conversation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("conversations.id"), nullable=False, index=True
    )
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    # {"id", "senderName", "content"}
    reply_to: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    def summary(self) -> dict:
        """Denormalized form stored as Conversation.last_message."""
        return {
            "id": self.id,
            "content": self.content,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "timestamp": isoformat(self.timestamp),
        }

    def to_dict(self, read_by: Iterable[str] = ()) -> dict:
        data = {
            "id": self.id,
            "conversationId": self.conversation_id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "content": self.content,
            "timestamp": isoformat(self.timestamp),
            "readBy": list(read_by),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if self.reply_to:
            data["replyTo"] = self.reply_to
        return data
