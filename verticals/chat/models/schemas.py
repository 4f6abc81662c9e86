"""Pydantic schemas for chat API request validation."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from verticals.tasks.models.schemas import TaskStatus, WireModel


class ParticipantRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class ParticipantIn(WireModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    avatar: Optional[str] = None
    role: ParticipantRole = ParticipantRole.MEMBER
    last_seen: Optional[datetime] = None


class ConversationCreate(WireModel):
    task_id: str = Field(..., min_length=1)
    task_title: str = Field(..., min_length=1)
    task_status: TaskStatus
    participants: list[ParticipantIn]


class ReplyTo(WireModel):
    """Snapshot of the message being answered, copied into the reply."""
    id: str = Field(..., min_length=1)
    sender_name: str
    content: str


class MessageCreate(WireModel):
    content: str = Field(..., min_length=1)
    reply_to: Optional[ReplyTo] = None


class MessageEdit(WireModel):
    content: str = Field(..., min_length=1)
