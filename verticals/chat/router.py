"""Chat API router — conversations and messages.

Response bodies are the conversation or message objects themselves;
lifecycle events are pushed to the conversation's room after each write.
"""

from fastapi import APIRouter, Depends

from api.middleware import require_user
from verticals.chat.models.schemas import ConversationCreate, MessageCreate, MessageEdit
from verticals.chat.service import ChatService, get_chat_service

router = APIRouter(dependencies=[Depends(require_user)])


# ============================================================================
# Conversations
# ============================================================================

@router.get("/conversations")
async def list_conversations(
    user_id: str = Depends(require_user),
    service: ChatService = Depends(get_chat_service),
):
    """Conversations the caller participates in, newest activity first."""
    return await service.get_conversations(user_id)


@router.get("/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
):
    return await service.get_conversation(conversation_id)


@router.post("/conversations", status_code=201)
async def create_conversation(
    request: ConversationCreate,
    service: ChatService = Depends(get_chat_service),
):
    return await service.create_conversation(
        request.task_id,
        request.task_title,
        request.task_status,
        request.participants,
    )


# ============================================================================
# Messages
# ============================================================================

@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def send_message(
    conversation_id: str,
    request: MessageCreate,
    user_id: str = Depends(require_user),
    service: ChatService = Depends(get_chat_service),
):
    sender_name = await service.resolve_sender(user_id)
    return await service.send_message(
        conversation_id,
        user_id,
        sender_name,
        request.content,
        request.reply_to,
    )


@router.put("/conversations/{conversation_id}/read")
async def mark_as_read(
    conversation_id: str,
    user_id: str = Depends(require_user),
    service: ChatService = Depends(get_chat_service),
):
    await service.mark_as_read(conversation_id, user_id)
    return {"message": "Messages marked as read"}


@router.put("/messages/{message_id}")
async def edit_message(
    message_id: str,
    request: MessageEdit,
    service: ChatService = Depends(get_chat_service),
):
    return await service.edit_message(message_id, request.content)


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    service: ChatService = Depends(get_chat_service),
):
    await service.delete_message(message_id)
    return {"message": "Message deleted successfully"}
