"""Messaging router - FastAPI endpoints for conversations, messages and reactions"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import AppointmentConversationRequest, BroadcastRequest, ReactionRequest, SendMessageRequest
from .service import MessagingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


def get_messaging_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> MessagingService:
    """Dependency injection for MessagingService"""
    return MessagingService(db, background_tasks)


# ============================================================================
# CONVERSATIONS
# ============================================================================


@router.get("/conversations")
async def get_conversations(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """All conversations of the caller, most recently active first"""
    try:
        return {"conversations": service.list_conversations(current_user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching conversations for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch conversations")


@router.get("/conversation/{conversation_id}")
async def get_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Conversation with its messages; marks it read for the caller"""
    try:
        return service.get_conversation(conversation_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error fetching conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch conversation")


@router.post("/conversation/appointment")
async def get_appointment_conversation(
    data: AppointmentConversationRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        conversation = service.get_or_create_appointment_conversation(data.appointmentId, current_user)
        return {"conversation": conversation}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error creating appointment conversation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create conversation")


@router.post("/conversation/support")
async def get_support_conversation(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        return {"conversation": service.get_or_create_support_conversation(current_user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error creating support conversation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create support conversation")


@router.delete("/conversation/{conversation_id}")
async def delete_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Owner only: remove a conversation with all its messages"""
    try:
        service.delete_conversation(conversation_id, current_user)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deleting conversation {conversation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete conversation")


# ============================================================================
# MESSAGES
# ============================================================================


@router.post("/send", status_code=201)
async def send_message(
    data: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        return {"message": service.send_message(data.conversationId, data.content, current_user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error sending message: {e}")
        raise HTTPException(status_code=500, detail="Failed to send message")


@router.post("/broadcast", status_code=201)
async def send_broadcast(
    data: BroadcastRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        return service.broadcast(current_user, data.content, data.targetAudience, data.title)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error sending broadcast: {e}")
        raise HTTPException(status_code=500, detail="Failed to send broadcast")


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        return {"unreadCount": service.unread_count(current_user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error counting unread messages: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch unread count")


@router.patch("/mark-read/{conversation_id}")
async def mark_read(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        service.mark_read(conversation_id, current_user)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error marking conversation {conversation_id} read: {e}")
        raise HTTPException(status_code=500, detail="Failed to mark as read")


# ============================================================================
# REACTIONS
# ============================================================================


@router.post("/{message_id}/react")
async def toggle_reaction(
    message_id: int,
    data: ReactionRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Add the emoji, or remove it if the caller already reacted with it"""
    try:
        return service.toggle_reaction(message_id, data.emoji, current_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error toggling reaction on message {message_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update reaction")


@router.delete("/{message_id}/react/{emoji}")
async def remove_reaction(
    message_id: int,
    emoji: str,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        service.remove_reaction(message_id, emoji, current_user)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error removing reaction from message {message_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove reaction")


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    try:
        service.delete_message(message_id, current_user)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deleting message {message_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete message")
