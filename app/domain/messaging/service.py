"""Messaging service - Business logic for conversations, messages and reactions"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.orm import Session

from ...email_service import send_new_message_email
from ...models import Conversation, Message, MessageReaction, User, UserAppointment
from ...serializers import serialize_user_summary
from ...services.notifications import NotificationService, wants_email
from .repository import AUDIENCE_TYPES, STAFF_TYPES, MessagingRepository

logger = logging.getLogger(__name__)

DEFAULT_BROADCAST_TITLE = "Company Announcement"
DELETED_MESSAGE_TEXT = "This message was deleted"


def serialize_reaction(reaction: MessageReaction) -> dict[str, Any]:
    return {
        "id": reaction.id,
        "messageId": reaction.message_id,
        "userId": reaction.user_id,
        "emoji": reaction.emoji,
        "user": serialize_user_summary(reaction.user),
        "createdAt": reaction.created_at,
    }


def serialize_message(message: Message) -> dict[str, Any]:
    deleted = message.deleted_at is not None
    return {
        "id": message.id,
        "conversationId": message.conversation_id,
        "senderId": message.sender_id,
        "sender": serialize_user_summary(message.sender),
        "content": DELETED_MESSAGE_TEXT if deleted else message.content,
        "messageType": message.message_type,
        "isDeleted": deleted,
        "reactions": [] if deleted else [serialize_reaction(r) for r in message.reactions],
        "createdAt": message.created_at,
    }


class MessagingService:
    """Service layer for messaging business logic"""

    def __init__(self, db: Session, background_tasks: Optional[BackgroundTasks] = None):
        self.db = db
        self.repo = MessagingRepository()
        self.notifications = NotificationService(db, background_tasks)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _serialize_conversation(self, conversation: Conversation, user: User) -> dict[str, Any]:
        participant = self.repo.get_participant(self.db, conversation.id, user.id)
        last_read_at = participant.last_read_at if participant else None
        last_message = self.repo.get_last_message(self.db, conversation.id)
        return {
            "id": conversation.id,
            "conversationType": conversation.conversation_type,
            "appointmentId": conversation.appointment_id,
            "title": conversation.title,
            "createdBy": conversation.created_by,
            "participants": [
                {**serialize_user_summary(p.user), "lastReadAt": p.last_read_at} for p in conversation.participants
            ],
            "lastMessage": serialize_message(last_message) if last_message else None,
            "unreadCount": self.repo.count_unread(self.db, conversation.id, user.id, last_read_at),
            "createdAt": conversation.created_at,
            "updatedAt": conversation.updated_at,
        }

    def _get_conversation(self, conversation_id: int) -> Conversation:
        conversation = self.repo.get_conversation(self.db, conversation_id)
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation

    def _get_message(self, message_id: int) -> Message:
        message = self.repo.get_message(self.db, message_id)
        if not message:
            raise HTTPException(status_code=404, detail="Message not found")
        return message

    # ========================================================================
    # CONVERSATIONS
    # ========================================================================

    def list_conversations(self, user: User) -> list[dict[str, Any]]:
        conversations = self.repo.get_user_conversations(self.db, user.id)
        return [self._serialize_conversation(c, user) for c in conversations]

    def get_conversation(self, conversation_id: int, user: User) -> dict[str, Any]:
        conversation = self._get_conversation(conversation_id)
        participant = self.repo.get_participant(self.db, conversation.id, user.id)
        if not participant:
            raise HTTPException(status_code=403, detail="Not authorized to view this conversation")

        messages = self.repo.get_messages(self.db, conversation.id)
        participant.last_read_at = datetime.utcnow()
        self.db.commit()

        return {
            "conversation": self._serialize_conversation(conversation, user),
            "messages": [serialize_message(m) for m in messages],
        }

    def get_or_create_appointment_conversation(self, appointment_id: int, user: User) -> dict[str, Any]:
        appointment = self.db.query(UserAppointment).filter(UserAppointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")

        cleaner_ids = [int(e) for e in (appointment.employees_assigned or []) if str(e).isdigit()]
        if user.id != appointment.user_id and user.id not in cleaner_ids and user.type not in STAFF_TYPES:
            raise HTTPException(status_code=403, detail="Not authorized")

        conversation = self.repo.find_appointment_conversation(self.db, appointment.id)
        if not conversation:
            conversation = self.repo.create_conversation(
                self.db,
                conversation_type="appointment",
                appointment_id=appointment.id,
                title=f"Appointment - {appointment.date.isoformat()}",
                created_by=user.id,
            )
            logger.info(f"💬 Created conversation {conversation.id} for appointment {appointment.id}")

        # Cleaners assigned after creation join on the next lookup
        owner_ids = [o.id for o in self.repo.get_owners(self.db)]
        self.repo.add_participants(self.db, conversation, [appointment.user_id, *cleaner_ids, *owner_ids])
        self.db.commit()
        self.db.refresh(conversation)
        return self._serialize_conversation(conversation, user)

    def get_or_create_support_conversation(self, user: User) -> dict[str, Any]:
        if user.type in STAFF_TYPES:
            raise HTTPException(status_code=400, detail="Owners and HR cannot create support conversations")

        staff = self.repo.get_staff(self.db)
        if not any(s.type == "owner" for s in staff):
            raise HTTPException(status_code=404, detail="No owner available")

        conversation = self.repo.find_support_conversation(self.db, user.id)
        if not conversation:
            conversation = self.repo.create_conversation(
                self.db,
                conversation_type="support",
                title=f"Support - {user.username}",
                created_by=user.id,
            )
            logger.info(f"💬 Created support conversation {conversation.id} for user {user.id}")

        self.repo.add_participants(self.db, conversation, [user.id, *[s.id for s in staff]])
        self.db.commit()
        self.db.refresh(conversation)
        return self._serialize_conversation(conversation, user)

    def delete_conversation(self, conversation_id: int, user: User) -> None:
        if user.type != "owner":
            raise HTTPException(status_code=403, detail="Only the owner can delete conversations")
        conversation = self._get_conversation(conversation_id)
        self.db.delete(conversation)
        self.db.commit()
        logger.info(f"🗑️ Conversation {conversation_id} deleted by owner {user.id}")

    # ========================================================================
    # MESSAGES
    # ========================================================================

    def send_message(self, conversation_id: int, content: Optional[str], user: User) -> dict[str, Any]:
        content = (content or "").strip()
        if not content:
            raise HTTPException(status_code=400, detail="Message content is required")

        conversation = self._get_conversation(conversation_id)
        participant = self.repo.get_participant(self.db, conversation.id, user.id)
        if not participant:
            raise HTTPException(status_code=403, detail="Not authorized to send messages in this conversation")

        if conversation.conversation_type == "appointment" and conversation.appointment_id:
            appointment = (
                self.db.query(UserAppointment).filter(UserAppointment.id == conversation.appointment_id).first()
            )
            if appointment and appointment.completed:
                raise HTTPException(status_code=403, detail="Messaging is disabled for completed appointments")

        is_first_message = self.repo.count_messages(self.db, conversation.id) == 0
        now = datetime.utcnow()
        message = self.repo.create_message(
            self.db,
            conversation_id=conversation.id,
            sender_id=user.id,
            content=content,
            message_type="text",
            created_at=now,
        )
        conversation.updated_at = now
        participant.last_read_at = now
        self.db.commit()
        self.db.refresh(message)
        logger.info(f"💬 Message {message.id} sent by user {user.id} in conversation {conversation.id}")

        if is_first_message:
            self._email_participants(conversation, user, content)

        return serialize_message(message)

    def _email_participants(self, conversation: Conversation, sender: User, content: str) -> None:
        title = conversation.title or "Kleanr conversation"
        for participant in conversation.participants:
            recipient = participant.user
            if recipient.id == sender.id or not wants_email(recipient):
                continue
            self.notifications.send_email(
                send_new_message_email,
                "new_message",
                to=recipient.email,
                recipient_name=recipient.display_name,
                sender_name=sender.display_name,
                preview=content,
                conversation_title=title,
            )

    def broadcast(
        self, user: User, content: Optional[str], target_audience: Optional[str], title: Optional[str]
    ) -> dict[str, Any]:
        if user.type != "owner":
            raise HTTPException(status_code=403, detail="Only owners can send broadcasts")

        content = (content or "").strip()
        if not content:
            raise HTTPException(status_code=400, detail="Broadcast content is required")
        if target_audience not in AUDIENCE_TYPES:
            raise HTTPException(status_code=400, detail="Invalid target audience")

        recipients = self.repo.get_audience(self.db, target_audience)
        now = datetime.utcnow()
        conversation = self.repo.create_conversation(
            self.db,
            conversation_type="broadcast",
            title=(title or "").strip() or DEFAULT_BROADCAST_TITLE,
            created_by=user.id,
        )
        self.repo.add_participants(self.db, conversation, [user.id, *[r.id for r in recipients]])
        self.repo.create_message(
            self.db,
            conversation_id=conversation.id,
            sender_id=user.id,
            content=content,
            message_type="broadcast",
            created_at=now,
        )
        conversation.updated_at = now
        self.db.commit()
        self.db.refresh(conversation)
        logger.info(f"📣 Broadcast {conversation.id} sent to {len(recipients)} {target_audience}")

        return {
            "conversation": self._serialize_conversation(conversation, user),
            "recipientCount": len(recipients),
        }

    def unread_count(self, user: User) -> int:
        total = 0
        for conversation in self.repo.get_user_conversations(self.db, user.id):
            participant = self.repo.get_participant(self.db, conversation.id, user.id)
            total += self.repo.count_unread(self.db, conversation.id, user.id, participant.last_read_at)
        return total

    def mark_read(self, conversation_id: int, user: User) -> None:
        participant = self.repo.get_participant(self.db, conversation_id, user.id)
        if not participant:
            raise HTTPException(status_code=403, detail="Not a participant of this conversation")
        participant.last_read_at = datetime.utcnow()
        self.db.commit()

    def delete_message(self, message_id: int, user: User) -> None:
        message = self._get_message(message_id)
        if message.sender_id != user.id:
            raise HTTPException(status_code=403, detail="You can only delete your own messages")
        message.deleted_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"🗑️ Message {message_id} soft-deleted by user {user.id}")

    # ========================================================================
    # REACTIONS
    # ========================================================================

    def toggle_reaction(self, message_id: int, emoji: Optional[str], user: User) -> dict[str, Any]:
        emoji = (emoji or "").strip()
        if not emoji:
            raise HTTPException(status_code=400, detail="Emoji is required")

        message = self._get_message(message_id)
        if not self.repo.get_participant(self.db, message.conversation_id, user.id):
            raise HTTPException(status_code=403, detail="Not authorized")

        existing = self.repo.get_reaction(self.db, message.id, user.id, emoji)
        if existing:
            self.db.delete(existing)
            self.db.commit()
            return {"success": True, "action": "removed", "reaction": None}

        reaction = MessageReaction(message_id=message.id, user_id=user.id, emoji=emoji)
        self.db.add(reaction)
        self.db.commit()
        self.db.refresh(reaction)
        return {"success": True, "action": "added", "reaction": serialize_reaction(reaction)}

    def remove_reaction(self, message_id: int, emoji: str, user: User) -> None:
        message = self._get_message(message_id)
        reaction = self.repo.get_reaction(self.db, message.id, user.id, emoji)
        if not reaction:
            if self.repo.reaction_exists(self.db, message.id, emoji):
                raise HTTPException(status_code=403, detail="You can only remove your own reactions")
            raise HTTPException(status_code=404, detail="Reaction not found")
        self.db.delete(reaction)
        self.db.commit()
