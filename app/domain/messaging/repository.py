"""Messaging repository - Database operations for conversations and messages"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Conversation, ConversationParticipant, Message, MessageReaction, User

STAFF_TYPES = ("owner", "humanResources")

AUDIENCE_TYPES = {
    "cleaners": ("cleaner",),
    "homeowners": ("homeowner",),
    "all": ("cleaner", "homeowner"),
}


class MessagingRepository:
    """Repository for messaging database operations"""

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    @staticmethod
    def get_conversation(db: Session, conversation_id: int) -> Optional[Conversation]:
        return db.query(Conversation).filter(Conversation.id == conversation_id).first()

    @staticmethod
    def get_user_conversations(db: Session, user_id: int) -> list[Conversation]:
        """Conversations the user takes part in, most recently active first"""
        return (
            db.query(Conversation)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .filter(ConversationParticipant.user_id == user_id)
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            .all()
        )

    @staticmethod
    def find_appointment_conversation(db: Session, appointment_id: int) -> Optional[Conversation]:
        return (
            db.query(Conversation)
            .filter(
                Conversation.conversation_type == "appointment",
                Conversation.appointment_id == appointment_id,
            )
            .first()
        )

    @staticmethod
    def find_support_conversation(db: Session, user_id: int) -> Optional[Conversation]:
        return (
            db.query(Conversation)
            .filter(Conversation.conversation_type == "support", Conversation.created_by == user_id)
            .first()
        )

    @staticmethod
    def create_conversation(db: Session, **data) -> Conversation:
        conversation = Conversation(**data)
        db.add(conversation)
        db.flush()
        return conversation

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    @staticmethod
    def get_participant(db: Session, conversation_id: int, user_id: int) -> Optional[ConversationParticipant]:
        return (
            db.query(ConversationParticipant)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .first()
        )

    @staticmethod
    def add_participants(db: Session, conversation: Conversation, user_ids: list[int]) -> None:
        """Add users not already in the conversation"""
        existing = {
            p.user_id
            for p in db.query(ConversationParticipant)
            .filter(ConversationParticipant.conversation_id == conversation.id)
            .all()
        }
        for user_id in dict.fromkeys(user_ids):
            if user_id not in existing:
                db.add(ConversationParticipant(conversation_id=conversation.id, user_id=user_id))
        db.flush()

    @staticmethod
    def get_staff(db: Session) -> list[User]:
        return db.query(User).filter(User.type.in_(STAFF_TYPES)).order_by(User.id).all()

    @staticmethod
    def get_owners(db: Session) -> list[User]:
        return db.query(User).filter(User.type == "owner").order_by(User.id).all()

    @staticmethod
    def get_audience(db: Session, target_audience: str) -> list[User]:
        return (
            db.query(User)
            .filter(
                User.type.in_(AUDIENCE_TYPES[target_audience]),
                User.is_demo_account.is_(False),
            )
            .order_by(User.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @staticmethod
    def get_message(db: Session, message_id: int) -> Optional[Message]:
        return db.query(Message).filter(Message.id == message_id).first()

    @staticmethod
    def get_messages(db: Session, conversation_id: int) -> list[Message]:
        return (
            db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )

    @staticmethod
    def count_messages(db: Session, conversation_id: int) -> int:
        return db.query(Message).filter(Message.conversation_id == conversation_id).count()

    @staticmethod
    def get_last_message(db: Session, conversation_id: int) -> Optional[Message]:
        return (
            db.query(Message)
            .filter(Message.conversation_id == conversation_id, Message.deleted_at.is_(None))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .first()
        )

    @staticmethod
    def count_unread(
        db: Session, conversation_id: int, user_id: int, last_read_at: Optional[datetime]
    ) -> int:
        """Messages from others, not deleted, newer than the user's last read"""
        query = db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.deleted_at.is_(None),
        )
        if last_read_at is not None:
            query = query.filter(Message.created_at > last_read_at)
        return query.count()

    @staticmethod
    def create_message(db: Session, **data) -> Message:
        message = Message(**data)
        db.add(message)
        db.flush()
        return message

    # ------------------------------------------------------------------
    # Reactions
    # ------------------------------------------------------------------

    @staticmethod
    def get_reaction(db: Session, message_id: int, user_id: int, emoji: str) -> Optional[MessageReaction]:
        return (
            db.query(MessageReaction)
            .filter(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
                MessageReaction.emoji == emoji,
            )
            .first()
        )

    @staticmethod
    def reaction_exists(db: Session, message_id: int, emoji: str) -> bool:
        return (
            db.query(MessageReaction)
            .filter(MessageReaction.message_id == message_id, MessageReaction.emoji == emoji)
            .first()
            is not None
        )
