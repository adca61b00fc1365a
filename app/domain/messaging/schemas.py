"""Messaging domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel


class SendMessageRequest(BaseModel):
    """Content is checked by the service so an empty message gets a readable error"""

    conversationId: int
    content: Optional[str] = None


class AppointmentConversationRequest(BaseModel):
    appointmentId: int


class BroadcastRequest(BaseModel):
    content: Optional[str] = None
    targetAudience: Optional[str] = None
    title: Optional[str] = None


class ReactionRequest(BaseModel):
    emoji: Optional[str] = None
