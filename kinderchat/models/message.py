"""Chat message entity model."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from kinderchat.models.conversation import JSONType, utc_now


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, Enum):
    TEXT = "text"
    QUICK_REPLY = "quick_reply"
    RECOMMENDATION = "recommendation"
    ACTIVITY_CARD = "activity_card"


class ChatMessage(SQLModel, table=True):
    """Chat message database model. Rows are append-only.

    ``seq`` numbers a conversation's messages from 0 in insertion order and is
    the authoritative replay order.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (UniqueConstraint("conversation_id", "seq"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    conversation_id: UUID = Field(foreign_key="chat_conversations.id", index=True)
    seq: int = Field(default=0, ge=0)
    role: MessageRole = Field(default=MessageRole.ASSISTANT)
    content: str = Field(max_length=10000)
    message_type: MessageType = Field(default=MessageType.TEXT)
    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONType))
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class MessageResponse(SQLModel):
    """Schema for message response."""

    id: UUID
    conversation_id: UUID
    role: MessageRole
    content: str
    message_type: MessageType
    payload: dict[str, Any] | None = None
    seq: int
    created_at: datetime

    model_config = {"from_attributes": True}
