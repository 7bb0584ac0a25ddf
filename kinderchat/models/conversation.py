"""Conversation entity model for the activity recommendation chat."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Column, Field, SQLModel

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ConversationStatus(str, Enum):
    """Lifecycle status values. ``completed`` and ``archived`` are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Conversation(SQLModel, table=True):
    """Conversation database model."""

    __tablename__ = "chat_conversations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    profile_id: UUID = Field(index=True)
    title: str = Field(default="New Conversation", max_length=200)
    status: ConversationStatus = Field(default=ConversationStatus.ACTIVE, index=True)
    # Stored under "metadata", which SQLAlchemy reserves as an attribute name
    context: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSONType, nullable=False)
    )
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class ConversationResponse(SQLModel):
    """Schema for conversation response."""

    id: UUID
    title: str
    status: ConversationStatus
    context: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
