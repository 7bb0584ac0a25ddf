"""Recommendation record model: the audit trail of a terminal ranking."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from kinderchat.models.conversation import utc_now


class Recommendation(SQLModel, table=True):
    """Recommendation database model. Written once, never updated."""

    __tablename__ = "chat_recommendations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    conversation_id: UUID = Field(foreign_key="chat_conversations.id", index=True)
    activity_id: UUID = Field(index=True)
    score: float
    reason: str = Field(max_length=500)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class RecommendationResponse(SQLModel):
    """Schema for recommendation response."""

    id: UUID
    activity_id: UUID
    score: float
    reason: str
    created_at: datetime

    model_config = {"from_attributes": True}
