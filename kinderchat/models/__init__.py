"""SQLModel entities and value types for the chat engine."""

from kinderchat.models.activity import Activity
from kinderchat.models.context import (
    Budget,
    ChatStep,
    ConversationContext,
    QuickReply,
)
from kinderchat.models.conversation import (
    Conversation,
    ConversationResponse,
    ConversationStatus,
)
from kinderchat.models.message import (
    ChatMessage,
    MessageResponse,
    MessageRole,
    MessageType,
)
from kinderchat.models.recommendation import Recommendation, RecommendationResponse

__all__ = [
    "Activity",
    "Budget",
    "ChatStep",
    "ConversationContext",
    "QuickReply",
    "Conversation",
    "ConversationResponse",
    "ConversationStatus",
    "ChatMessage",
    "MessageResponse",
    "MessageRole",
    "MessageType",
    "Recommendation",
    "RecommendationResponse",
]
