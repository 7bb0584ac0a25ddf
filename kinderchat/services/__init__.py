"""Services for the activity recommendation chat.

Services:
- chat_flow.py: Guided dialogue state machine and turn engine
- context_store.py: Read-modify-write access to conversation context
- conversation.py: Conversation lifecycle and transcript management
- recommender.py: Candidate filtering, ranking, explanations and recording
- catalog.py: Activity catalog sources
- geo.py: Great-circle distance helpers
"""

from kinderchat.services.chat_flow import ChatEngine, TurnResult
from kinderchat.services.recommender import (
    RecommendationRecorder,
    explain,
    rank,
    recommend_for_conversation,
)

__all__ = [
    "ChatEngine",
    "TurnResult",
    "RecommendationRecorder",
    "explain",
    "rank",
    "recommend_for_conversation",
]
