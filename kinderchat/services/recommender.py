"""Activity filtering, ranking and explanation for finished conversations.

Once a conversation reaches the recommend step the collected context is
turned into a short list of activities:

1. Filter the full catalog by age, environment and budget fit
2. Order by distance to the user when a location is known, otherwise by
   rating (stable, so ties keep catalog order)
3. Truncate to the result limit
4. Explain each pick and record it with a decreasing score

Ranking and explanation are pure functions. Only the recorder and the
conversation-level flow write to the store.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from kinderchat.config import get_settings
from kinderchat.db.store import RECOMMENDATIONS, RecordStore
from kinderchat.models.activity import Activity
from kinderchat.models.context import Budget, ChatStep, ConversationContext
from kinderchat.models.message import ChatMessage, MessageRole, MessageType
from kinderchat.models.recommendation import Recommendation
from kinderchat.services.catalog import CandidateSource
from kinderchat.services.context_store import ContextStore
from kinderchat.services.conversation import (
    ConversationStateError,
    add_message,
    complete_conversation,
    ensure_accepts_turns,
    get_conversation,
)
from kinderchat.services.geo import format_distance, haversine_km

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
MIN_SCORE = 0.1
HIGHLY_RATED_THRESHOLD = 4.5
LOW_BUDGET_MAX_PRICE = 20
MEDIUM_BUDGET_MAX_PRICE = 50
REASON_SEPARATOR = " • "
FALLBACK_REASON = "Recommended for you"

# (latitude, longitude)
UserLocation = tuple[float, float]


# -----------------------------------------------------------------------------
# Filtering and ranking
# -----------------------------------------------------------------------------


def _fits_age(activity: Activity, age: int) -> bool:
    return activity.age_min <= age <= activity.age_max


def _fits_budget(activity: Activity, budget: str | None) -> bool:
    if budget == Budget.FREE:
        return activity.is_free
    if budget == Budget.LOW:
        return activity.is_free or activity.price_max <= LOW_BUDGET_MAX_PRICE
    if budget == Budget.MEDIUM:
        return activity.price_max <= MEDIUM_BUDGET_MAX_PRICE
    # "high", missing and unrecognized budgets do not filter
    return True


def filter_candidates(
    context: ConversationContext, candidates: list[Activity]
) -> list[Activity]:
    """Keep the candidates that fit the context, preserving their order."""
    activities = list(candidates)

    if context.child_age is not None:
        activities = [a for a in activities if _fits_age(a, context.child_age)]

    # Both or neither set means no environment preference
    if context.indoor and not context.outdoor:
        activities = [a for a in activities if a.is_indoor]
    elif context.outdoor and not context.indoor:
        activities = [a for a in activities if a.is_outdoor]

    if context.budget is not None:
        activities = [a for a in activities if _fits_budget(a, context.budget)]

    return activities


def distance_to(activity: Activity, location: UserLocation) -> float:
    """Distance in km from ``location`` to the activity."""
    lat, lng = location
    return haversine_km(lat, lng, activity.location_lat, activity.location_lng)


def rank(
    context: ConversationContext,
    candidates: list[Activity],
    user_location: UserLocation | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[Activity]:
    """Filter the full candidate list, order it, then truncate to ``limit``.

    An empty result means nothing matched and is not an error.
    """
    activities = filter_candidates(context, candidates)

    if user_location is not None:
        activities = sorted(activities, key=lambda a: distance_to(a, user_location))
    else:
        activities = sorted(activities, key=lambda a: -a.average_rating)

    return activities[:limit]


# -----------------------------------------------------------------------------
# Explanations
# -----------------------------------------------------------------------------


def explain(activity: Activity, context: ConversationContext) -> str:
    """Short human-readable justification for recommending ``activity``."""
    reasons: list[str] = []

    if context.child_age is not None:
        reasons.append(f"Perfect for age {context.child_age}")

    if context.budget == Budget.FREE and activity.is_free:
        reasons.append("Free entry")

    if activity.average_rating >= HIGHLY_RATED_THRESHOLD:
        reasons.append("Highly rated")

    if context.indoor and activity.is_indoor:
        reasons.append("Indoor activity")
    elif context.outdoor and activity.is_outdoor:
        reasons.append("Outdoor activity")

    return REASON_SEPARATOR.join(reasons) or FALLBACK_REASON


# -----------------------------------------------------------------------------
# Recording
# -----------------------------------------------------------------------------


def score_for_position(index: int) -> float:
    """Score of the pick at ``index``: 1.0, 0.9, 0.8, ..."""
    return max(round(1 - index * 0.1, 2), MIN_SCORE)


class RecommendationRecorder:
    """Persists a ranked set of picks as the conversation's audit trail."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def record(
        self,
        conversation_id: UUID,
        activities: list[Activity],
        context: ConversationContext,
    ) -> list[Recommendation]:
        """Insert one recommendation row per activity, in ranked order."""
        recommendations = []
        for index, activity in enumerate(activities):
            record = self.store.insert(
                RECOMMENDATIONS,
                {
                    "conversation_id": conversation_id,
                    "activity_id": activity.id,
                    "score": score_for_position(index),
                    "reason": explain(activity, context),
                },
            )
            recommendations.append(Recommendation.model_validate(record))

        logger.info(
            "Recommendations recorded",
            extra={
                "conversation_id": str(conversation_id),
                "count": len(recommendations),
            },
        )
        return recommendations

    def get_recorded(self, conversation_id: UUID) -> list[Recommendation]:
        """Recorded picks for a conversation, best first."""
        records = self.store.list(
            RECOMMENDATIONS,
            {"conversation_id": conversation_id},
            order_by="score",
            descending=True,
        )
        return [Recommendation.model_validate(r) for r in records]


# -----------------------------------------------------------------------------
# Conversation-level flow
# -----------------------------------------------------------------------------


@dataclass
class RecommendationResult:
    """Picks for a conversation plus the messages announcing them."""

    activities: list[Activity]
    recommendations: list[Recommendation]
    messages: list[ChatMessage]

    @property
    def is_empty(self) -> bool:
        return not self.activities


def _activity_card(
    activity: Activity,
    recommendation: Recommendation,
    user_location: UserLocation | None,
) -> dict[str, Any]:
    card: dict[str, Any] = {
        "activity_id": str(activity.id),
        "name": activity.name,
        "score": recommendation.score,
        "reason": recommendation.reason,
    }
    if user_location is not None:
        distance = distance_to(activity, user_location)
        card["distance_km"] = round(distance, 2)
        card["distance_label"] = format_distance(distance)
    return card


def recommend_for_conversation(
    store: RecordStore,
    conversation_id: UUID,
    source: CandidateSource,
    user_location: UserLocation | None = None,
    limit: int | None = None,
) -> RecommendationResult:
    """Rank, explain and record picks for a conversation at its final step.

    Appends a recommendation summary plus one activity card per pick, then
    marks the conversation completed. Picks recorded by an earlier attempt
    that failed before completing are reused rather than recorded again.

    Raises:
        ConversationNotFoundError: If the conversation does not exist
        ConversationStateError: If the dialogue has not reached the
            recommend step, or the conversation is already closed
    """
    ensure_accepts_turns(get_conversation(store, conversation_id))
    context = ContextStore(store).get(conversation_id)
    if context.current_step != ChatStep.RECOMMEND:
        raise ConversationStateError(
            f"Conversation {conversation_id} is at step "
            f"'{context.current_step.value}', not '{ChatStep.RECOMMEND.value}'"
        )

    if limit is None:
        limit = get_settings().RECOMMENDATION_LIMIT

    recorder = RecommendationRecorder(store)
    recommendations = recorder.get_recorded(conversation_id)
    if recommendations:
        catalog = {activity.id: activity for activity in source.get_all()}
        pairs = [
            (catalog[r.activity_id], r)
            for r in recommendations
            if r.activity_id in catalog
        ]
        activities = [activity for activity, _ in pairs]
        recommendations = [recommendation for _, recommendation in pairs]
        logger.info(
            "Reusing recorded recommendations",
            extra={
                "conversation_id": str(conversation_id),
                "count": len(recommendations),
            },
        )
    else:
        activities = rank(context, source.get_all(), user_location, limit)
        recommendations = recorder.record(conversation_id, activities, context)

    messages: list[ChatMessage] = []
    if activities:
        messages.append(
            add_message(
                store,
                conversation_id,
                MessageRole.ASSISTANT,
                f"🎉 Found {len(activities)} perfect activities for you!",
                MessageType.RECOMMENDATION,
                {"activity_ids": [str(a.id) for a in activities]},
            )
        )
        for activity, recommendation in zip(activities, recommendations):
            messages.append(
                add_message(
                    store,
                    conversation_id,
                    MessageRole.ASSISTANT,
                    activity.name,
                    MessageType.ACTIVITY_CARD,
                    _activity_card(activity, recommendation, user_location),
                )
            )
    else:
        logger.info(
            "No activities matched",
            extra={"conversation_id": str(conversation_id)},
        )
        messages.append(
            add_message(
                store,
                conversation_id,
                MessageRole.ASSISTANT,
                "😕 I couldn't find activities that match. Try adjusting your "
                "preferences and start a new search.",
                MessageType.RECOMMENDATION,
                {"activity_ids": []},
            )
        )

    complete_conversation(store, conversation_id)
    return RecommendationResult(activities, recommendations, messages)
