"""Chat API endpoints for the activity recommendation assistant."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from kinderchat.api.deps import CurrentUserId, DBSession, Store
from kinderchat.models.context import ChatStep, QuickReply
from kinderchat.models.conversation import ConversationResponse
from kinderchat.models.message import MessageResponse
from kinderchat.models.recommendation import RecommendationResponse
from kinderchat.services.catalog import SQLActivitySource
from kinderchat.services.chat_flow import ChatEngine, TurnResult
from kinderchat.services.context_store import ConversationNotFoundError
from kinderchat.services.conversation import (
    ConversationStateError,
    archive_conversation,
    create_conversation,
    get_conversation,
    get_messages,
    get_user_conversations,
)
from kinderchat.services.recommender import (
    RecommendationRecorder,
    recommend_for_conversation,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Chat"])


class Location(BaseModel):
    """User location used to rank activities by distance."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class ChatRequest(BaseModel):
    """Request body for sending a chat message."""

    message: str = Field(min_length=1, max_length=2000)
    is_quick_reply: bool = False
    location: Location | None = None


class ChatTurnResponse(BaseModel):
    """Response body for a chat turn."""

    conversation_id: UUID
    messages: list[MessageResponse]
    quick_replies: list[QuickReply] = Field(default_factory=list)
    context: dict
    recommendations: list[RecommendationResponse] = Field(default_factory=list)


class ConversationListResponse(BaseModel):
    """Response body for conversations list."""

    conversations: list[ConversationResponse]
    total: int


class MessageListResponse(BaseModel):
    """Response body for messages list."""

    messages: list[MessageResponse]
    total: int


class RecommendationListResponse(BaseModel):
    """Response body for recorded recommendations."""

    recommendations: list[RecommendationResponse]
    total: int


def _verify_user(user_id: UUID, current_user_id: UUID) -> None:
    if current_user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User ID does not match authenticated user",
        )


def _verify_conversation(store: Store, user_id: UUID, conversation_id: UUID) -> None:
    try:
        get_conversation(store, conversation_id, user_id=user_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )


def _turn_response(turn: TurnResult, messages: list) -> ChatTurnResponse:
    return ChatTurnResponse(
        conversation_id=turn.conversation_id,
        messages=[MessageResponse.model_validate(m) for m in messages],
        quick_replies=turn.quick_replies or [],
        context=turn.context.to_record(),
    )


@router.post(
    "/{user_id}/conversations",
    response_model=ChatTurnResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_conversation(
    user_id: UUID,
    store: Store,
    current_user_id: CurrentUserId,
) -> ChatTurnResponse:
    """Open a new conversation and return the assistant's greeting."""
    _verify_user(user_id, current_user_id)

    conversation = create_conversation(store, user_id)
    turn = ChatEngine(store).start(conversation.id)
    return _turn_response(turn, turn.messages)


@router.post(
    "/{user_id}/conversations/{conversation_id}/messages",
    response_model=ChatTurnResponse,
)
async def send_chat_message(
    user_id: UUID,
    conversation_id: UUID,
    request: ChatRequest,
    store: Store,
    session: DBSession,
    current_user_id: CurrentUserId,
) -> ChatTurnResponse:
    """
    Send the user's answer for the current step and receive the next prompt.

    When the answer completes the dialogue, the response also carries the
    recommended activities, each with a short reason.
    """
    _verify_user(user_id, current_user_id)
    _verify_conversation(store, user_id, conversation_id)

    engine = ChatEngine(store)
    try:
        user_message, turn = engine.handle_user_message(
            conversation_id, request.message, request.is_quick_reply
        )
    except ConversationStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    messages = [user_message, *turn.messages]
    response = _turn_response(turn, messages)

    if turn.context.current_step == ChatStep.RECOMMEND:
        location = (request.location.lat, request.location.lng) if request.location else None
        result = recommend_for_conversation(
            store,
            conversation_id,
            SQLActivitySource(session),
            user_location=location,
        )
        response.messages.extend(
            MessageResponse.model_validate(m) for m in result.messages
        )
        response.recommendations = [
            RecommendationResponse.model_validate(r) for r in result.recommendations
        ]

    return response


@router.get("/{user_id}/conversations", response_model=ConversationListResponse)
async def list_conversations(
    user_id: UUID,
    store: Store,
    current_user_id: CurrentUserId,
    limit: int = Query(default=10, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
) -> ConversationListResponse:
    """Get the user's conversations, ordered by most recent activity."""
    _verify_user(user_id, current_user_id)

    conversations = get_user_conversations(store, user_id, limit=limit, offset=offset)
    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(c) for c in conversations],
        total=len(conversations),
    )


@router.get(
    "/{user_id}/conversations/{conversation_id}/messages",
    response_model=MessageListResponse,
)
async def list_messages(
    user_id: UUID,
    conversation_id: UUID,
    store: Store,
    current_user_id: CurrentUserId,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> MessageListResponse:
    """Get messages in a conversation, ordered chronologically."""
    _verify_user(user_id, current_user_id)
    _verify_conversation(store, user_id, conversation_id)

    messages = get_messages(store, conversation_id, limit=limit, offset=offset)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages),
    )


@router.get(
    "/{user_id}/conversations/{conversation_id}/recommendations",
    response_model=RecommendationListResponse,
)
async def list_recommendations(
    user_id: UUID,
    conversation_id: UUID,
    store: Store,
    current_user_id: CurrentUserId,
) -> RecommendationListResponse:
    """Get the activities recorded as recommendations for a conversation."""
    _verify_user(user_id, current_user_id)
    _verify_conversation(store, user_id, conversation_id)

    recommendations = RecommendationRecorder(store).get_recorded(conversation_id)
    return RecommendationListResponse(
        recommendations=[
            RecommendationResponse.model_validate(r) for r in recommendations
        ],
        total=len(recommendations),
    )


@router.post(
    "/{user_id}/conversations/{conversation_id}/archive",
    response_model=ConversationResponse,
)
async def archive(
    user_id: UUID,
    conversation_id: UUID,
    store: Store,
    current_user_id: CurrentUserId,
) -> ConversationResponse:
    """Archive a conversation so it accepts no further turns."""
    _verify_user(user_id, current_user_id)
    _verify_conversation(store, user_id, conversation_id)

    conversation = archive_conversation(store, conversation_id)
    logger.info(
        "Conversation archived",
        extra={"conversation_id": str(conversation_id), "user_id": str(user_id)},
    )
    return ConversationResponse.model_validate(conversation)
