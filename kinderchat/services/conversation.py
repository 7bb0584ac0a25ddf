"""Conversation service for chat lifecycle and transcript management."""

import logging
from typing import Any
from uuid import UUID

from kinderchat.db.store import CONVERSATIONS, MESSAGES, RecordStore
from kinderchat.models.context import ConversationContext
from kinderchat.models.conversation import Conversation, ConversationStatus
from kinderchat.models.message import ChatMessage, MessageRole, MessageType
from kinderchat.services.context_store import ConversationNotFoundError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {ConversationStatus.COMPLETED, ConversationStatus.ARCHIVED}


class ConversationStateError(Exception):
    """Raised when a status change or turn is not allowed for a conversation."""
    pass


def create_conversation(store: RecordStore, user_id: UUID) -> Conversation:
    """Open a new conversation at the greeting step."""
    record = store.insert(
        CONVERSATIONS,
        {
            "profile_id": user_id,
            "status": ConversationStatus.ACTIVE,
            "context": ConversationContext().to_record(),
        },
    )
    logger.info(
        "Conversation created",
        extra={"conversation_id": str(record["id"]), "user_id": str(user_id)},
    )
    return Conversation.model_validate(record)


def get_conversation(
    store: RecordStore, conversation_id: UUID, user_id: UUID | None = None
) -> Conversation:
    """Get a conversation, optionally checking it is owned by ``user_id``.

    Raises:
        ConversationNotFoundError: If missing or owned by another user
    """
    filters: dict[str, Any] = {"id": conversation_id}
    if user_id is not None:
        filters["profile_id"] = user_id
    record = store.get_one(CONVERSATIONS, filters)
    if record is None:
        raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
    return Conversation.model_validate(record)


def get_user_conversations(
    store: RecordStore, user_id: UUID, limit: int = 10, offset: int = 0
) -> list[Conversation]:
    """Get conversations for the user, ordered by most recent."""
    records = store.list(
        CONVERSATIONS,
        {"profile_id": user_id},
        order_by="updated_at",
        descending=True,
        limit=limit,
        offset=offset,
    )
    return [Conversation.model_validate(r) for r in records]


def add_message(
    store: RecordStore,
    conversation_id: UUID,
    role: MessageRole,
    content: str,
    message_type: MessageType = MessageType.TEXT,
    payload: dict[str, Any] | None = None,
) -> ChatMessage:
    """Append a message to a conversation's transcript.

    Turns on a conversation are sequential, so the next ``seq`` is one past
    the highest stored.
    """
    last = store.list(
        MESSAGES,
        {"conversation_id": conversation_id},
        order_by="seq",
        descending=True,
        limit=1,
    )
    record = store.insert(
        MESSAGES,
        {
            "conversation_id": conversation_id,
            "seq": last[0]["seq"] + 1 if last else 0,
            "role": role,
            "content": content,
            "message_type": message_type,
            "payload": payload,
        },
    )
    logger.info(
        "Message saved",
        extra={
            "conversation_id": str(conversation_id),
            "role": role.value,
            "message_type": message_type.value,
            "seq": record["seq"],
        },
    )
    return ChatMessage.model_validate(record)


def get_messages(
    store: RecordStore, conversation_id: UUID, limit: int | None = None, offset: int = 0
) -> list[ChatMessage]:
    """Get a conversation's messages in the order they were added."""
    records = store.list(
        MESSAGES,
        {"conversation_id": conversation_id},
        order_by="seq",
        limit=limit,
        offset=offset,
    )
    return [ChatMessage.model_validate(r) for r in records]


def _set_status(
    store: RecordStore, conversation_id: UUID, status: ConversationStatus
) -> Conversation:
    conversation = get_conversation(store, conversation_id)
    if conversation.status == status:
        return conversation
    store.update(CONVERSATIONS, {"id": conversation_id}, {"status": status})
    logger.info(
        "Conversation status changed",
        extra={
            "conversation_id": str(conversation_id),
            "from_status": conversation.status.value,
            "to_status": status.value,
        },
    )
    return get_conversation(store, conversation_id)


def complete_conversation(store: RecordStore, conversation_id: UUID) -> Conversation:
    """Mark a conversation completed once its recommendations are recorded."""
    return _set_status(store, conversation_id, ConversationStatus.COMPLETED)


def archive_conversation(store: RecordStore, conversation_id: UUID) -> Conversation:
    """Archive a conversation. Archived conversations accept no more turns."""
    return _set_status(store, conversation_id, ConversationStatus.ARCHIVED)


def ensure_accepts_turns(conversation: Conversation) -> None:
    """Raise if the conversation has reached a terminal status."""
    if conversation.status in TERMINAL_STATUSES:
        raise ConversationStateError(
            f"Conversation {conversation.id} is {conversation.status.value}; "
            "start a new conversation for a new search"
        )
