"""Context store: read-modify-write access to a conversation's context."""

import logging
from typing import Any
from uuid import UUID

from kinderchat.db.store import CONVERSATIONS, RecordStore
from kinderchat.models.context import ConversationContext, delta_to_record

logger = logging.getLogger(__name__)


class ConversationNotFoundError(Exception):
    """Raised when a conversation id does not resolve to a record."""
    pass


class StepRegressionError(Exception):
    """Raised when a context update would move the step cursor backwards."""
    pass


class ContextStore:
    """Reads and shallow-merges the context stored on a conversation.

    Turns on one conversation are strictly sequential, so the
    read-modify-write below is last-write-wins with no locking.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _load_record(self, conversation_id: UUID) -> dict[str, Any]:
        conversation = self.store.get_one(CONVERSATIONS, {"id": conversation_id})
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return dict(conversation.get("context") or {})

    def get(self, conversation_id: UUID) -> ConversationContext:
        """Return the current context of a conversation."""
        return ConversationContext.from_record(self._load_record(conversation_id))

    def merge(self, conversation_id: UUID, delta: dict[str, Any]) -> ConversationContext:
        """Shallow-merge ``delta`` (keyed by field name) into the stored context.

        Keys already stored but unknown to ConversationContext are kept.

        Returns:
            ConversationContext: The merged context as written

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            StepRegressionError: If ``current_step`` would move backwards
        """
        record = self._load_record(conversation_id)
        current = ConversationContext.from_record(record)

        record.update(delta_to_record(delta))
        merged = ConversationContext.from_record(record)

        if merged.current_step.position < current.current_step.position:
            raise StepRegressionError(
                f"Cannot move conversation {conversation_id} from "
                f"'{current.current_step.value}' back to '{merged.current_step.value}'"
            )

        self.store.update(CONVERSATIONS, {"id": conversation_id}, {"context": record})
        logger.info(
            "Context merged",
            extra={
                "conversation_id": str(conversation_id),
                "keys": sorted(delta),
                "step": merged.current_step.value,
            },
        )
        return merged
