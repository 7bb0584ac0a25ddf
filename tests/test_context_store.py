"""Tests for the conversation context record and its store."""

from uuid import uuid4

import pytest

from kinderchat.db.store import CONVERSATIONS
from kinderchat.models.context import ChatStep, ConversationContext
from kinderchat.services.context_store import (
    ContextStore,
    ConversationNotFoundError,
    StepRegressionError,
)
from kinderchat.services.conversation import create_conversation


class TestConversationContext:
    """Tests for the context value type."""

    def test_defaults_to_greeting(self):
        context = ConversationContext()

        assert context.current_step == ChatStep.GREETING
        assert context.to_record() == {"currentStep": "greeting"}

    def test_round_trips_camel_case_record(self):
        """Stored camelCase keys map onto the Python field names."""
        context = ConversationContext.from_record(
            {"currentStep": "budget", "childAge": 6, "indoor": True, "outdoor": False}
        )

        assert context.child_age == 6
        assert context.current_step == ChatStep.BUDGET
        assert context.to_record() == {
            "currentStep": "budget",
            "childAge": 6,
            "indoor": True,
            "outdoor": False,
        }

    def test_negative_age_is_invalid(self):
        with pytest.raises(ValueError):
            ConversationContext(child_age=-1)

    def test_steps_are_ordered(self):
        positions = [step.position for step in ChatStep]

        assert positions == sorted(positions)
        assert ChatStep.RECOMMEND.is_terminal
        assert not ChatStep.BUDGET.is_terminal


class TestContextStore:
    """Tests for read-modify-write of stored context."""

    def test_merge_is_shallow_and_returns_union(self, store, user_id):
        conversation = create_conversation(store, user_id)
        contexts = ContextStore(store)

        contexts.merge(conversation.id, {"child_age": 5, "current_step": ChatStep.INTERESTS})
        merged = contexts.merge(
            conversation.id, {"interests": ["arts"], "current_step": ChatStep.LOCATION}
        )

        assert merged.child_age == 5
        assert merged.interests == ["arts"]
        assert contexts.get(conversation.id) == merged

    def test_merge_keeps_unknown_stored_keys(self, store, user_id):
        """Keys written by other clients survive a merge."""
        conversation = create_conversation(store, user_id)
        store.update(
            CONVERSATIONS,
            {"id": conversation.id},
            {"context": {"currentStep": "age", "timeframe": "weekend"}},
        )

        ContextStore(store).merge(conversation.id, {"child_age": 3})

        stored = store.get_one(CONVERSATIONS, {"id": conversation.id})["context"]
        assert stored == {"currentStep": "age", "timeframe": "weekend", "childAge": 3}

    def test_step_never_regresses(self, store, user_id):
        conversation = create_conversation(store, user_id)
        contexts = ContextStore(store)
        contexts.merge(conversation.id, {"current_step": ChatStep.BUDGET})

        with pytest.raises(StepRegressionError):
            contexts.merge(conversation.id, {"current_step": ChatStep.AGE})

        assert contexts.get(conversation.id).current_step == ChatStep.BUDGET

    def test_unknown_conversation(self, store):
        with pytest.raises(ConversationNotFoundError):
            ContextStore(store).get(uuid4())
