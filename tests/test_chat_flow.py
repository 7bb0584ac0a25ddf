"""Tests for the guided chat state machine and turn engine."""

from typing import Any

import pytest

from kinderchat.db.store import RecordStore, SQLModelStore
from kinderchat.models.context import ChatStep, ConversationContext
from kinderchat.models.message import MessageRole, MessageType
from kinderchat.services.chat_flow import (
    AGE_REPROMPT_TEXT,
    STEP_HANDLERS,
    ChatEngine,
    InvalidTurnInput,
    parse_age,
    transition,
)
from kinderchat.services.context_store import ContextStore
from kinderchat.services.conversation import (
    ConversationStateError,
    archive_conversation,
    create_conversation,
    get_messages,
)


class FailingUpdateStore(RecordStore):
    """Store whose updates fail, as if the database went away mid-turn."""

    def __init__(self, inner: SQLModelStore) -> None:
        self.inner = inner

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        return self.inner.insert(table, record)

    def get_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        return self.inner.get_one(table, filters)

    def update(self, table: str, filters: dict[str, Any], patch: dict[str, Any]) -> None:
        raise RuntimeError("database unavailable")

    def list(self, table, filters, order_by=None, descending=False, limit=None, offset=0):
        return self.inner.list(table, filters, order_by, descending, limit, offset)


# ============================================================================
# Step Handler Tests
# ============================================================================

class TestStepHandlers:
    """Tests for the pure per-step transitions."""

    def test_every_step_has_a_handler(self):
        """The dispatcher covers every step."""
        assert set(STEP_HANDLERS) == set(ChatStep)

    def test_greeting_ignores_input(self):
        """Greeting welcomes the user and offers age brackets whatever was typed."""
        result = transition(ChatStep.GREETING, "hello there")

        assert result.next_step == ChatStep.AGE
        assert result.context_delta == {}
        assert "How old is your child?" in result.messages[0]
        assert [r.value for r in result.quick_replies] == ["1", "4", "7", "10", "14"]

    def test_age_stores_number_and_offers_interests(self):
        """A numeric age token is stored and six interest options are offered."""
        result = transition(ChatStep.AGE, "4")

        assert result.next_step == ChatStep.INTERESTS
        assert result.context_delta == {"child_age": 4}
        assert len(result.quick_replies) == 6
        assert "any" in [r.value for r in result.quick_replies]
        assert "child" in result.messages[0]

    def test_age_under_three_is_a_baby(self):
        """The interests prompt says baby for children under three."""
        result = transition(ChatStep.AGE, "1")

        assert "your baby interested" in result.messages[0]

    @pytest.mark.parametrize("raw", ["abc", "", "4.5", "-1"])
    def test_age_rejects_malformed_tokens(self, raw):
        """Non-numeric and negative ages are rejected."""
        with pytest.raises(InvalidTurnInput) as exc_info:
            transition(ChatStep.AGE, raw)

        assert exc_info.value.step == ChatStep.AGE

    def test_parse_age_trims_whitespace(self):
        """Surrounding whitespace is ignored."""
        assert parse_age(" 7 ") == 7

    def test_interests_split_and_trim(self):
        """Interests are split on commas, trimmed, and empty entries dropped."""
        result = transition(ChatStep.INTERESTS, " arts, nature ,, science")

        assert result.next_step == ChatStep.LOCATION
        assert result.context_delta == {"interests": ["arts", "nature", "science"]}
        assert [r.value for r in result.quick_replies] == ["indoor", "outdoor", "both"]

    @pytest.mark.parametrize(
        "raw, indoor, outdoor",
        [
            ("indoor", True, False),
            ("outdoor", False, True),
            ("both", True, True),
            ("anything-unrecognized", True, True),
        ],
    )
    def test_location_maps_preference(self, raw, indoor, outdoor):
        """Indoor and outdoor are exclusive; anything else means no preference."""
        result = transition(ChatStep.LOCATION, raw)

        assert result.next_step == ChatStep.BUDGET
        assert result.context_delta == {"indoor": indoor, "outdoor": outdoor}
        assert [r.value for r in result.quick_replies] == ["free", "low", "medium", "high"]

    def test_budget_stored_verbatim(self):
        """The budget token is stored as given and the search begins."""
        result = transition(ChatStep.BUDGET, "medium")

        assert result.next_step == ChatStep.RECOMMEND
        assert result.context_delta == {"budget": "medium"}
        assert result.messages == ["🔍 Searching for perfect activities..."]
        assert result.quick_replies is None

    def test_recommend_is_silent(self):
        """The terminal step says nothing and changes nothing."""
        result = transition(ChatStep.RECOMMEND, "more please")

        assert result.next_step == ChatStep.RECOMMEND
        assert result.context_delta == {}
        assert result.messages == []


# ============================================================================
# Chat Engine Tests
# ============================================================================

class TestChatEngine:
    """Tests for applying turns to stored conversations."""

    def test_full_dialogue_follows_fixed_order(self, store, user_id):
        """Each turn moves the stored step exactly one place forward."""
        conversation = create_conversation(store, user_id)
        engine = ChatEngine(store)
        contexts = ContextStore(store)

        turns = [
            ("", ChatStep.AGE),
            ("4", ChatStep.INTERESTS),
            ("arts, nature", ChatStep.LOCATION),
            ("indoor", ChatStep.BUDGET),
            ("free", ChatStep.RECOMMEND),
            ("again", ChatStep.RECOMMEND),
        ]
        for raw, expected in turns:
            turn = engine.advance(conversation.id, raw, contexts.get(conversation.id))
            assert turn.context.current_step == expected
            assert contexts.get(conversation.id).current_step == expected

        final = contexts.get(conversation.id)
        assert final == ConversationContext(
            child_age=4,
            interests=["arts", "nature"],
            indoor=True,
            outdoor=False,
            budget="free",
            current_step=ChatStep.RECOMMEND,
        )
        assert turn.ready_for_recommendations
        assert len(get_messages(store, conversation.id)) == 5

    def test_age_turn_updates_context(self, store, user_id):
        """Answering the age question stores the age and moves to interests."""
        conversation = create_conversation(store, user_id)
        engine = ChatEngine(store)
        engine.start(conversation.id)

        turn = engine.advance(conversation.id, "4", ConversationContext(current_step=ChatStep.AGE))

        assert engine.contexts.get(conversation.id).to_record() == {
            "currentStep": "interests",
            "childAge": 4,
        }
        assert len(turn.quick_replies) == 6
        assert "any" in [r.value for r in turn.quick_replies]

    def test_unrecognized_location_means_no_preference(self, store, user_id):
        """An unknown environment answer is stored as both indoor and outdoor."""
        conversation = create_conversation(store, user_id)
        ContextStore(store).merge(conversation.id, {"current_step": ChatStep.LOCATION})
        engine = ChatEngine(store)

        turn = engine.advance(
            conversation.id,
            "anything-unrecognized",
            ConversationContext(current_step=ChatStep.LOCATION),
        )

        assert turn.context.indoor is True
        assert turn.context.outdoor is True

    def test_recommend_is_idempotent(self, store, user_id):
        """Repeated turns at the terminal step write nothing."""
        conversation = create_conversation(store, user_id)
        ContextStore(store).merge(conversation.id, {"current_step": ChatStep.RECOMMEND})
        engine = ChatEngine(store)
        context = engine.contexts.get(conversation.id)

        for _ in range(3):
            turn = engine.advance(conversation.id, "hello?", context)
            assert turn.messages == []
            assert turn.quick_replies is None

        assert engine.contexts.get(conversation.id) == context
        assert get_messages(store, conversation.id) == []

    def test_invalid_age_reprompts_without_advancing(self, store, user_id):
        """A malformed age keeps the step at age and asks again."""
        conversation = create_conversation(store, user_id)
        engine = ChatEngine(store)
        engine.start(conversation.id)

        turn = engine.advance(conversation.id, "four-ish", engine.contexts.get(conversation.id))

        assert turn.context.current_step == ChatStep.AGE
        assert turn.context.child_age is None
        assert engine.contexts.get(conversation.id).current_step == ChatStep.AGE
        assert [m.content for m in turn.messages] == [AGE_REPROMPT_TEXT]
        assert [r.value for r in turn.quick_replies] == ["1", "4", "7", "10", "14"]

    def test_messages_are_persisted_as_assistant_text(self, store, user_id):
        """Outbound messages are appended to the transcript."""
        conversation = create_conversation(store, user_id)
        turn = ChatEngine(store).start(conversation.id)

        stored = get_messages(store, conversation.id)
        assert [m.id for m in stored] == [m.id for m in turn.messages]
        assert stored[0].role == MessageRole.ASSISTANT
        assert stored[0].message_type == MessageType.TEXT

    def test_failed_context_write_does_not_advance(self, store, user_id):
        """If the context write fails the turn fails and nothing is sent."""
        conversation = create_conversation(store, user_id)
        engine = ChatEngine(FailingUpdateStore(store))

        with pytest.raises(RuntimeError):
            engine.advance(conversation.id, "", ConversationContext())

        assert ContextStore(store).get(conversation.id).current_step == ChatStep.GREETING
        assert get_messages(store, conversation.id) == []

    def test_conversations_are_independent(self, store, user_id):
        """Turns on one conversation leave another untouched."""
        first = create_conversation(store, user_id)
        second = create_conversation(store, user_id)
        engine = ChatEngine(store)

        engine.start(first.id)
        engine.advance(first.id, "7", engine.contexts.get(first.id))

        assert engine.contexts.get(second.id) == ConversationContext()
        assert get_messages(store, second.id) == []


class TestHandleUserMessage:
    """Tests for the caller-facing turn entry point."""

    def test_user_message_stored_before_reply(self, store, user_id):
        """The user's quick reply is stored, then the assistant answers."""
        conversation = create_conversation(store, user_id)
        engine = ChatEngine(store)
        engine.start(conversation.id)

        user_message, turn = engine.handle_user_message(conversation.id, "10", is_quick_reply=True)

        assert user_message.role == MessageRole.USER
        assert user_message.message_type == MessageType.QUICK_REPLY
        assert turn.context.child_age == 10
        transcript = get_messages(store, conversation.id)
        assert [m.role for m in transcript] == [
            MessageRole.ASSISTANT,
            MessageRole.USER,
            MessageRole.ASSISTANT,
        ]

    def test_archived_conversation_rejects_turns(self, store, user_id):
        """Closed conversations accept no more input."""
        conversation = create_conversation(store, user_id)
        archive_conversation(store, conversation.id)

        with pytest.raises(ConversationStateError):
            ChatEngine(store).handle_user_message(conversation.id, "4")

        assert get_messages(store, conversation.id) == []
