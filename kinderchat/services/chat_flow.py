"""Guided chat flow for collecting a child's activity profile.

The dialogue walks a fixed sequence of steps:

    greeting -> age -> interests -> location -> budget -> recommend

Each step has one handler, a pure function of the user's input that
returns a Transition: the context fields to set, the next step, the
assistant messages to send and the quick replies to offer. Handlers never
read the activity catalog or the store.

ChatEngine applies a Transition to a conversation. It merges the context
first and appends the assistant messages only after that write succeeds,
so the transcript never runs ahead of the stored step cursor.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from kinderchat.db.store import RecordStore
from kinderchat.models.context import Budget, ChatStep, ConversationContext, QuickReply
from kinderchat.models.message import ChatMessage, MessageRole, MessageType
from kinderchat.services.context_store import ContextStore
from kinderchat.services.conversation import (
    add_message,
    ensure_accepts_turns,
    get_conversation,
)

logger = logging.getLogger(__name__)


class InvalidTurnInput(Exception):
    """Raised by a step handler when the input cannot be used for that step."""

    def __init__(self, step: ChatStep, raw_input: str, reason: str) -> None:
        super().__init__(f"Invalid input for step '{step.value}': {reason}")
        self.step = step
        self.raw_input = raw_input
        self.reason = reason


@dataclass
class Transition:
    """Outcome of one step handler."""

    context_delta: dict[str, Any]
    next_step: ChatStep
    messages: list[str] = field(default_factory=list)
    quick_replies: list[QuickReply] | None = None


@dataclass
class TurnResult:
    """What one turn produced for the caller to render."""

    conversation_id: UUID
    messages: list[ChatMessage]
    quick_replies: list[QuickReply] | None
    context: ConversationContext

    @property
    def ready_for_recommendations(self) -> bool:
        return self.context.current_step.is_terminal


# -----------------------------------------------------------------------------
# Prompts and quick replies
# -----------------------------------------------------------------------------

GREETING_TEXT = (
    "Hi! I'm KinderDag Assistant 👋 I'll help you find the perfect activity "
    "for your child!\n\nLet's start: How old is your child?"
)
AGE_REPROMPT_TEXT = (
    "Sorry, I didn't catch that. Please pick an age range below or type "
    "your child's age as a number."
)
LOCATION_TEXT = "Perfect! Do you prefer indoor or outdoor activities?"
BUDGET_TEXT = "What's your budget for today?"
SEARCHING_TEXT = "🔍 Searching for perfect activities..."

# The value of an age quick reply is a representative age for its bracket
AGE_REPLIES = [
    QuickReply(text="0-2 years", value="1", icon="👶"),
    QuickReply(text="3-5 years", value="4", icon="🧒"),
    QuickReply(text="6-8 years", value="7", icon="👦"),
    QuickReply(text="9-12 years", value="10", icon="👧"),
    QuickReply(text="13+ years", value="14", icon="🧑"),
]

UNSURE_INTEREST = "any"

INTEREST_REPLIES = [
    QuickReply(text="🎨 Arts & Crafts", value="arts", icon="🎨"),
    QuickReply(text="⚽ Sports", value="sports", icon="⚽"),
    QuickReply(text="🎭 Theater", value="theater", icon="🎭"),
    QuickReply(text="🔬 Science", value="science", icon="🔬"),
    QuickReply(text="🌳 Nature", value="nature", icon="🌳"),
    QuickReply(text="I'm not sure", value=UNSURE_INTEREST, icon="🤷"),
]

ENVIRONMENT_REPLIES = [
    QuickReply(text="🏠 Indoor", value="indoor", icon="🏠"),
    QuickReply(text="🌤️ Outdoor", value="outdoor", icon="🌤️"),
    QuickReply(text="🤷 Either works", value="both", icon="🤷"),
]

BUDGET_REPLIES = [
    QuickReply(text="💸 Free", value=Budget.FREE.value, icon="💸"),
    QuickReply(text="💵 €0-20", value=Budget.LOW.value, icon="💵"),
    QuickReply(text="💶 €20-50", value=Budget.MEDIUM.value, icon="💶"),
    QuickReply(text="💰 €50+", value=Budget.HIGH.value, icon="💰"),
]


def _replies(replies: list[QuickReply]) -> list[QuickReply]:
    return [reply.model_copy() for reply in replies]


# -----------------------------------------------------------------------------
# Step handlers
# -----------------------------------------------------------------------------


def _handle_greeting(raw_input: str) -> Transition:
    return Transition(
        context_delta={},
        next_step=ChatStep.AGE,
        messages=[GREETING_TEXT],
        quick_replies=_replies(AGE_REPLIES),
    )


def parse_age(raw_input: str) -> int:
    """Parse an age token into a non-negative integer.

    Raises:
        InvalidTurnInput: If the token is not a whole number or is negative
    """
    try:
        age = int(raw_input.strip())
    except ValueError:
        raise InvalidTurnInput(ChatStep.AGE, raw_input, "not a whole number") from None
    if age < 0:
        raise InvalidTurnInput(ChatStep.AGE, raw_input, "age cannot be negative")
    return age


def _handle_age(raw_input: str) -> Transition:
    age = parse_age(raw_input)
    who = "baby" if age < 3 else "child"
    return Transition(
        context_delta={"child_age": age},
        next_step=ChatStep.INTERESTS,
        messages=[f"Great! What is your {who} interested in? You can select multiple!"],
        quick_replies=_replies(INTEREST_REPLIES),
    )


def _handle_interests(raw_input: str) -> Transition:
    interests = [token.strip() for token in raw_input.split(",")]
    return Transition(
        context_delta={"interests": [token for token in interests if token]},
        next_step=ChatStep.LOCATION,
        messages=[LOCATION_TEXT],
        quick_replies=_replies(ENVIRONMENT_REPLIES),
    )


def _handle_location(raw_input: str) -> Transition:
    choice = raw_input.strip()
    if choice == "indoor":
        indoor, outdoor = True, False
    elif choice == "outdoor":
        indoor, outdoor = False, True
    else:
        # "both" and anything unrecognized mean no preference
        indoor, outdoor = True, True
    return Transition(
        context_delta={"indoor": indoor, "outdoor": outdoor},
        next_step=ChatStep.BUDGET,
        messages=[BUDGET_TEXT],
        quick_replies=_replies(BUDGET_REPLIES),
    )


def _handle_budget(raw_input: str) -> Transition:
    return Transition(
        context_delta={"budget": raw_input.strip()},
        next_step=ChatStep.RECOMMEND,
        messages=[SEARCHING_TEXT],
    )


def _handle_recommend(raw_input: str) -> Transition:
    return Transition(context_delta={}, next_step=ChatStep.RECOMMEND)


STEP_HANDLERS: dict[ChatStep, Callable[[str], Transition]] = {
    ChatStep.GREETING: _handle_greeting,
    ChatStep.AGE: _handle_age,
    ChatStep.INTERESTS: _handle_interests,
    ChatStep.LOCATION: _handle_location,
    ChatStep.BUDGET: _handle_budget,
    ChatStep.RECOMMEND: _handle_recommend,
}

REPROMPTS: dict[ChatStep, Transition] = {
    ChatStep.AGE: Transition(
        context_delta={},
        next_step=ChatStep.AGE,
        messages=[AGE_REPROMPT_TEXT],
        quick_replies=AGE_REPLIES,
    ),
}


def transition(step: ChatStep, raw_input: str) -> Transition:
    """Compute the transition for ``raw_input`` at ``step``.

    Raises:
        InvalidTurnInput: If the handler rejects the input
    """
    return STEP_HANDLERS[step](raw_input)


def reprompt(error: InvalidTurnInput) -> Transition:
    """Transition that asks again without moving the step cursor."""
    template = REPROMPTS[error.step]
    return Transition(
        context_delta={},
        next_step=error.step,
        messages=list(template.messages),
        quick_replies=_replies(template.quick_replies or []),
    )


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------


class ChatEngine:
    """Applies step transitions to a stored conversation.

    All state lives in the store. The conversation id is passed explicitly
    on every call.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.contexts = ContextStore(store)

    def advance(
        self,
        conversation_id: UUID,
        raw_input: str,
        context: ConversationContext,
    ) -> TurnResult:
        """Run one turn from ``context.current_step``.

        The stored context is overwritten before any message is persisted.
        Store errors propagate, leaving the step cursor where it was.
        """
        step = context.current_step
        if step.is_terminal:
            # The caller runs the ranker. Nothing to say or store here.
            return TurnResult(conversation_id, [], None, context)

        try:
            result = transition(step, raw_input)
        except InvalidTurnInput as e:
            logger.warning(
                "Rejected chat input",
                extra={
                    "conversation_id": str(conversation_id),
                    "step": step.value,
                    "reason": e.reason,
                },
            )
            result = reprompt(e)

        if result.context_delta or result.next_step != step:
            delta = {**result.context_delta, "current_step": result.next_step}
            context = self.contexts.merge(conversation_id, delta)

        messages = [
            add_message(self.store, conversation_id, MessageRole.ASSISTANT, text)
            for text in result.messages
        ]

        logger.info(
            "Chat turn processed",
            extra={
                "conversation_id": str(conversation_id),
                "from_step": step.value,
                "to_step": context.current_step.value,
                "message_count": len(messages),
            },
        )
        return TurnResult(conversation_id, messages, result.quick_replies, context)

    def start(self, conversation_id: UUID) -> TurnResult:
        """Run the greeting turn of a freshly created conversation."""
        return self.advance(conversation_id, "", self.contexts.get(conversation_id))

    def handle_user_message(
        self,
        conversation_id: UUID,
        text: str,
        is_quick_reply: bool = False,
    ) -> tuple[ChatMessage, TurnResult]:
        """Store the user's message, then advance from the stored context.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            ConversationStateError: If the conversation is completed or archived
        """
        ensure_accepts_turns(get_conversation(self.store, conversation_id))

        user_message = add_message(
            self.store,
            conversation_id,
            MessageRole.USER,
            text,
            MessageType.QUICK_REPLY if is_quick_reply else MessageType.TEXT,
        )
        context = self.contexts.get(conversation_id)
        return user_message, self.advance(conversation_id, text, context)
