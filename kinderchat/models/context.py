"""Conversation context and quick reply value types."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatStep(str, Enum):
    """Guided dialogue steps, in the order a conversation walks them."""

    GREETING = "greeting"
    AGE = "age"
    INTERESTS = "interests"
    LOCATION = "location"
    BUDGET = "budget"
    RECOMMEND = "recommend"

    @property
    def position(self) -> int:
        """Zero-based index of the step in the fixed sequence."""
        return list(ChatStep).index(self)

    @property
    def is_terminal(self) -> bool:
        return self is ChatStep.RECOMMEND


class Budget(str, Enum):
    """Budget tokens offered as quick replies."""

    FREE = "free"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConversationContext(BaseModel):
    """Structured profile collected across the turns of one conversation.

    Stored as JSON on the conversation record using camelCase keys
    (``childAge``, ``currentStep``). Fields are read and written by their
    Python names everywhere else.
    """

    model_config = ConfigDict(populate_by_name=True)

    child_age: int | None = Field(default=None, ge=0, alias="childAge")
    interests: list[str] | None = None
    indoor: bool | None = None
    outdoor: bool | None = None
    budget: str | None = None
    current_step: ChatStep = Field(default=ChatStep.GREETING, alias="currentStep")

    @classmethod
    def from_record(cls, data: dict[str, Any] | None) -> "ConversationContext":
        """Build a context from its stored JSON form."""
        return cls.model_validate(data or {})

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored JSON form, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def delta_to_record(delta: dict[str, Any]) -> dict[str, Any]:
    """Translate a field-name keyed delta to stored (camelCase) keys."""
    fields = ConversationContext.model_fields
    record: dict[str, Any] = {}
    for name, value in delta.items():
        key = name
        if name in fields and fields[name].alias:
            key = fields[name].alias
        if isinstance(value, Enum):
            value = value.value
        record[key] = value
    return record


class QuickReply(BaseModel):
    """A tappable suggested answer. Recomputed every turn, never stored."""

    text: str
    value: str
    icon: str | None = None
