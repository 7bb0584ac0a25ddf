"""Generic record store used by the chat engine.

The engine never issues queries of its own. It reads and writes records
through a small interface keyed by table name and equality filters:

- insert(table, record) -> record with id and timestamps
- get_one(table, filters) -> record or None
- update(table, filters, patch) -> None
- list(table, filters, ...) -> records, for transcript replay

Records cross the boundary as plain dicts so callers stay independent of
the persistence layer. ``SQLModelStore`` is the database-backed
implementation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from kinderchat.models import Activity, ChatMessage, Conversation, Recommendation
from kinderchat.models.conversation import utc_now

logger = logging.getLogger(__name__)

CONVERSATIONS = "chat_conversations"
MESSAGES = "chat_messages"
RECOMMENDATIONS = "chat_recommendations"
ACTIVITIES = "activities"

TABLES: dict[str, type[SQLModel]] = {
    CONVERSATIONS: Conversation,
    MESSAGES: ChatMessage,
    RECOMMENDATIONS: Recommendation,
    ACTIVITIES: Activity,
}


class RecordNotFoundError(Exception):
    """Raised when an update matches no record."""
    pass


class UnknownTableError(Exception):
    """Raised when a table name has no registered model."""
    pass


class RecordStore(ABC):
    """Table-keyed record persistence interface."""

    @abstractmethod
    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it with generated fields filled in."""

    @abstractmethod
    def get_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first record matching all filters, or None."""

    @abstractmethod
    def update(self, table: str, filters: dict[str, Any], patch: dict[str, Any]) -> None:
        """Apply ``patch`` to every record matching all filters.

        Raises:
            RecordNotFoundError: If no record matches
        """

    @abstractmethod
    def list(
        self,
        table: str,
        filters: dict[str, Any],
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return all records matching the filters."""


class SQLModelStore(RecordStore):
    """RecordStore backed by a SQLModel session.

    Every write commits immediately. A failed commit rolls the session back
    and re-raises, so callers never continue past a write that did not land.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _model(self, table: str) -> type[SQLModel]:
        try:
            return TABLES[table]
        except KeyError:
            raise UnknownTableError(f"Unknown table '{table}'") from None

    def _where(self, model: type[SQLModel], filters: dict[str, Any]):
        query = select(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        return query

    def _commit(self, table: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.error("Store write failed", extra={"table": table})
            raise

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        model = self._model(table)
        row = model.model_validate(record)
        self.session.add(row)
        self._commit(table)
        self.session.refresh(row)
        return row.model_dump()

    def get_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        model = self._model(table)
        row = self.session.exec(self._where(model, filters)).first()
        return row.model_dump() if row is not None else None

    def update(self, table: str, filters: dict[str, Any], patch: dict[str, Any]) -> None:
        model = self._model(table)
        rows = list(self.session.exec(self._where(model, filters)).all())
        if not rows:
            raise RecordNotFoundError(f"No record in '{table}' matches {filters}")

        for row in rows:
            # Validate through the model so enum and UUID values are coerced
            updated = model.model_validate({**row.model_dump(), **patch})
            for key in patch:
                setattr(row, key, getattr(updated, key))
            if "updated_at" in model.model_fields and "updated_at" not in patch:
                row.updated_at = utc_now()
            self.session.add(row)

        self._commit(table)

    def list(
        self,
        table: str,
        filters: dict[str, Any],
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        model = self._model(table)
        query = self._where(model, filters)
        if order_by:
            column = getattr(model, order_by)
            query = query.order_by(column.desc() if descending else column.asc())
        query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [row.model_dump() for row in self.session.exec(query).all()]
