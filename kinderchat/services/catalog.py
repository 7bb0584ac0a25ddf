"""Candidate sources supplying the activity catalog to the ranker."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from sqlmodel import Session, select

from kinderchat.models.activity import Activity


class CandidateSource(ABC):
    """Supplies the full, unfiltered activity catalog."""

    @abstractmethod
    def get_all(self) -> list[Activity]:
        """Return every candidate activity."""


class SQLActivitySource(CandidateSource):
    """Reads the catalog from the ``activities`` table."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_all(self) -> list[Activity]:
        return list(self.session.exec(select(Activity)).all())


class StaticActivitySource(CandidateSource):
    """Serves a fixed in-memory catalog."""

    def __init__(self, activities: Iterable[Activity]) -> None:
        self._activities = list(activities)

    def get_all(self) -> list[Activity]:
        return list(self._activities)
