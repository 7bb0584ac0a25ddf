"""Activity entity model. Read-only from the chat engine's point of view."""

from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class Activity(SQLModel, table=True):
    """Activity catalog database model."""

    __tablename__ = "activities"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(default="", max_length=200)
    city: str = Field(default="", max_length=100, index=True)
    age_min: int = Field(default=0, ge=0)
    age_max: int = Field(default=99, ge=0)
    price_min: float = Field(default=0.0, ge=0)
    price_max: float = Field(default=0.0, ge=0)
    is_free: bool = Field(default=False)
    is_indoor: bool = Field(default=False)
    is_outdoor: bool = Field(default=False)
    average_rating: float = Field(default=0.0, ge=0, le=5)
    total_reviews: int = Field(default=0, ge=0)
    location_lat: float = Field(default=0.0)
    location_lng: float = Field(default=0.0)

