"""Environment configuration for the KinderDag chat backend."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

# Scores fall by a tenth per position and stay positive up to this many picks
MAX_RECOMMENDATION_LIMIT = 10


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.AUTH_SECRET: str = os.getenv("AUTH_SECRET", "")
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:8081")
        self.JWT_ALGORITHM: str = "HS256"
        # Number of activities returned at the end of a conversation
        self.RECOMMENDATION_LIMIT: int = int(os.getenv("RECOMMENDATION_LIMIT", "5"))

    @property
    def sqlalchemy_url(self) -> str:
        """Database URL rewritten for the psycopg v3 driver."""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    def validate(self) -> None:
        """Validate that required environment variables are set."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is required")
        if not self.AUTH_SECRET:
            raise ValueError("AUTH_SECRET environment variable is required")
        if not 1 <= self.RECOMMENDATION_LIMIT <= MAX_RECOMMENDATION_LIMIT:
            raise ValueError(
                f"RECOMMENDATION_LIMIT must be between 1 and {MAX_RECOMMENDATION_LIMIT}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    return settings
