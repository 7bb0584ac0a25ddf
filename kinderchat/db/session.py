"""Database engine and session management."""

from collections.abc import Generator

from sqlmodel import Session, create_engine

from kinderchat.config import get_settings

settings = get_settings()

database_url = settings.sqlalchemy_url or "sqlite://"

engine = create_engine(
    database_url,
    echo=False,
    pool_pre_ping=True,
    connect_args={"sslmode": "require"} if database_url.startswith("postgresql") else {},
)


def get_session() -> Generator[Session, None, None]:
    """Get database session with automatic cleanup."""
    with Session(engine) as session:
        yield session
