"""API dependencies for dependency injection."""

from collections.abc import Generator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlmodel import Session

from kinderchat.config import get_settings
from kinderchat.db.session import get_session
from kinderchat.db.store import SQLModelStore

settings = get_settings()
security = HTTPBearer()


def get_db_session() -> Generator[Session, None, None]:
    """Get database session dependency."""
    yield from get_session()


DBSession = Annotated[Session, Depends(get_db_session)]


def get_store(session: DBSession) -> SQLModelStore:
    """Get a record store bound to the request's session."""
    return SQLModelStore(session)


Store = Annotated[SQLModelStore, Depends(get_store)]


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """Get the authenticated user's id from the bearer token's subject.

    Tokens are issued by the external auth provider; only the signature
    and the ``sub`` claim are checked here.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.AUTH_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
        subject: str | None = payload.get("sub")
        if subject is None:
            raise credentials_exception
        return UUID(subject)
    except (JWTError, ValueError):
        raise credentials_exception


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
