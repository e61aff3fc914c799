"""FastAPI dependencies for the directory and the current session."""

from typing import Annotated, Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mentor_directory.database import SessionLocal
from mentor_directory.services.directory import UserDirectory

security = HTTPBearer()


def get_directory() -> UserDirectory:
    """Get the user directory bound to the application's session factory."""
    return UserDirectory(SessionLocal)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    directory: Annotated[UserDirectory, Depends(get_directory)],
) -> dict[str, Any]:
    """Resolve the bearer token to ``{"id", "type_user"}``.

    NotLoggedIn propagates to the application's error handler.
    """
    return directory.verify_token(credentials.credentials)
