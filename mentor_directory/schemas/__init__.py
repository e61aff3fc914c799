"""Pydantic schemas for API requests."""

from mentor_directory.schemas.user import ProfileUpdate, UserCreate, UserLogin

__all__ = [
    "UserCreate",
    "UserLogin",
    "ProfileUpdate",
]
