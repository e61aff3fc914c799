"""Enums for model fields."""

from enum import Enum


class UserType(str, Enum):
    """Kinds of directory accounts."""

    USER = "user"
    MENTOR = "mentor"

    @property
    def has_tags(self) -> bool:
        """Check if accounts of this kind can carry tags."""
        return self == UserType.MENTOR
