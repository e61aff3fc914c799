"""SQLAlchemy models."""

from mentor_directory.models.enums import UserType
from mentor_directory.models.tag import Tag, UserTag
from mentor_directory.models.user import User

__all__ = [
    "User",
    "UserType",
    "Tag",
    "UserTag",
]
