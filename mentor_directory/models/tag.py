"""Tag vocabulary and user-tag link models."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from mentor_directory.database import Base


class Tag(Base):
    """Shared tag vocabulary; tags are stored lower-case."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    tag = Column(String(100), unique=True, nullable=False)

    # Relationships
    user_links = relationship("UserTag", back_populates="tag", cascade="all, delete-orphan")


class UserTag(Base):
    """Association between a mentor and a tag."""

    __tablename__ = "users_tags"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True, index=True
    )

    # Relationships
    user = relationship("User", back_populates="tag_links")
    tag = relationship("Tag", back_populates="user_links")
