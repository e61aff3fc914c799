"""User model."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from mentor_directory.database import Base


class User(Base):
    """Directory account: a plain user or a mentor."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("type_user IN ('user', 'mentor')", name="ck_users_type_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    search_key = Column(String(255), unique=True, nullable=True, index=True)
    type_user = Column(String(10), nullable=False, default="user", index=True)

    # Profile
    bio = Column(String, nullable=True)
    role = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    homepage = Column(String(500), nullable=True)
    company = Column(String(255), nullable=True)
    picture_hash = Column(String(255), nullable=True)

    # Session: UTC "YYYY-MM-DD HH:MM:SS"
    token = Column(String(64), unique=True, nullable=True, index=True)
    token_expiry = Column(String(19), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    tag_links = relationship("UserTag", back_populates="user", cascade="all, delete-orphan")
