"""User model."""

from sqlalchemy import Boolean, Column, DateTime, Index, String, func
from sqlalchemy.orm import relationship

from knolib_identity.models.base import BaseModel


class User(BaseModel):
    """A local account."""

    __tablename__ = "users"

    email = Column(String(255))  # stored lower-cased; NULL for provider accounts without email
    name = Column(String(100))
    avatar = Column(String(1024))
    password_hash = Column(String(255))  # NULL for OAuth-only accounts
    role = Column(String(20), nullable=False, default="AUTHOR", server_default="AUTHOR")
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    last_login_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    linked_identities = relationship(
        "LinkedIdentity", back_populates="user", cascade="all, delete-orphan"
    )


# Case-insensitive uniqueness; NULL emails do not collide
Index("uq_users_email", func.lower(User.__table__.c.email), unique=True)
