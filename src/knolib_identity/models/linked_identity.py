"""Linked identity model."""

from sqlalchemy import Column, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from knolib_identity.models.base import BaseModel


class LinkedIdentity(BaseModel):
    """An external provider account bound to one user."""

    __tablename__ = "linked_identities"

    user_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider_name = Column(String(50), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    access_token = Column(Text)
    refresh_token = Column(Text)

    # Relationships
    user = relationship("User", back_populates="linked_identities")

    __table_args__ = (
        UniqueConstraint(
            "provider_name",
            "provider_account_id",
            name="uq_linked_identities_provider_account",
        ),
        UniqueConstraint("user_id", "provider_name", name="uq_linked_identities_user_provider"),
    )
