"""OAuth provider configuration model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint, func

from knolib_identity.models.base import BaseModel


class OAuthProvider(BaseModel):
    """Administrator-managed identity provider settings."""

    __tablename__ = "oauth_providers"

    name = Column(String(50), nullable=False)
    display_name = Column(String(100), nullable=False)
    client_id = Column(String(255))
    client_secret = Column(Text)
    enabled = Column(Boolean, nullable=False, default=False, server_default="false")
    order = Column(Integer, nullable=False, default=0, server_default="0")
    icon = Column(String(50))
    color = Column(String(20))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("name", name="uq_oauth_providers_name"),)
