"""
Tenant model - one installed shop.
"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Text, Uuid, false

from .base import Base, utcnow


class Tenant(Base):
    """
    One installed instance of the app for one Shopify shop domain.

    ``domain`` is the natural key for every lookup. A non-null
    ``access_token`` always comes with ``uninstalled = False``; the
    repository writes both in the same statement.
    """

    __tablename__ = "tenants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    domain = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255))

    # Offline access token; NULL means uninstalled or install never completed
    access_token = Column(String(255), nullable=True)
    scope = Column(Text)
    uninstalled = Column(Boolean, default=False, server_default=false(), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_installed(self) -> bool:
        return bool(self.access_token) and not self.uninstalled

    def __repr__(self):
        return f"<Tenant(id={self.id}, domain='{self.domain}', uninstalled={self.uninstalled})>"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses. Never includes the token."""
        return {
            "id": str(self.id),
            "domain": self.domain,
            "display_name": self.display_name,
            "installed": self.is_installed,
            "uninstalled": self.uninstalled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
