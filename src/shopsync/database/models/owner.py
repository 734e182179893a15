"""
Owner model - a person who logs into the dashboard for one tenant.
"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid

from .base import Base, utcnow


class Owner(Base):
    """Dashboard login bound to a tenant."""

    __tablename__ = "owners"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Owner(id={self.id}, email='{self.email}')>"
