"""
Customer model with the lifetime spend accumulator.
"""

from uuid import uuid4

from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, UniqueConstraint, Uuid, text

from .base import Base, utcnow


class Customer(Base):
    """
    Shopify customer scoped to a tenant.

    ``total_spent`` only grows through ``increment_customer_spend``; a full
    upsert may overwrite it with Shopify's authoritative value.
    """

    __tablename__ = "customers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    tenant_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id"),
        nullable=False,
        index=True
    )
    external_id = Column(String(64), nullable=False)

    email = Column(String(320))
    first_name = Column(String(255))
    last_name = Column(String(255))
    total_spent = Column(Numeric(14, 2), nullable=False, default=0, server_default=text("0"))

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_customers_tenant_external"),
    )

    def __repr__(self):
        return f"<Customer(tenant={self.tenant_id}, external_id={self.external_id}, total_spent={self.total_spent})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "external_id": self.external_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "total_spent": str(self.total_spent) if self.total_spent is not None else "0",
        }
