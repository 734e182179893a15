"""
Product model for storing Shopify product data.
"""

from uuid import uuid4

from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, UniqueConstraint, Uuid

from .base import Base, utcnow


class Product(Base):
    """Shopify product scoped to a tenant by ``(tenant_id, external_id)``."""

    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    tenant_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id"),
        nullable=False,
        index=True
    )
    external_id = Column(String(64), nullable=False)

    title = Column(String(512))
    price = Column(Numeric(12, 2))

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_products_tenant_external"),
    )

    def __repr__(self):
        return f"<Product(tenant={self.tenant_id}, external_id={self.external_id}, price={self.price})>"
