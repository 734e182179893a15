"""
Order model.
"""

from uuid import uuid4

from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, UniqueConstraint, Uuid

from .base import Base, JSONType, utcnow


class Order(Base):
    """
    Shopify order scoped to a tenant.

    ``customer_external_id`` is a weak reference to ``customers.external_id``
    and is not enforced. ``line_items`` holds a list of
    ``{"product": ..., "quantity": ...}`` objects.
    """

    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    tenant_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id"),
        nullable=False,
        index=True
    )
    external_id = Column(String(64), nullable=False)

    # Order creation time reported by Shopify
    created_at = Column(DateTime(timezone=True), index=True)
    total_price = Column(Numeric(12, 2))
    customer_external_id = Column(String(64))
    line_items = Column(JSONType, default=list, nullable=False)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_orders_tenant_external"),
    )

    def __repr__(self):
        return f"<Order(tenant={self.tenant_id}, external_id={self.external_id}, total={self.total_price})>"
