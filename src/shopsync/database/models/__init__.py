"""
SQLAlchemy database models for shopsync.

Models:
- Tenant: one installed shop
- Product, Customer, Order: Shopify resources keyed by (tenant_id, external_id)
- Owner: dashboard login linked to a tenant
"""

from .base import Base
from .tenant import Tenant
from .product import Product
from .customer import Customer
from .order import Order
from .owner import Owner

__all__ = [
    "Base",
    "Tenant",
    "Product",
    "Customer",
    "Order",
    "Owner",
]
