"""
Abstract base class for commerce provider clients.

A provider client fetches one tenant's products, customers and orders.
``TenantSyncService`` only depends on this interface, so tests substitute
an in-memory client.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from shopsync.core.models import ProviderCustomer, ProviderOrder, ProviderProduct


@dataclass
class ShopCredentials:
    """Offline credentials for one shop."""
    shop: str
    access_token: str

    def __repr__(self) -> str:
        return f"ShopCredentials(shop={self.shop!r}, access_token='***')"


class ProviderClient(ABC):
    """
    Abstract provider client interface.

    Clients are async context managers; the connection pool is released on
    exit.
    """

    def __init__(self, credentials: ShopCredentials):
        self.credentials = credentials

    @abstractmethod
    async def fetch_products(self, limit: Optional[int] = None) -> List[ProviderProduct]:
        """
        Fetch all products for the shop.

        Args:
            limit: Stop after this many records (None = all pages)
        """

    @abstractmethod
    async def fetch_customers(self, limit: Optional[int] = None) -> List[ProviderCustomer]:
        """Fetch all customers for the shop."""

    @abstractmethod
    async def fetch_orders(self, limit: Optional[int] = None) -> List[ProviderOrder]:
        """Fetch all orders for the shop, any status."""

    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider name used in logs."""
