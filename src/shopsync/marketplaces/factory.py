"""
Factory for creating provider clients from tenant records.
"""

from typing import Callable

from shopsync.database.models import Tenant
from shopsync.marketplaces.base import ProviderClient, ShopCredentials
from shopsync.marketplaces.shopify_client import ShopifyAdminClient
from shopsync.utils.config import Settings
from shopsync.utils.exceptions import TenantNotFoundError
from shopsync.utils.logger import get_logger
from shopsync.utils.retry import RetryConfig


logger = get_logger(__name__)

ClientFactory = Callable[[Tenant], ProviderClient]


def create_provider_client(tenant: Tenant, settings: Settings) -> ProviderClient:
    """
    Create the Shopify client for an installed tenant.

    Raises:
        TenantNotFoundError: If the tenant has no usable token
    """
    if not tenant.is_installed:
        raise TenantNotFoundError(tenant.domain)

    logger.debug(f"Creating Shopify client for tenant {tenant.domain}")
    return ShopifyAdminClient(
        ShopCredentials(shop=tenant.domain, access_token=tenant.access_token),
        api_version=settings.shopify_api_version,
        timeout=settings.shopify_api_timeout,
        page_size=settings.shopify_page_size,
        retry_config=RetryConfig(
            max_retries=settings.api_retry_count,
            base_delay=settings.api_retry_delay,
        ),
    )


def provider_client_factory(settings: Settings) -> ClientFactory:
    """Bind settings so services only pass the tenant."""
    def factory(tenant: Tenant) -> ProviderClient:
        return create_provider_client(tenant, settings)
    return factory
