"""
Shopify Admin REST API client.

Fetches products, customers and orders for one shop with cursor
pagination (``Link: <...>; rel="next"``). 429 and 5xx responses are retried
with backoff; any other failure surfaces as ``ProviderApiError``.
"""

from typing import Any, Callable, Dict, List, Optional

import httpx

from shopsync.core.models import ProviderCustomer, ProviderOrder, ProviderProduct
from shopsync.core.validator import to_decimal
from shopsync.marketplaces.base import ProviderClient, ShopCredentials
from shopsync.utils.exceptions import ProviderApiError, ValidationError, handle_api_error
from shopsync.utils.logger import get_logger
from shopsync.utils.retry import RetryableOperation, RetryConfig


logger = get_logger(__name__)

DEFAULT_API_VERSION = "2024-10"
MAX_PAGE_SIZE = 250


class ShopifyAdminClient(ProviderClient):
    """
    Admin REST client for one shop.

    Args:
        credentials: Shop domain and offline access token
        api_version: Admin API version segment
        timeout: Per-request timeout in seconds
        page_size: Records per page (Shopify caps this at 250)
        retry_config: Backoff configuration for 429/5xx
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        credentials: ShopCredentials,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        page_size: int = MAX_PAGE_SIZE,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(credentials)
        self.api_version = api_version
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.base_url = f"https://{credentials.shop}/admin/api/{api_version}"
        self.retry = RetryableOperation(retry_config or RetryConfig())

        self._client = httpx.AsyncClient(
            headers={
                "X-Shopify-Access-Token": credentials.access_token,
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return "shopify"

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, url: str, params: Optional[Dict[str, Any]], endpoint: str) -> httpx.Response:
        response = await self._client.get(url, params=params)
        if response.status_code >= 400:
            logger.warning(
                f"Shopify API GET {endpoint} -> {response.status_code} "
                f"for {self.credentials.shop}"
            )
            handle_api_error(response, endpoint)
        return response

    async def _get_all(self, resource: str, limit: Optional[int] = None,
                       extra_params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Fetch every page of ``/{resource}.json``.

        Raises:
            ProviderApiError: On any non-retryable or exhausted failure
        """
        url = f"{self.base_url}/{resource}.json"
        params: Optional[Dict[str, Any]] = {"limit": self.page_size, **(extra_params or {})}
        records: List[Dict[str, Any]] = []
        page = 0

        while url:
            page += 1
            try:
                response = await self.retry.execute(self._get, url, params, resource)
            except httpx.HTTPError as e:
                raise ProviderApiError(
                    f"Shopify request failed for {self.credentials.shop}: {e}",
                    endpoint=resource,
                ) from e

            try:
                batch = response.json().get(resource) or []
            except ValueError as e:
                raise ProviderApiError(
                    f"Shopify returned invalid JSON for {resource}",
                    status_code=response.status_code,
                    endpoint=resource,
                ) from e

            records.extend(batch)
            logger.debug(f"{self.credentials.shop} {resource} page {page}: {len(batch)} (total {len(records)})")

            if limit is not None and len(records) >= limit:
                return records[:limit]

            # page_info URLs carry their own query string
            url = response.links.get("next", {}).get("url")
            params = None

        logger.info(f"Fetched {len(records)} {resource} for {self.credentials.shop} in {page} page(s)")
        return records

    def _convert(self, records: List[Dict[str, Any]], converter: Callable, resource: str) -> list:
        converted = []
        for record in records:
            try:
                converted.append(converter(record))
            except (ValidationError, KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed {resource} record {record.get('id')!r}: {e}")
        return converted

    async def fetch_products(self, limit: Optional[int] = None) -> List[ProviderProduct]:
        records = await self._get_all("products", limit)
        return self._convert(records, product_from_api, "products")

    async def fetch_customers(self, limit: Optional[int] = None) -> List[ProviderCustomer]:
        records = await self._get_all("customers", limit)
        return self._convert(records, customer_from_api, "customers")

    async def fetch_orders(self, limit: Optional[int] = None) -> List[ProviderOrder]:
        records = await self._get_all("orders", limit, {"status": "any"})
        return self._convert(records, order_from_api, "orders")


def product_from_api(data: Dict[str, Any]) -> ProviderProduct:
    """Product price is taken from the first variant."""
    variants = data.get("variants") or []
    price = variants[0].get("price") if variants else data.get("price")
    return ProviderProduct(
        external_id=str(data["id"]),
        title=data.get("title"),
        price=to_decimal(price, "price"),
    )


def customer_from_api(data: Dict[str, Any]) -> ProviderCustomer:
    return ProviderCustomer(
        external_id=str(data["id"]),
        email=data.get("email"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        total_spent=to_decimal(data.get("total_spent"), "total_spent"),
    )


def order_from_api(data: Dict[str, Any]) -> ProviderOrder:
    """
    Map an order payload from the Admin API or an ``orders/*`` webhook.

    Line items are passed through unvalidated; ``upsert_order`` checks them.
    """
    customer = data.get("customer") or {}
    customer_id = customer.get("id") if isinstance(customer, dict) else None

    line_items = data.get("line_items")
    if isinstance(line_items, list):
        line_items = [
            {
                "product": item.get("product_id") or item.get("title"),
                "quantity": item.get("quantity"),
            } if isinstance(item, dict) else item
            for item in line_items
        ]

    return ProviderOrder(
        external_id=str(data["id"]),
        created_at=data.get("created_at"),
        total_price=to_decimal(data.get("total_price"), "total_price"),
        customer_external_id=str(customer_id) if customer_id is not None else None,
        line_items=line_items,
    )
