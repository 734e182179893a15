"""
Shopify webhook verification and dispatch.

Every webhook body is authenticated with the app secret before anything
else happens. Verified webhooks are dispatched by topic; processing
failures are logged and reported in the result but never turn into a
non-2xx response, since Shopify retries those.
"""

import base64
import hashlib
import hmac
from typing import Any, Awaitable, Callable, Dict, Optional

from shopsync.core.models import OperationResult
from shopsync.core.validator import normalize_shop_domain
from shopsync.database.operations import EntityOperations
from shopsync.database.repository import TenantRepository
from shopsync.marketplaces.shopify_client import customer_from_api, order_from_api, product_from_api
from shopsync.services.session_storage import SessionStorage
from shopsync.utils.exceptions import SignatureError, ShopSyncError, TenantNotFoundError
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)


def compute_webhook_hmac(body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of the raw body, as sent in X-Shopify-Hmac-Sha256."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_webhook_hmac(body: bytes, hmac_header: Optional[str], secret: Optional[str]) -> None:
    """
    Verify a webhook signature.

    Raises:
        SignatureError: If the secret or header is missing or the digest differs
    """
    if not secret:
        raise SignatureError("Webhook secret is not configured")
    if not hmac_header:
        raise SignatureError("Missing X-Shopify-Hmac-Sha256 header")

    expected = compute_webhook_hmac(body, secret)
    if not hmac.compare_digest(expected, hmac_header.strip()):
        raise SignatureError("Webhook signature mismatch")


class WebhookProcessor:
    """Dispatches verified webhooks to persistence by topic."""

    def __init__(self, repository: TenantRepository, session_storage: SessionStorage,
                 entities: EntityOperations):
        self.repository = repository
        self.session_storage = session_storage
        self.entities = entities

        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], Awaitable[OperationResult]]] = {
            "app/uninstalled": self._handle_uninstalled,
            "orders/create": self._handle_order_created,
            "orders/updated": self._handle_order_updated,
            "products/create": self._handle_product,
            "products/update": self._handle_product,
            "customers/create": self._handle_customer,
            "customers/update": self._handle_customer,
        }

    async def process(self, topic: str, shop_domain: Optional[str], payload: Any) -> OperationResult:
        """
        Handle one verified webhook.

        Unknown topics are acknowledged and ignored. Never raises.
        """
        topic = (topic or "").strip().strip("/").lower()
        handler = self._handlers.get(topic)
        if handler is None:
            logger.info(f"Ignoring webhook topic {topic!r}")
            return OperationResult.ok("ignored")

        shop = normalize_shop_domain(shop_domain)
        if shop is None:
            logger.warning(f"Webhook {topic} without a valid shop domain ({shop_domain!r})")
            return OperationResult(success=False, error_kind="malformed_session",
                                   message="Missing shop domain")

        if not isinstance(payload, dict):
            logger.warning(f"Webhook {topic} for {shop} has a non-object body")
            return OperationResult(success=False, error_kind="validation", message="Body is not an object")

        try:
            result = await handler(shop, payload)
        except ShopSyncError as e:
            logger.error(f"Webhook {topic} for {shop} failed: {e}")
            return OperationResult.failure(e)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Webhook {topic} for {shop} has an unexpected payload: {e}")
            return OperationResult(success=False, error_kind="validation", message=str(e))

        logger.info(f"Webhook {topic} processed for {shop}")
        return result

    async def _tenant_id(self, shop: str):
        tenant = await self.repository.find_by_domain(shop)
        if tenant is None:
            raise TenantNotFoundError(shop)
        return tenant.id

    async def _handle_uninstalled(self, shop: str, payload: Dict[str, Any]) -> OperationResult:
        return await self.session_storage.delete_session(shop)

    async def _handle_order_created(self, shop: str, payload: Dict[str, Any]) -> OperationResult:
        tenant_id = await self._tenant_id(shop)
        order = order_from_api(payload)

        # Redelivered orders/create must not add the total twice
        await self.entities.record_order_created(
            tenant_id,
            order.external_id,
            created_at=order.created_at,
            total_price=order.total_price,
            customer_external_id=order.customer_external_id,
            line_items=order.line_items,
        )
        return OperationResult.ok()

    async def _handle_order_updated(self, shop: str, payload: Dict[str, Any]) -> OperationResult:
        tenant_id = await self._tenant_id(shop)
        await self._upsert_order(tenant_id, order_from_api(payload))
        return OperationResult.ok()

    async def _upsert_order(self, tenant_id, order) -> None:
        await self.entities.upsert_order(
            tenant_id,
            order.external_id,
            created_at=order.created_at,
            total_price=order.total_price,
            customer_external_id=order.customer_external_id,
            line_items=order.line_items,
        )

    async def _handle_product(self, shop: str, payload: Dict[str, Any]) -> OperationResult:
        tenant_id = await self._tenant_id(shop)
        product = product_from_api(payload)
        await self.entities.upsert_product(tenant_id, product.external_id, product.title, product.price)
        return OperationResult.ok()

    async def _handle_customer(self, shop: str, payload: Dict[str, Any]) -> OperationResult:
        tenant_id = await self._tenant_id(shop)
        customer = customer_from_api(payload)
        await self.entities.upsert_customer(
            tenant_id,
            customer.external_id,
            email=customer.email,
            first_name=customer.first_name,
            last_name=customer.last_name,
            total_spent=customer.total_spent,
        )
        return OperationResult.ok()
