"""
Test configuration and fixtures for shopsync
"""
import os

# Console-only logging until a test configures it explicitly
os.environ["LOG_DIR"] = ""

from decimal import Decimal
from typing import Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from shopsync.api.main import create_app
from shopsync.bootstrap import build_context
from shopsync.core.models import ProviderCustomer, ProviderOrder, ProviderProduct
from shopsync.database.connection import Database
from shopsync.database.operations import EntityOperations
from shopsync.database.repository import OwnerRepository, TenantRepository
from shopsync.marketplaces.base import ProviderClient, ShopCredentials
from shopsync.services.oauth import ShopifyOAuthService
from shopsync.services.session_storage import SessionStorage
from shopsync.services.webhooks import compute_webhook_hmac
from shopsync.utils.config import Settings


WEBHOOK_SECRET = "test-webhook-secret"
JWT_SECRET = "test-jwt-secret"


# =============================================================================
# Settings and Database
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment and any .env file"""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'shopsync_test.db'}",
        shopify_api_key="test-api-key",
        shopify_api_secret=WEBHOOK_SECRET,
        shopify_scopes="read_products,read_customers,read_orders",
        app_url="https://app.example.com",
        jwt_secret=JWT_SECRET,
        log_dir="",
        sync_enabled=False,
        database_auto_create=False,
        api_retry_count=0,
        api_retry_delay=0,
    )


@pytest_asyncio.fixture
async def database(settings):
    """File-backed SQLite database with all tables created"""
    db = Database(settings.database_url)
    await db.init_models()
    yield db
    await db.dispose()


@pytest.fixture
def tenants(database) -> TenantRepository:
    return TenantRepository(database)


@pytest.fixture
def owners(database) -> OwnerRepository:
    return OwnerRepository(database)


@pytest.fixture
def entities(database) -> EntityOperations:
    return EntityOperations(database)


@pytest.fixture
def session_storage(tenants) -> SessionStorage:
    return SessionStorage(tenants)


# =============================================================================
# Fake Shopify provider
# =============================================================================

class FakeProviderClient(ProviderClient):
    """In-memory provider client serving canned data for one shop"""

    def __init__(self, credentials: ShopCredentials, shop_data: "FakeShop"):
        super().__init__(credentials)
        self.shop_data = shop_data

    @property
    def provider_name(self) -> str:
        return "fake"

    async def _serve(self, records):
        self.shop_data.fetches += 1
        if self.shop_data.on_fetch is not None:
            await self.shop_data.on_fetch()
        if self.shop_data.error is not None:
            raise self.shop_data.error
        return list(records)

    async def fetch_products(self, limit: Optional[int] = None) -> List[ProviderProduct]:
        return await self._serve(self.shop_data.products)

    async def fetch_customers(self, limit: Optional[int] = None) -> List[ProviderCustomer]:
        return await self._serve(self.shop_data.customers)

    async def fetch_orders(self, limit: Optional[int] = None) -> List[ProviderOrder]:
        return await self._serve(self.shop_data.orders)


class FakeShop:
    """Canned Shopify data for one domain"""

    def __init__(self, products=(), customers=(), orders=(), error: Optional[Exception] = None):
        self.products = list(products)
        self.customers = list(customers)
        self.orders = list(orders)
        self.error = error
        self.on_fetch = None
        self.fetches = 0


class FakeProviderFactory:
    """Client factory keyed by tenant domain"""

    def __init__(self):
        self.shops: Dict[str, FakeShop] = {}
        self.created: List[str] = []

    def add_shop(self, domain: str, **kwargs) -> FakeShop:
        shop = FakeShop(**kwargs)
        self.shops[domain] = shop
        return shop

    def __call__(self, tenant) -> FakeProviderClient:
        self.created.append(tenant.domain)
        shop = self.shops.setdefault(tenant.domain, FakeShop())
        return FakeProviderClient(ShopCredentials(tenant.domain, tenant.access_token), shop)


def sample_shop_data(prefix: str = "") -> dict:
    """One product, one customer, one order"""
    return {
        "products": [ProviderProduct(f"{prefix}p1", "Blue Shirt", Decimal("19.99"))],
        "customers": [ProviderCustomer(f"{prefix}c1", "buyer@example.com", "Ada", "Lovelace", Decimal("120.00"))],
        "orders": [ProviderOrder(
            f"{prefix}o1",
            "2024-03-01T10:00:00Z",
            Decimal("39.98"),
            f"{prefix}c1",
            [{"product": f"{prefix}p1", "quantity": 2}],
        )],
    }


@pytest.fixture
def provider_factory() -> FakeProviderFactory:
    return FakeProviderFactory()


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
def oauth_handler():
    """Replaceable handler for calls to Shopify's OAuth token endpoint"""
    state = {"handler": lambda request: httpx.Response(200, json={
        "access_token": "shpat_installed_token",
        "scope": "read_products,read_orders",
    })}
    return state


@pytest.fixture
def context(settings, database, provider_factory, oauth_handler):
    transport = httpx.MockTransport(lambda request: oauth_handler["handler"](request))
    return build_context(
        settings,
        database=database,
        client_factory=provider_factory,
        oauth=ShopifyOAuthService(settings, transport=transport),
        password_rounds=4,
    )


@pytest.fixture
def app(context):
    return create_app(context=context)


@pytest_asyncio.fixture
async def client(app):
    """HTTP client bound to the app on the test event loop"""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest_asyncio.fixture
async def installed_tenant(context):
    return await context.tenants.upsert_tenant("shop-a.myshopify.com", "shpat_token_a", display_name="Shop A")


@pytest.fixture
def owner_token(context, installed_tenant) -> str:
    return context.jwt_manager.create_access_token(installed_tenant.id, "owner-1")


@pytest.fixture
def auth_headers(owner_token) -> Dict[str, str]:
    return {"Authorization": f"Bearer {owner_token}"}


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """X-Shopify-Hmac-Sha256 value for ``body``"""
    return compute_webhook_hmac(body, secret)
