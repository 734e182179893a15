"""
Object graph for the service.

``build_context`` wires settings, the database and every service once.
The FastAPI app and the CLI both start from here, and tests pass their
own ``Database`` or provider client factory.
"""

from dataclasses import dataclass
from typing import Optional

from shopsync.auth.jwt_manager import AuthGate, JWTManager
from shopsync.auth.password import PasswordManager
from shopsync.database.connection import Database
from shopsync.database.operations import EntityOperations
from shopsync.database.repository import OwnerRepository, TenantRepository
from shopsync.marketplaces.factory import ClientFactory, provider_client_factory
from shopsync.services.analytics_service import AnalyticsService
from shopsync.services.oauth import ShopifyOAuthService
from shopsync.services.scheduler import SyncScheduler
from shopsync.services.session_storage import SessionStorage
from shopsync.services.sync_orchestrator import SyncOrchestrator
from shopsync.services.sync_service import TenantSyncService
from shopsync.services.webhooks import WebhookProcessor
from shopsync.utils.config import Settings


@dataclass
class AppContext:
    """Everything a request handler or CLI command needs."""

    settings: Settings
    database: Database
    tenants: TenantRepository
    owners: OwnerRepository
    entities: EntityOperations
    session_storage: SessionStorage
    orchestrator: SyncOrchestrator
    scheduler: SyncScheduler
    webhooks: WebhookProcessor
    oauth: ShopifyOAuthService
    analytics: AnalyticsService
    jwt_manager: JWTManager
    auth_gate: AuthGate
    passwords: PasswordManager


def build_context(
    settings: Settings,
    database: Optional[Database] = None,
    client_factory: Optional[ClientFactory] = None,
    oauth: Optional[ShopifyOAuthService] = None,
    password_rounds: int = 12,
) -> AppContext:
    """
    Build the service graph.

    Args:
        settings: Validated settings
        database: Existing database; one is created from ``database_url`` when None
        client_factory: Provider client factory; defaults to the Shopify client
        oauth: OAuth service override
        password_rounds: bcrypt cost factor

    Raises:
        ConfigurationError: If ``Settings.check_jwt_secret`` refuses the JWT secret
    """
    settings.check_jwt_secret()
    database = database or Database(settings.database_url, echo=settings.database_echo)

    tenants = TenantRepository(database)
    entities = EntityOperations(database)
    session_storage = SessionStorage(tenants)

    sync_service = TenantSyncService(entities, client_factory or provider_client_factory(settings))
    orchestrator = SyncOrchestrator(tenants, sync_service, max_concurrency=settings.sync_max_concurrency)

    jwt_manager = JWTManager(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        access_token_expire_minutes=settings.access_token_expire_minutes,
    )

    return AppContext(
        settings=settings,
        database=database,
        tenants=tenants,
        owners=OwnerRepository(database),
        entities=entities,
        session_storage=session_storage,
        orchestrator=orchestrator,
        scheduler=SyncScheduler(orchestrator, interval_minutes=settings.sync_interval_minutes),
        webhooks=WebhookProcessor(tenants, session_storage, entities),
        oauth=oauth or ShopifyOAuthService(settings),
        analytics=AnalyticsService(entities),
        jwt_manager=jwt_manager,
        auth_gate=AuthGate(jwt_manager),
        passwords=PasswordManager(rounds=password_rounds),
    )
