"""
Tenant and owner persistence.

Every write is one statement: installs and reinstalls go through
``INSERT ... ON CONFLICT (domain) DO UPDATE``, uninstalls through a single
``UPDATE``. Database failures are re-raised as ``RepositoryError``.
"""

import uuid
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shopsync.database.connection import Database
from shopsync.database.models import Owner, Tenant
from shopsync.database.models.base import utcnow
from shopsync.utils.exceptions import RepositoryError
from shopsync.utils.logger import get_logger, mask_token


logger = get_logger(__name__)


def as_uuid(value: Union[str, uuid.UUID]) -> uuid.UUID:
    """Coerce a tenant or owner id to UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise RepositoryError(f"Invalid id: {value!r}", operation="lookup")


class TenantRepository:
    """Lookup and lifecycle of tenant records keyed by shop domain."""

    def __init__(self, db: Database):
        self.db = db

    async def find_by_domain(self, domain: str) -> Optional[Tenant]:
        """Return the tenant for ``domain`` or None. Uninstalled tenants are returned too."""
        try:
            async with self.db.session() as session:
                result = await session.execute(select(Tenant).where(Tenant.domain == domain))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to look up tenant {domain}: {e}",
                                  operation="find_by_domain", table="tenants") from e

    async def get_by_id(self, tenant_id: Union[str, uuid.UUID]) -> Optional[Tenant]:
        try:
            async with self.db.session() as session:
                return await session.get(Tenant, as_uuid(tenant_id))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load tenant {tenant_id}: {e}",
                                  operation="get_by_id", table="tenants") from e

    async def upsert_tenant(self, domain: str, access_token: Optional[str],
                            display_name: Optional[str] = None,
                            scope: Optional[str] = None) -> Tenant:
        """
        Create or update the tenant for ``domain`` and mark it installed.

        Args:
            domain: Shop domain, the natural key
            access_token: New offline token; replaces any previous one
            display_name: Kept unchanged when None
            scope: Granted scopes; kept unchanged when None

        Returns:
            Tenant: The row as stored after the upsert

        Raises:
            RepositoryError: If the write fails
        """
        now = utcnow()
        stmt = self.db.insert(Tenant).values(
            id=uuid.uuid4(),
            domain=domain,
            display_name=display_name,
            access_token=access_token,
            scope=scope,
            uninstalled=False,
            created_at=now,
            updated_at=now,
        )

        changes = {
            "access_token": stmt.excluded.access_token,
            "uninstalled": False,
            "updated_at": now,
        }
        if display_name is not None:
            changes["display_name"] = stmt.excluded.display_name
        if scope is not None:
            changes["scope"] = stmt.excluded.scope

        stmt = stmt.on_conflict_do_update(index_elements=[Tenant.domain], set_=changes)

        try:
            async with self.db.session() as session:
                await session.execute(stmt)
                result = await session.execute(
                    select(Tenant)
                    .where(Tenant.domain == domain)
                    .execution_options(populate_existing=True)
                )
                tenant = result.scalar_one()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to upsert tenant {domain}: {e}",
                                  operation="upsert_tenant", table="tenants") from e

        logger.info(f"Tenant {domain} installed (token {mask_token(access_token)})")
        return tenant

    async def mark_uninstalled(self, domain: str) -> bool:
        """
        Clear the token and set the uninstalled flag for ``domain``.

        Unknown domains are logged and ignored; no row is created.

        Returns:
            bool: True if a tenant row was updated
        """
        stmt = (
            update(Tenant)
            .where(Tenant.domain == domain)
            .values(access_token=None, uninstalled=True, updated_at=utcnow())
        )

        try:
            async with self.db.session() as session:
                result = await session.execute(stmt)
                updated = result.rowcount or 0
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to uninstall tenant {domain}: {e}",
                                  operation="mark_uninstalled", table="tenants") from e

        if not updated:
            logger.warning(f"Uninstall for unknown tenant {domain} ignored")
            return False

        logger.info(f"Tenant {domain} marked uninstalled")
        return True

    async def list_installed(self) -> List[Tenant]:
        """All tenants with a token and no uninstall flag, ordered by domain."""
        stmt = (
            select(Tenant)
            .where(Tenant.access_token.is_not(None), Tenant.uninstalled.is_(False))
            .order_by(Tenant.domain)
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list installed tenants: {e}",
                                  operation="list_installed", table="tenants") from e

    async def register_tenant(self, domain: str, display_name: Optional[str] = None) -> Tenant:
        """
        Ensure a tenant row exists for ``domain`` without touching its token.

        Used by owner registration before the shop has installed the app.
        """
        now = utcnow()
        stmt = self.db.insert(Tenant).values(
            id=uuid.uuid4(),
            domain=domain,
            display_name=display_name,
            uninstalled=False,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=[Tenant.domain])

        try:
            async with self.db.session() as session:
                await session.execute(stmt)
                result = await session.execute(select(Tenant).where(Tenant.domain == domain))
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to register tenant {domain}: {e}",
                                  operation="register_tenant", table="tenants") from e


class OwnerRepository:
    """Dashboard owner accounts."""

    def __init__(self, db: Database):
        self.db = db

    async def find_by_email(self, email: str) -> Optional[Owner]:
        try:
            async with self.db.session() as session:
                result = await session.execute(select(Owner).where(Owner.email == email.lower()))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to look up owner: {e}",
                                  operation="find_by_email", table="owners") from e

    async def create_owner(self, email: str, password_hash: str,
                           tenant_id: Optional[Union[str, uuid.UUID]] = None) -> Owner:
        """
        Create an owner account.

        Raises:
            RepositoryError: If the email is already registered or the write fails
        """
        owner = Owner(
            id=uuid.uuid4(),
            email=email.lower(),
            password_hash=password_hash,
            tenant_id=as_uuid(tenant_id) if tenant_id else None,
        )
        try:
            async with self.db.session() as session:
                session.add(owner)
        except IntegrityError as e:
            raise RepositoryError("Email already registered",
                                  operation="create_owner", table="owners") from e
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to create owner: {e}",
                                  operation="create_owner", table="owners") from e

        logger.info(f"Owner {owner.id} created for tenant {owner.tenant_id}")
        return owner
