"""
Sync orchestrator: runs ``TenantSyncService`` for one or all installed
tenants with per-tenant failure isolation.

A tenant failure is recorded in the report and never stops the others.
Runs for the same tenant are serialized with a per-tenant lock; different
tenants run concurrently up to ``max_concurrency``.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Tuple

from shopsync.core.models import SyncReport, SyncState, SyncTrigger, TenantFailure
from shopsync.database.models import Tenant
from shopsync.database.models.base import utcnow
from shopsync.database.repository import TenantRepository
from shopsync.services.sync_service import TenantSyncService
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class _TenantLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SyncOrchestrator:
    """Drives sync runs across tenants."""

    def __init__(self, repository: TenantRepository, sync_service: TenantSyncService,
                 max_concurrency: int = 4):
        self.repository = repository
        self.sync_service = sync_service
        self.max_concurrency = max_concurrency
        self._locks: Dict[str, _TenantLock] = {}
        self._state = SyncState.IDLE
        self._active_runs = 0

    @property
    def state(self) -> SyncState:
        return self._state

    @asynccontextmanager
    async def _tenant_lock(self, tenant: Tenant) -> AsyncIterator[None]:
        """Hold the tenant's lock; the entry is dropped once nobody uses it."""
        key = str(tenant.id)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _TenantLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    async def run_sync(self, tenant_domain: Optional[str] = None,
                       trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncReport:
        """
        Sync one tenant by domain, or every installed tenant.

        Args:
            tenant_domain: Domain to sync; None syncs all installed tenants
            trigger: Where the run came from, for logs and the report

        Returns:
            SyncReport: processed count, per-tenant failures and entity counts

        Raises:
            RepositoryError: If the tenant list itself cannot be read
        """
        report = SyncReport(trigger=trigger, started_at=utcnow())
        self._active_runs += 1
        self._state = SyncState.FETCHING_TENANTS

        try:
            tenants = await self._select_tenants(tenant_domain, report)

            self._state = SyncState.PER_TENANT_LOOP
            logger.info(f"Sync run ({trigger.value}) for {len(tenants)} tenant(s)")

            semaphore = asyncio.Semaphore(self.max_concurrency)
            outcomes = await asyncio.gather(
                *(self._sync_tenant(tenant, semaphore) for tenant in tenants)
            )

            for counts, failure in outcomes:
                if failure is None:
                    report.processed += 1
                    report.add_counts(counts)
                else:
                    report.failed.append(failure)
        finally:
            self._active_runs -= 1
            if self._active_runs == 0:
                self._state = SyncState.IDLE
            report.completed_at = utcnow()

        logger.info(
            f"Sync run finished: {report.processed} processed, {len(report.failed)} failed "
            f"in {report.duration_seconds:.2f}s"
        )
        return report

    async def _select_tenants(self, tenant_domain: Optional[str], report: SyncReport) -> List[Tenant]:
        if tenant_domain is None:
            return await self.repository.list_installed()

        tenant = await self.repository.find_by_domain(tenant_domain)
        if tenant is None or not tenant.is_installed:
            logger.warning(f"Sync requested for {tenant_domain}, which has no installed tenant")
            report.failed.append(TenantFailure(
                tenant_domain=tenant_domain,
                error=f"No installed tenant for {tenant_domain}",
                error_kind="not_found",
            ))
            return []
        return [tenant]

    async def _sync_tenant(self, tenant: Tenant,
                           semaphore: asyncio.Semaphore) -> Tuple[Optional[Dict[str, int]], Optional[TenantFailure]]:
        async with semaphore:
            async with self._tenant_lock(tenant):
                try:
                    return await self.sync_service.sync(tenant), None
                except Exception as e:
                    # Isolation boundary: one tenant's failure is reported, never raised
                    logger.error(f"Sync failed for tenant {tenant.domain}: {e}", exc_info=True)
                    return None, TenantFailure(
                        tenant_domain=tenant.domain,
                        error=getattr(e, "message", None) or str(e),
                        error_kind=getattr(e, "error_kind", "internal"),
                    )
