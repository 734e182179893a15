"""
Unit tests for TenantSyncService, SyncOrchestrator and SyncScheduler
"""
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from shopsync.core.models import SyncState, SyncTrigger
from shopsync.database.repository import TenantRepository
from shopsync.services.scheduler import SYNC_JOB_ID, SyncScheduler
from shopsync.services.sync_orchestrator import SyncOrchestrator
from shopsync.services.sync_service import TenantSyncService
from shopsync.utils.exceptions import ProviderApiError, RepositoryError

from conftest import sample_shop_data


@pytest.fixture
def orchestrator(tenants, entities, provider_factory):
    return SyncOrchestrator(tenants, TenantSyncService(entities, provider_factory), max_concurrency=2)


class TestTenantSyncService:

    async def test_sync_writes_all_entity_types(self, tenants, entities, provider_factory):
        tenant = await tenants.upsert_tenant("a.myshopify.com", "T1")
        provider_factory.add_shop("a.myshopify.com", **sample_shop_data())

        counts = await TenantSyncService(entities, provider_factory).sync(tenant)

        assert counts == {"products": 1, "customers": 1, "orders": 1}
        orders = await entities.list_orders(tenant.id)
        assert orders[0].line_items == [{"product": "p1", "quantity": 2}]

    async def test_resync_does_not_double_count_spend(self, tenants, entities, provider_factory):
        tenant = await tenants.upsert_tenant("a.myshopify.com", "T1")
        provider_factory.add_shop("a.myshopify.com", **sample_shop_data())
        service = TenantSyncService(entities, provider_factory)

        await service.sync(tenant)
        await service.sync(tenant)

        customer = await entities.get_customer(tenant.id, "c1")
        assert customer.total_spent == Decimal("120.00")
        assert (await entities.entity_counts(tenant.id)) == {"products": 1, "customers": 1, "orders": 1}


class TestSyncOrchestrator:

    async def test_failing_tenant_is_isolated(self, orchestrator, tenants, entities, provider_factory):
        a = await tenants.upsert_tenant("a.myshopify.com", "TA")
        await tenants.upsert_tenant("b.myshopify.com", "TB")
        c = await tenants.upsert_tenant("c.myshopify.com", "TC")
        provider_factory.add_shop("a.myshopify.com", **sample_shop_data("a"))
        provider_factory.add_shop("b.myshopify.com", error=ProviderApiError("Shopify server error: 503", status_code=503))
        provider_factory.add_shop("c.myshopify.com", **sample_shop_data("c"))

        report = await orchestrator.run_sync()

        assert report.processed == 2
        assert len(report.failed) == 1
        failure = report.failed[0]
        assert failure.tenant_domain == "b.myshopify.com"
        assert failure.error_kind == "provider_api"
        assert report.counts == {"products": 2, "customers": 2, "orders": 2}
        assert (await entities.entity_counts(a.id))["orders"] == 1
        assert (await entities.entity_counts(c.id))["orders"] == 1

    async def test_unexpected_error_is_recorded_as_internal(self, orchestrator, tenants, provider_factory):
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        provider_factory.add_shop("a.myshopify.com", error=RuntimeError("boom"))

        report = await orchestrator.run_sync()

        assert report.processed == 0
        assert report.failed[0].error_kind == "internal"
        assert report.failed[0].error == "boom"

    async def test_single_tenant_sync(self, orchestrator, tenants, provider_factory):
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        await tenants.upsert_tenant("b.myshopify.com", "TB")
        provider_factory.add_shop("a.myshopify.com", **sample_shop_data())

        report = await orchestrator.run_sync("a.myshopify.com")

        assert report.processed == 1
        assert provider_factory.created == ["a.myshopify.com"]

    async def test_unknown_domain_reports_not_found(self, orchestrator):
        report = await orchestrator.run_sync("ghost.myshopify.com")

        assert report.processed == 0
        assert [f.error_kind for f in report.failed] == ["not_found"]
        assert report.failed[0].tenant_domain == "ghost.myshopify.com"

    async def test_uninstalled_domain_reports_not_found(self, orchestrator, tenants, provider_factory):
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        await tenants.mark_uninstalled("a.myshopify.com")

        report = await orchestrator.run_sync("a.myshopify.com")

        assert report.processed == 0
        assert report.failed[0].error_kind == "not_found"
        assert provider_factory.created == []

    async def test_no_tenants_is_empty_success(self, orchestrator):
        report = await orchestrator.run_sync()

        assert report.processed == 0
        assert report.success
        assert orchestrator.state == SyncState.IDLE

    async def test_state_transitions(self, orchestrator, tenants, provider_factory):
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        shop = provider_factory.add_shop("a.myshopify.com")
        seen = []

        async def record_state():
            seen.append(orchestrator.state)

        shop.on_fetch = record_state

        assert orchestrator.state == SyncState.IDLE
        await orchestrator.run_sync()

        assert set(seen) == {SyncState.PER_TENANT_LOOP}
        assert orchestrator.state == SyncState.IDLE

    async def test_runs_for_same_tenant_are_serialized(self, orchestrator, tenants, provider_factory):
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        shop = provider_factory.add_shop("a.myshopify.com")
        active = {"now": 0, "max": 0}

        async def slow_fetch():
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            await asyncio.sleep(0.01)
            active["now"] -= 1

        shop.on_fetch = slow_fetch

        reports = await asyncio.gather(
            orchestrator.run_sync("a.myshopify.com"),
            orchestrator.run_sync("a.myshopify.com"),
        )

        assert [r.processed for r in reports] == [1, 1]
        assert active["max"] == 1
        assert orchestrator._locks == {}

    async def test_tenant_locks_released_after_runs(self, orchestrator, tenants, provider_factory):
        for domain in ("a.myshopify.com", "b.myshopify.com", "c.myshopify.com"):
            await tenants.upsert_tenant(domain, "T")

        await orchestrator.run_sync()
        provider_factory.add_shop("b.myshopify.com", error=RuntimeError("boom"))
        await orchestrator.run_sync()

        assert orchestrator._locks == {}

    async def test_tenant_list_failure_propagates(self, entities, provider_factory):
        repository = MagicMock(spec=TenantRepository)
        repository.list_installed = AsyncMock(side_effect=RepositoryError("db down", operation="list_installed"))
        orchestrator = SyncOrchestrator(repository, TenantSyncService(entities, provider_factory))

        with pytest.raises(RepositoryError):
            await orchestrator.run_sync()

        assert orchestrator.state == SyncState.IDLE

    async def test_report_to_dict(self, orchestrator):
        report = await orchestrator.run_sync("ghost.myshopify.com")

        data = report.to_dict()

        assert data["processed"] == 0
        assert data["trigger"] == "manual"
        assert data["failed"][0]["error_kind"] == "not_found"


class TestSyncScheduler:

    async def test_scheduled_run_records_report(self, orchestrator, tenants, provider_factory):
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        provider_factory.add_shop("a.myshopify.com", **sample_shop_data())
        scheduler = SyncScheduler(orchestrator, interval_minutes=15)

        report = await scheduler.run_scheduled_sync()

        assert report.trigger == SyncTrigger.SCHEDULED
        assert scheduler.last_report is report
        assert report.processed == 1

    async def test_start_registers_interval_job(self, orchestrator):
        scheduler = SyncScheduler(orchestrator, interval_minutes=15)

        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(SYNC_JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 15 * 60
            assert scheduler.running
        finally:
            scheduler.shutdown()
