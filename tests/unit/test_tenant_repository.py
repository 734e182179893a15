"""
Unit tests for TenantRepository and OwnerRepository
"""
import asyncio
import uuid

import pytest

from shopsync.database.repository import as_uuid
from shopsync.utils.exceptions import RepositoryError


DOMAIN = "a.myshop.com"


class TestUpsertTenant:
    """Install and reinstall behaviour"""

    async def test_creates_installed_tenant(self, tenants):
        tenant = await tenants.upsert_tenant(DOMAIN, "T1", display_name="Shop A")

        assert tenant.domain == DOMAIN
        assert tenant.access_token == "T1"
        assert tenant.uninstalled is False
        assert tenant.display_name == "Shop A"
        assert tenant.is_installed

    async def test_same_domain_twice_keeps_one_row(self, tenants):
        first = await tenants.upsert_tenant(DOMAIN, "T1")
        second = await tenants.upsert_tenant(DOMAIN, "T2")

        assert first.id == second.id
        assert second.access_token == "T2"

        installed = await tenants.list_installed()
        assert [t.domain for t in installed] == [DOMAIN]

    async def test_concurrent_installs_keep_one_row(self, tenants):
        results = await asyncio.gather(*(
            tenants.upsert_tenant(DOMAIN, f"T{i}") for i in range(5)
        ))

        assert len({tenant.id for tenant in results}) == 1
        installed = await tenants.list_installed()
        assert len(installed) == 1
        assert installed[0].is_installed
        assert installed[0].access_token in {f"T{i}" for i in range(5)}

    async def test_display_name_kept_when_not_given(self, tenants):
        await tenants.upsert_tenant(DOMAIN, "T1", display_name="Shop A")
        tenant = await tenants.upsert_tenant(DOMAIN, "T2")

        assert tenant.display_name == "Shop A"

    async def test_reinstall_clears_uninstalled_flag(self, tenants):
        await tenants.upsert_tenant(DOMAIN, "T1")
        await tenants.mark_uninstalled(DOMAIN)

        tenant = await tenants.upsert_tenant(DOMAIN, "T2")

        assert tenant.access_token == "T2"
        assert tenant.uninstalled is False

    async def test_install_uninstall_reinstall_sequence(self, tenants):
        await tenants.upsert_tenant(DOMAIN, "T1")
        await tenants.mark_uninstalled(DOMAIN)

        uninstalled = await tenants.find_by_domain(DOMAIN)
        assert uninstalled.access_token is None
        assert uninstalled.uninstalled is True
        assert await tenants.list_installed() == []

        await tenants.upsert_tenant(DOMAIN, "T2")

        tenant = await tenants.find_by_domain(DOMAIN)
        assert tenant.access_token == "T2"
        assert tenant.uninstalled is False
        assert [t.domain for t in await tenants.list_installed()] == [DOMAIN]


class TestMarkUninstalled:
    """Uninstall behaviour"""

    async def test_unknown_domain_is_ignored(self, tenants):
        updated = await tenants.mark_uninstalled("ghost.myshopify.com")

        assert updated is False
        assert await tenants.find_by_domain("ghost.myshopify.com") is None

    async def test_known_domain_returns_true(self, tenants):
        await tenants.upsert_tenant(DOMAIN, "T1")

        assert await tenants.mark_uninstalled(DOMAIN) is True


class TestQueries:
    """Lookups and listing"""

    async def test_list_installed_excludes_tokenless_and_uninstalled(self, tenants):
        await tenants.upsert_tenant("b.myshopify.com", "TB")
        await tenants.upsert_tenant("a.myshopify.com", "TA")
        await tenants.upsert_tenant("gone.myshopify.com", "TG")
        await tenants.mark_uninstalled("gone.myshopify.com")
        await tenants.register_tenant("pending.myshopify.com")

        installed = await tenants.list_installed()

        assert [t.domain for t in installed] == ["a.myshopify.com", "b.myshopify.com"]

    async def test_register_tenant_does_not_touch_token(self, tenants):
        await tenants.upsert_tenant(DOMAIN, "T1")

        tenant = await tenants.register_tenant(DOMAIN, display_name="Other")

        assert tenant.access_token == "T1"
        assert tenant.is_installed

    async def test_get_by_id(self, tenants):
        created = await tenants.upsert_tenant(DOMAIN, "T1")

        assert (await tenants.get_by_id(str(created.id))).domain == DOMAIN
        assert await tenants.get_by_id(uuid.uuid4()) is None

    async def test_find_by_domain_is_exact(self, tenants):
        await tenants.upsert_tenant(DOMAIN, "T1")

        assert await tenants.find_by_domain("other.myshop.com") is None

    async def test_to_dict_never_includes_token(self, tenants):
        tenant = await tenants.upsert_tenant(DOMAIN, "secret-token")

        assert "access_token" not in tenant.to_dict()
        assert "secret-token" not in repr(tenant)

    def test_invalid_id_raises_repository_error(self):
        with pytest.raises(RepositoryError):
            as_uuid("not-a-uuid")


class TestRepositoryErrors:
    """Database failures surface as RepositoryError"""

    async def test_missing_tables_raise_repository_error(self, tenants, database):
        await database.drop_models()

        with pytest.raises(RepositoryError) as exc_info:
            await tenants.upsert_tenant(DOMAIN, "T1")

        assert exc_info.value.error_kind == "repository"
        assert exc_info.value.operation == "upsert_tenant"


class TestOwnerRepository:
    """Owner accounts"""

    async def test_create_and_find_owner(self, tenants, owners):
        tenant = await tenants.register_tenant(DOMAIN)
        owner = await owners.create_owner("Owner@Example.com", "hash", tenant_id=tenant.id)

        found = await owners.find_by_email("owner@example.com")

        assert found.id == owner.id
        assert found.tenant_id == tenant.id

    async def test_duplicate_email_rejected(self, owners):
        await owners.create_owner("owner@example.com", "hash")

        with pytest.raises(RepositoryError):
            await owners.create_owner("owner@example.com", "hash")
