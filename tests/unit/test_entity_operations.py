"""
Unit tests for EntityOperations
"""
import asyncio
from decimal import Decimal

import pytest

from shopsync.utils.exceptions import ValidationError


@pytest.fixture
async def tenant(tenants):
    return await tenants.upsert_tenant("a.myshopify.com", "T1")


@pytest.fixture
async def other_tenant(tenants):
    return await tenants.upsert_tenant("b.myshopify.com", "T2")


class TestProducts:

    async def test_upsert_replaces_title_and_price(self, entities, tenant):
        await entities.upsert_product(tenant.id, "p1", "Old title", "10.00")
        product = await entities.upsert_product(tenant.id, "p1", "New title", "12.50")

        assert product.title == "New title"
        assert product.price == Decimal("12.50")
        assert (await entities.entity_counts(tenant.id))["products"] == 1

    async def test_same_external_id_in_two_tenants(self, entities, tenant, other_tenant):
        await entities.upsert_product(tenant.id, "p1", "A", 1)
        await entities.upsert_product(other_tenant.id, "p1", "B", 2)

        assert (await entities.entity_counts(tenant.id))["products"] == 1
        assert (await entities.entity_counts(other_tenant.id))["products"] == 1

    async def test_non_numeric_price_rejected(self, entities, tenant):
        with pytest.raises(ValidationError):
            await entities.upsert_product(tenant.id, "p1", "A", "free")


class TestCustomers:

    async def test_total_spent_defaults_to_zero(self, entities, tenant):
        customer = await entities.upsert_customer(tenant.id, "c1", email="a@example.com")

        assert customer.total_spent == Decimal("0")

    async def test_upsert_overwrites_total_spent(self, entities, tenant):
        await entities.increment_customer_spend(tenant.id, "c1", "30")
        customer = await entities.upsert_customer(tenant.id, "c1", total_spent="100.00")

        assert customer.total_spent == Decimal("100.00")

    async def test_increment_seeds_missing_customer(self, entities, tenant):
        customer = await entities.increment_customer_spend(tenant.id, "new", "15.50")

        assert customer.total_spent == Decimal("15.50")
        assert await entities.count_customers(tenant.id, "new") == 1

    async def test_increment_adds_to_existing_value(self, entities, tenant):
        await entities.upsert_customer(tenant.id, "c1", total_spent="20")
        customer = await entities.increment_customer_spend(tenant.id, "c1", "5.25")

        assert customer.total_spent == Decimal("25.25")

    async def test_concurrent_increments_sum_exactly(self, entities, tenant):
        await asyncio.gather(*(
            entities.increment_customer_spend(tenant.id, "c1", 10) for _ in range(5)
        ))

        customer = await entities.get_customer(tenant.id, "c1")
        assert customer.total_spent == Decimal("50")
        assert await entities.count_customers(tenant.id, "c1") == 1

    async def test_negative_increment_rejected(self, entities, tenant):
        with pytest.raises(ValidationError):
            await entities.increment_customer_spend(tenant.id, "c1", "-1")

        assert await entities.count_customers(tenant.id) == 0

    async def test_top_customers_ordered_by_spend(self, entities, tenant):
        await entities.upsert_customer(tenant.id, "low", total_spent="5")
        await entities.upsert_customer(tenant.id, "high", total_spent="500")
        await entities.upsert_customer(tenant.id, "mid", total_spent="50")

        top = await entities.top_customers(tenant.id, limit=2)

        assert [c.external_id for c in top] == ["high", "mid"]


class TestOrders:

    async def test_latest_upsert_wins(self, entities, tenant):
        await entities.upsert_order(tenant.id, "o1", "2024-01-01T00:00:00Z", "10.00", "c1", [])
        await entities.upsert_order(tenant.id, "o1", "2024-01-01T00:00:00Z", "20.00", "c1", [])

        orders = await entities.list_orders(tenant.id)

        assert len(orders) == 1
        assert orders[0].total_price == Decimal("20.00")

    async def test_valid_line_items_stored(self, entities, tenant):
        order = await entities.upsert_order(
            tenant.id, "o1", line_items=[{"product": "p1", "quantity": 2}]
        )

        assert order.line_items == [{"product": "p1", "quantity": 2}]

    async def test_line_items_from_json_text_and_bytes(self, entities, tenant):
        text_order = await entities.upsert_order(
            tenant.id, "o1", line_items='[{"product": "p1", "quantity": 1}]'
        )
        bytes_order = await entities.upsert_order(
            tenant.id, "o2", line_items=b'[{"product": "p2", "quantity": 3}]'
        )

        assert text_order.line_items == [{"product": "p1", "quantity": 1}]
        assert bytes_order.line_items == [{"product": "p2", "quantity": 3}]

    @pytest.mark.parametrize("raw", [
        "not json at all",
        '{"product": "p1"}',
        '[{"product": "p1", "quantity": "many"}]',
        [{"quantity": 1}],
        b"\xff\xfe",
    ])
    async def test_malformed_line_items_stored_as_empty(self, entities, tenant, raw):
        order = await entities.upsert_order(tenant.id, "o1", total_price="5.00", line_items=raw)

        assert order.line_items == []
        assert order.total_price == Decimal("5.00")

    async def test_upsert_order_does_not_touch_customer_spend(self, entities, tenant):
        await entities.upsert_order(tenant.id, "o1", total_price="99.00", customer_external_id="c1")

        assert await entities.get_customer(tenant.id, "c1") is None

    async def test_orders_by_date_groups_per_day(self, entities, tenant):
        await entities.upsert_order(tenant.id, "o1", "2024-03-01T09:00:00Z", "10.00")
        await entities.upsert_order(tenant.id, "o2", "2024-03-01T18:00:00Z", "5.00")
        await entities.upsert_order(tenant.id, "o3", "2024-03-02T12:00:00Z", "7.50")

        rows = await entities.orders_by_date(tenant.id)

        assert [row["date"] for row in rows] == ["2024-03-01", "2024-03-02"]
        assert rows[0]["orders"] == 2
        assert Decimal(rows[0]["revenue"]) == Decimal("15.00")

    async def test_invalid_created_at_rejected(self, entities, tenant):
        with pytest.raises(ValidationError):
            await entities.upsert_order(tenant.id, "o1", created_at="yesterday")

    async def test_revenue_total(self, entities, tenant):
        await entities.upsert_order(tenant.id, "o1", total_price="10.00")
        await entities.upsert_order(tenant.id, "o2", total_price="2.50")

        assert await entities.revenue_total(tenant.id) == Decimal("12.50")

    async def test_record_order_created_reports_first_insert_only(self, entities, tenant):
        first = await entities.record_order_created(tenant.id, "o1", total_price="10.00", customer_external_id="c1")
        again = await entities.record_order_created(tenant.id, "o1", total_price="12.00", customer_external_id="c1")

        assert (first, again) == (True, False)
        orders = await entities.list_orders(tenant.id)
        assert orders[0].total_price == Decimal("12.00")
        customer = await entities.get_customer(tenant.id, "c1")
        assert customer.total_spent == Decimal("10.00")

    async def test_concurrent_record_order_created_increments_once(self, entities, tenant):
        created = await asyncio.gather(*(
            entities.record_order_created(tenant.id, "o1", total_price="25.00", customer_external_id="c1")
            for _ in range(5)
        ))

        assert sorted(created) == [False, False, False, False, True]
        customer = await entities.get_customer(tenant.id, "c1")
        assert customer.total_spent == Decimal("25.00")

    async def test_record_order_created_rejects_negative_total(self, entities, tenant):
        with pytest.raises(ValidationError):
            await entities.record_order_created(tenant.id, "o1", total_price="-5", customer_external_id="c1")

        assert await entities.list_orders(tenant.id) == []

    async def test_revenue_total_without_orders_is_zero_cents(self, entities, tenant):
        assert str(await entities.revenue_total(tenant.id)) == "0.00"
