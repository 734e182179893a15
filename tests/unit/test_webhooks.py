"""
Unit tests for webhook signature verification and WebhookProcessor
"""
import asyncio
from decimal import Decimal

import pytest

from shopsync.services.webhooks import WebhookProcessor, compute_webhook_hmac, verify_webhook_hmac
from shopsync.utils.exceptions import SignatureError


SHOP = "a.myshopify.com"
SECRET = "hush"

ORDER_PAYLOAD = {
    "id": 820982911946154508,
    "created_at": "2024-03-01T10:00:00-05:00",
    "total_price": "59.97",
    "customer": {"id": 115310627314723954, "email": "john@example.com"},
    "line_items": [
        {"product_id": 632910392, "title": "IPod Nano", "quantity": 3},
    ],
}


class TestVerifyWebhookHmac:

    def test_valid_signature(self):
        body = b'{"id": 1}'

        verify_webhook_hmac(body, compute_webhook_hmac(body, SECRET), SECRET)

    def test_tampered_body_rejected(self):
        signature = compute_webhook_hmac(b'{"id": 1}', SECRET)

        with pytest.raises(SignatureError):
            verify_webhook_hmac(b'{"id": 2}', signature, SECRET)

    @pytest.mark.parametrize("header,secret", [(None, SECRET), ("", SECRET), ("abc", None), ("abc", "")])
    def test_missing_header_or_secret_rejected(self, header, secret):
        with pytest.raises(SignatureError):
            verify_webhook_hmac(b"{}", header, secret)


@pytest.fixture
def processor(tenants, session_storage, entities):
    return WebhookProcessor(tenants, session_storage, entities)


@pytest.fixture
async def tenant(tenants):
    return await tenants.upsert_tenant(SHOP, "T1")


class TestWebhookProcessor:

    async def test_order_created_upserts_and_increments(self, processor, entities, tenant):
        result = await processor.process("orders/create", SHOP, ORDER_PAYLOAD)

        assert result.success
        orders = await entities.list_orders(tenant.id)
        assert len(orders) == 1
        assert orders[0].line_items == [{"product": "632910392", "quantity": 3}]
        customer = await entities.get_customer(tenant.id, "115310627314723954")
        assert customer.total_spent == Decimal("59.97")

    async def test_redelivered_order_created_counts_once(self, processor, entities, tenant):
        await processor.process("orders/create", SHOP, ORDER_PAYLOAD)
        await processor.process("orders/create", SHOP, ORDER_PAYLOAD)

        customer = await entities.get_customer(tenant.id, "115310627314723954")
        assert customer.total_spent == Decimal("59.97")

    async def test_concurrent_redeliveries_count_once(self, processor, entities, tenant):
        results = await asyncio.gather(*(
            processor.process("orders/create", SHOP, ORDER_PAYLOAD) for _ in range(3)
        ))

        assert all(result.success for result in results)
        assert len(await entities.list_orders(tenant.id)) == 1
        customer = await entities.get_customer(tenant.id, "115310627314723954")
        assert customer.total_spent == Decimal("59.97")

    async def test_order_updated_does_not_increment(self, processor, entities, tenant):
        result = await processor.process("orders/updated", SHOP, ORDER_PAYLOAD)

        assert result.success
        assert len(await entities.list_orders(tenant.id)) == 1
        assert await entities.get_customer(tenant.id, "115310627314723954") is None

    async def test_order_without_customer(self, processor, entities, tenant):
        payload = dict(ORDER_PAYLOAD, customer=None)

        result = await processor.process("orders/create", SHOP, payload)

        assert result.success
        assert await entities.count_customers(tenant.id) == 0

    async def test_product_and_customer_topics(self, processor, entities, tenant):
        await processor.process("products/create", SHOP, {
            "id": 1, "title": "Shirt", "variants": [{"price": "19.99"}],
        })
        await processor.process("products/update", SHOP, {
            "id": 1, "title": "Shirt v2", "variants": [{"price": "17.99"}],
        })
        await processor.process("customers/create", SHOP, {
            "id": 7, "email": "c@example.com", "first_name": "C", "last_name": "D", "total_spent": "3.00",
        })

        counts = await entities.entity_counts(tenant.id)
        assert counts["products"] == 1
        assert counts["customers"] == 1
        customer = await entities.get_customer(tenant.id, "7")
        assert customer.email == "c@example.com"

    async def test_app_uninstalled_marks_tenant(self, processor, tenants, tenant):
        result = await processor.process("app/uninstalled", SHOP, {"id": 1})

        assert result.success
        stored = await tenants.find_by_domain(SHOP)
        assert stored.uninstalled is True
        assert stored.access_token is None

    async def test_unknown_topic_ignored(self, processor, tenant):
        result = await processor.process("carts/update", SHOP, {"id": 1})

        assert result.success
        assert result.message == "ignored"

    async def test_unknown_tenant_reports_not_found(self, processor):
        result = await processor.process("orders/create", "ghost.myshopify.com", ORDER_PAYLOAD)

        assert not result.success
        assert result.error_kind == "not_found"

    async def test_missing_shop_header(self, processor):
        result = await processor.process("orders/create", None, ORDER_PAYLOAD)

        assert result.error_kind == "malformed_session"

    async def test_payload_without_id_is_reported(self, processor, tenant):
        result = await processor.process("products/create", SHOP, {"title": "No id"})

        assert not result.success
        assert result.error_kind == "validation"
