"""
Read-only analytics for the owner dashboard.
"""

from typing import Any, Dict, List

from shopsync.database.operations import EntityOperations, TenantId


class AnalyticsService:
    """Aggregates stored entities for one tenant."""

    def __init__(self, entities: EntityOperations):
        self.entities = entities

    async def summary(self, tenant_id: TenantId) -> Dict[str, Any]:
        counts = await self.entities.entity_counts(tenant_id)
        revenue = await self.entities.revenue_total(tenant_id)
        return {
            "total_products": counts["products"],
            "total_customers": counts["customers"],
            "total_orders": counts["orders"],
            "total_revenue": str(revenue),
        }

    async def orders_by_date(self, tenant_id: TenantId) -> List[Dict[str, Any]]:
        return await self.entities.orders_by_date(tenant_id)

    async def top_customers(self, tenant_id: TenantId, limit: int = 5) -> List[Dict[str, Any]]:
        customers = await self.entities.top_customers(tenant_id, limit)
        return [customer.to_dict() for customer in customers]
