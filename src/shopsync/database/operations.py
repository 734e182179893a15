"""
Entity persistence for products, customers and orders.

All rows are keyed by ``(tenant_id, external_id)``. Writes are single
``INSERT ... ON CONFLICT DO UPDATE`` statements so two concurrent writers
for the same key can never produce a duplicate row, and
``increment_customer_spend`` adds to the stored value inside the database
rather than reading it first. ``record_order_created`` lets the order
insert itself decide whether a spend increment is due.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from shopsync.core.validator import parse_line_items, parse_timestamp, to_decimal, to_money
from shopsync.database.connection import Database
from shopsync.database.models import Customer, Order, Product
from shopsync.database.models.base import utcnow
from shopsync.database.repository import as_uuid
from shopsync.utils.exceptions import RepositoryError, ValidationError
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)

TenantId = Union[str, uuid.UUID]


class EntityOperations:
    """Upserts and reads for tenant-scoped Shopify entities."""

    def __init__(self, db: Database):
        self.db = db

    def _upsert_statement(self, model, values: Dict[str, Any], update_columns: List[str],
                          extra_set: Optional[Callable] = None):
        """
        Build ``INSERT ... ON CONFLICT (tenant_id, external_id) DO UPDATE``.

        Args:
            model: ORM class to write
            values: Full column values for the insert branch
            update_columns: Columns copied from the proposed row on conflict
            extra_set: Builds additional SET expressions from the insert statement
        """
        stmt = self.db.insert(model).values(**values)
        changes = {name: stmt.excluded[name] for name in update_columns}
        changes["updated_at"] = values["updated_at"]
        if extra_set:
            changes.update(extra_set(stmt))

        return stmt.on_conflict_do_update(
            index_elements=[model.tenant_id, model.external_id],
            set_=changes,
        )

    async def _upsert(self, model, values: Dict[str, Any], update_columns: List[str],
                      operation: str, extra_set: Optional[Callable] = None):
        """Run one upsert on ``(tenant_id, external_id)`` and return the stored row."""
        stmt = self._upsert_statement(model, values, update_columns, extra_set)
        return await self._execute_and_load(stmt, model, values["tenant_id"], values["external_id"], operation)

    async def _execute_and_load(self, stmt, model, tenant_uuid: uuid.UUID, external_id: str,
                                operation: str):
        try:
            async with self.db.session() as session:
                await session.execute(stmt)
                result = await session.execute(
                    select(model)
                    .where(model.tenant_id == tenant_uuid, model.external_id == external_id)
                    .execution_options(populate_existing=True)
                )
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise RepositoryError(f"{operation} failed for {external_id}: {e}",
                                  operation=operation, table=model.__tablename__) from e

    async def upsert_product(self, tenant_id: TenantId, external_id: Any,
                             title: Optional[str], price: Any) -> Product:
        """Insert or replace title and price of one product."""
        now = utcnow()
        values = {
            "id": uuid.uuid4(),
            "tenant_id": as_uuid(tenant_id),
            "external_id": str(external_id),
            "title": title,
            "price": to_decimal(price, "price"),
            "created_at": now,
            "updated_at": now,
        }
        return await self._upsert(Product, values, ["title", "price"], "upsert_product")

    async def upsert_customer(self, tenant_id: TenantId, external_id: Any,
                              email: Optional[str] = None,
                              first_name: Optional[str] = None,
                              last_name: Optional[str] = None,
                              total_spent: Any = None) -> Customer:
        """
        Insert or replace one customer.

        ``total_spent`` defaults to 0 and overwrites the stored value. Use
        ``increment_customer_spend`` to accumulate order totals.
        """
        now = utcnow()
        values = {
            "id": uuid.uuid4(),
            "tenant_id": as_uuid(tenant_id),
            "external_id": str(external_id),
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "total_spent": to_decimal(total_spent, "total_spent"),
            "created_at": now,
            "updated_at": now,
        }
        return await self._upsert(
            Customer, values,
            ["email", "first_name", "last_name", "total_spent"],
            "upsert_customer",
        )

    def _spend_statement(self, tenant_id: TenantId, external_id: Any, amount: Any):
        """Build the single-statement spend increment; validates ``amount``."""
        amount = to_decimal(amount, "amount")
        if amount < 0:
            raise ValidationError("Spend increment cannot be negative", field="amount", value=amount)

        now = utcnow()
        values = {
            "id": uuid.uuid4(),
            "tenant_id": as_uuid(tenant_id),
            "external_id": str(external_id),
            "total_spent": amount,
            "created_at": now,
            "updated_at": now,
        }
        return self._upsert_statement(
            Customer, values, [],
            extra_set=lambda stmt: {"total_spent": Customer.total_spent + stmt.excluded.total_spent},
        )

    async def increment_customer_spend(self, tenant_id: TenantId, external_id: Any,
                                       amount: Any) -> Customer:
        """
        Atomically add ``amount`` to a customer's ``total_spent``.

        A missing customer row is created with ``total_spent = amount``.
        N concurrent calls with amounts a1..aN leave ``total_spent``
        increased by exactly their sum.

        Raises:
            ValidationError: If amount is negative or not numeric
            RepositoryError: If the write fails
        """
        stmt = self._spend_statement(tenant_id, external_id, amount)
        customer = await self._execute_and_load(
            stmt, Customer, as_uuid(tenant_id), str(external_id), "increment_customer_spend"
        )

        logger.debug(f"Customer {external_id} spend +{amount} -> {customer.total_spent}")
        return customer

    @staticmethod
    def _order_values(tenant_id: TenantId, external_id: Any, created_at: Any, total_price: Any,
                      customer_external_id: Any, line_items: Any) -> Dict[str, Any]:
        return {
            "id": uuid.uuid4(),
            "tenant_id": as_uuid(tenant_id),
            "external_id": str(external_id),
            "created_at": parse_timestamp(created_at),
            "total_price": to_decimal(total_price, "total_price"),
            "customer_external_id": str(customer_external_id) if customer_external_id is not None else None,
            "line_items": parse_line_items(line_items),
            "updated_at": utcnow(),
        }

    async def upsert_order(self, tenant_id: TenantId, external_id: Any,
                           created_at: Any = None, total_price: Any = None,
                           customer_external_id: Any = None,
                           line_items: Union[str, bytes, list, None] = None) -> Order:
        """
        Insert or replace one order.

        ``line_items`` may be JSON text, JSON bytes or a decoded list. A
        payload that does not validate is stored as ``[]`` and logged; it
        never aborts the upsert.
        """
        values = self._order_values(tenant_id, external_id, created_at, total_price,
                                    customer_external_id, line_items)
        return await self._upsert(
            Order, values,
            ["created_at", "total_price", "customer_external_id", "line_items"],
            "upsert_order",
        )

    async def record_order_created(self, tenant_id: TenantId, external_id: Any,
                                   created_at: Any = None, total_price: Any = None,
                                   customer_external_id: Any = None,
                                   line_items: Union[str, bytes, list, None] = None) -> bool:
        """
        Store a newly created order and add its total to the customer's spend.

        Whether the order is new is decided by the insert itself
        (``ON CONFLICT DO NOTHING RETURNING id``), and the increment runs in
        the same transaction only when a row was inserted. Any number of
        deliveries of the same order, concurrent or not, add the total once.
        A delivery that finds the order already stored refreshes it with
        ``upsert_order``.

        Returns:
            bool: True if this call created the order

        Raises:
            ValidationError: If the total is negative or not numeric
            RepositoryError: If a write fails
        """
        values = self._order_values(tenant_id, external_id, created_at, total_price,
                                    customer_external_id, line_items)
        customer_id = values["customer_external_id"]
        spend_stmt = self._spend_statement(tenant_id, customer_id, values["total_price"]) if customer_id else None

        insert_stmt = (
            self.db.insert(Order)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[Order.tenant_id, Order.external_id])
            .returning(Order.id)
        )

        try:
            async with self.db.session() as session:
                created = (await session.execute(insert_stmt)).first() is not None
                if created and spend_stmt is not None:
                    await session.execute(spend_stmt)
        except SQLAlchemyError as e:
            raise RepositoryError(f"record_order_created failed for {external_id}: {e}",
                                  operation="record_order_created", table="orders") from e

        if created:
            logger.debug(f"Order {external_id} created, customer {customer_id} spend +{values['total_price']}")
            return True

        logger.info(f"Order {external_id} already stored, refreshing instead of counting again")
        await self.upsert_order(tenant_id, external_id, created_at, total_price,
                                customer_external_id, line_items)
        return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _scalar(self, stmt, operation: str, table: str):
        try:
            async with self.db.session() as session:
                return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise RepositoryError(f"{operation} failed: {e}", operation=operation, table=table) from e

    async def _rows(self, stmt, operation: str, table: str) -> list:
        try:
            async with self.db.session() as session:
                return list((await session.execute(stmt)).all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"{operation} failed: {e}", operation=operation, table=table) from e

    async def get_customer(self, tenant_id: TenantId, external_id: Any) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.tenant_id == as_uuid(tenant_id),
                                      Customer.external_id == str(external_id))
        try:
            async with self.db.session() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"get_customer failed: {e}", operation="get_customer", table="customers") from e

    async def count_customers(self, tenant_id: TenantId, external_id: Optional[Any] = None) -> int:
        """Number of customer rows for a tenant, optionally for one external id."""
        stmt = select(func.count()).select_from(Customer).where(Customer.tenant_id == as_uuid(tenant_id))
        if external_id is not None:
            stmt = stmt.where(Customer.external_id == str(external_id))
        return await self._scalar(stmt, "count_customers", "customers")

    async def list_orders(self, tenant_id: TenantId) -> List[Order]:
        stmt = select(Order).where(Order.tenant_id == as_uuid(tenant_id)).order_by(Order.created_at)
        try:
            async with self.db.session() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"list_orders failed: {e}", operation="list_orders", table="orders") from e

    async def entity_counts(self, tenant_id: TenantId) -> Dict[str, int]:
        """Row counts per entity type for one tenant."""
        tenant_uuid = as_uuid(tenant_id)
        counts = {}
        for name, model in (("products", Product), ("customers", Customer), ("orders", Order)):
            stmt = select(func.count()).select_from(model).where(model.tenant_id == tenant_uuid)
            counts[name] = await self._scalar(stmt, "entity_counts", model.__tablename__)
        return counts

    async def revenue_total(self, tenant_id: TenantId) -> Decimal:
        stmt = select(func.coalesce(func.sum(Order.total_price), 0)).where(
            Order.tenant_id == as_uuid(tenant_id)
        )
        return to_money(await self._scalar(stmt, "revenue_total", "orders"))

    async def orders_by_date(self, tenant_id: TenantId,
                             start: Optional[datetime] = None,
                             end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Order count and revenue per calendar day, oldest first."""
        day = func.date(Order.created_at)
        stmt = (
            select(day.label("day"),
                   func.count(Order.id).label("orders"),
                   func.coalesce(func.sum(Order.total_price), 0).label("revenue"))
            .where(Order.tenant_id == as_uuid(tenant_id), Order.created_at.is_not(None))
            .group_by(day)
            .order_by(day)
        )
        if start is not None:
            stmt = stmt.where(Order.created_at >= start)
        if end is not None:
            stmt = stmt.where(Order.created_at <= end)

        rows = await self._rows(stmt, "orders_by_date", "orders")
        return [
            {"date": str(row.day), "orders": row.orders, "revenue": str(to_money(row.revenue))}
            for row in rows
        ]

    async def top_customers(self, tenant_id: TenantId, limit: int = 5) -> List[Customer]:
        """Customers with the highest lifetime spend."""
        stmt = (
            select(Customer)
            .where(Customer.tenant_id == as_uuid(tenant_id))
            .order_by(Customer.total_spent.desc(), Customer.external_id)
            .limit(limit)
        )
        try:
            async with self.db.session() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"top_customers failed: {e}", operation="top_customers", table="customers") from e
