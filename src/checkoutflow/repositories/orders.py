"""
Order repository and the scoped transaction used to commit a checkout.

``transaction()`` is an async context manager yielding an
``OrderTransaction``. Every write made through the transaction is committed
when the block exits normally and rolled back when it raises, whatever the
backend:

- PostgreSQL: one SQLAlchemy transaction (a SAVEPOINT if the caller's
  connection is already inside one)
- SQLite: BEGIN IMMEDIATE, then COMMIT or ROLLBACK
- In-memory: the session, basket and order stores are locked and
  snapshotted on entry, and restored on exception

Example:
    >>> async with orders.transaction() as tx:
    ...     await tx.insert_order(order)
    ...     lines = await tx.read_basket_lines(order.basket_id)
    ...     await tx.insert_order_items(items)
    ...     await tx.complete_session(order.checkout_session_id, now)
    ...     await tx.clear_basket(order.basket_id)
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from checkoutflow.exceptions import SessionAlreadyFinalizedError
from checkoutflow.models.baskets import BasketLine
from checkoutflow.models.orders import Order, OrderItem, OrderStatus
from checkoutflow.models.session import SessionPatch, SessionStatus
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_BASKET_ID,
    ATTR_DB_SYSTEM,
    ATTR_LINE_COUNT,
    ATTR_ORDER_ID,
    ATTR_SESSION_ID,
)
from checkoutflow.repositories._connection import execute_with_connection, scoped_transaction
from checkoutflow.repositories._values import (
    as_decimal,
    as_optional_uuid,
    as_uuid,
    dump_address,
    format_datetime,
    load_address,
    parse_datetime,
)
from checkoutflow.repositories.baskets import LINE_COLUMNS, InMemoryBasketRepository, row_to_line
from checkoutflow.repositories.sessions import InMemoryCheckoutSessionRepository

if TYPE_CHECKING:
    import aiosqlite


ORDER_COLUMNS = """
    id, checkout_session_id, basket_id, customer_id, guest_email, status,
    shipping_address, billing_address, shipping_method_id, payment_method_id,
    subtotal, tax_amount, shipping_amount, discount_amount, total, currency, created_at
"""

ORDER_ITEM_COLUMNS = "id, order_id, product_id, quantity, unit_price, line_total"


def row_to_order(row: Any) -> Order:
    """Build an Order from a row selected with ORDER_COLUMNS."""
    return Order(
        id=as_uuid(row[0]),
        checkout_session_id=as_uuid(row[1]),
        basket_id=as_uuid(row[2]),
        customer_id=as_optional_uuid(row[3]),
        guest_email=row[4],
        status=OrderStatus(row[5]),
        shipping_address=load_address(row[6]),
        billing_address=load_address(row[7]),
        shipping_method_id=as_optional_uuid(row[8]),
        payment_method_id=as_optional_uuid(row[9]),
        subtotal=as_decimal(row[10]),
        tax_amount=as_decimal(row[11]),
        shipping_amount=as_decimal(row[12]),
        discount_amount=as_decimal(row[13]),
        total=as_decimal(row[14]),
        currency=row[15],
        created_at=parse_datetime(row[16]),
    )


def row_to_order_item(row: Any) -> OrderItem:
    """Build an OrderItem from a row selected with ORDER_ITEM_COLUMNS."""
    return OrderItem(
        id=as_uuid(row[0]),
        order_id=as_uuid(row[1]),
        product_id=as_uuid(row[2]),
        quantity=row[3],
        unit_price=as_decimal(row[4]),
        line_total=as_decimal(row[5]),
    )


@runtime_checkable
class OrderTransaction(Protocol):
    """
    The writes of one order commit, bound to a single transaction.
    """

    async def insert_order(self, order: Order) -> None:
        """Insert the order row."""
        ...

    async def read_basket_lines(self, basket_id: UUID) -> list[BasketLine]:
        """Read the basket's lines joined with current product prices."""
        ...

    async def insert_order_items(self, items: list[OrderItem]) -> None:
        """Insert the order's line items."""
        ...

    async def complete_session(self, session_id: UUID, completed_at: datetime) -> None:
        """
        Mark an ACTIVE session as completed.

        Raises:
            SessionAlreadyFinalizedError: If the session is no longer ACTIVE
        """
        ...

    async def clear_basket(self, basket_id: UUID) -> int:
        """Delete every line of the basket. The basket itself is kept."""
        ...


@runtime_checkable
class OrderRepository(Protocol):
    """
    Protocol for order stores.
    """

    def transaction(self) -> Any:
        """
        Open a scoped transaction for an order commit.

        Returns:
            Async context manager yielding an OrderTransaction
        """
        ...

    async def get_order(self, order_id: UUID) -> Order | None:
        """Get an order by ID, or None."""
        ...

    async def get_order_for_session(self, session_id: UUID) -> Order | None:
        """Get the order created from a checkout session, or None."""
        ...

    async def list_order_items(self, order_id: UUID) -> list[OrderItem]:
        """List the items of an order."""
        ...


class PostgreSQLOrderTransaction:
    """OrderTransaction bound to one PostgreSQL connection in a transaction."""

    def __init__(self, conn: AsyncConnection, tracer: Tracer) -> None:
        self._conn = conn
        self._tracer = tracer

    async def insert_order(self, order: Order) -> None:
        with self._tracer.span(
            "checkoutflow.order.insert",
            {ATTR_ORDER_ID: str(order.id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            await self._conn.execute(
                text("""
                    INSERT INTO orders
                        (id, checkout_session_id, basket_id, customer_id, guest_email, status,
                         shipping_address, billing_address, shipping_method_id,
                         payment_method_id, subtotal, tax_amount, shipping_amount,
                         discount_amount, total, currency, created_at)
                    VALUES (:id, :checkout_session_id, :basket_id, :customer_id, :guest_email,
                            :status, CAST(:shipping_address AS JSONB),
                            CAST(:billing_address AS JSONB), :shipping_method_id,
                            :payment_method_id, :subtotal, :tax_amount, :shipping_amount,
                            :discount_amount, :total, :currency, :created_at)
                """),
                {
                    "id": order.id,
                    "checkout_session_id": order.checkout_session_id,
                    "basket_id": order.basket_id,
                    "customer_id": order.customer_id,
                    "guest_email": order.guest_email,
                    "status": order.status.value,
                    "shipping_address": dump_address(order.shipping_address),
                    "billing_address": dump_address(order.billing_address),
                    "shipping_method_id": order.shipping_method_id,
                    "payment_method_id": order.payment_method_id,
                    "subtotal": order.subtotal,
                    "tax_amount": order.tax_amount,
                    "shipping_amount": order.shipping_amount,
                    "discount_amount": order.discount_amount,
                    "total": order.total,
                    "currency": order.currency,
                    "created_at": order.created_at,
                },
            )

    async def read_basket_lines(self, basket_id: UUID) -> list[BasketLine]:
        with self._tracer.span(
            "checkoutflow.order.read_basket_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            result = await self._conn.execute(
                text(f"""
                    SELECT {LINE_COLUMNS}
                    FROM basket_items bi
                    JOIN products p ON p.id = bi.product_id
                    WHERE bi.basket_id = :basket_id
                    ORDER BY bi.created_at, bi.id
                """),
                {"basket_id": basket_id},
            )
            return [row_to_line(row) for row in result.fetchall()]

    async def insert_order_items(self, items: list[OrderItem]) -> None:
        with self._tracer.span(
            "checkoutflow.order.insert_items",
            {ATTR_LINE_COUNT: len(items), ATTR_DB_SYSTEM: "postgresql"},
        ):
            if not items:
                return
            await self._conn.execute(
                text("""
                    INSERT INTO order_items
                        (id, order_id, product_id, quantity, unit_price, line_total)
                    VALUES (:id, :order_id, :product_id, :quantity, :unit_price, :line_total)
                """),
                [
                    {
                        "id": item.id,
                        "order_id": item.order_id,
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                        "unit_price": item.unit_price,
                        "line_total": item.line_total,
                    }
                    for item in items
                ],
            )

    async def complete_session(self, session_id: UUID, completed_at: datetime) -> None:
        with self._tracer.span(
            "checkoutflow.order.complete_session",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            result = await self._conn.execute(
                text("""
                    UPDATE checkout_sessions
                    SET status = 'completed',
                        completed_at = :completed_at,
                        updated_at = :completed_at
                    WHERE id = :id
                      AND status = 'active'
                    RETURNING id
                """),
                {"id": session_id, "completed_at": completed_at},
            )
            if result.fetchone() is None:
                raise SessionAlreadyFinalizedError(session_id)

    async def clear_basket(self, basket_id: UUID) -> int:
        with self._tracer.span(
            "checkoutflow.order.clear_basket",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            result = await self._conn.execute(
                text("DELETE FROM basket_items WHERE basket_id = :basket_id RETURNING id"),
                {"basket_id": basket_id},
            )
            return len(result.fetchall())


class PostgreSQLOrderRepository:
    """
    PostgreSQL implementation of the order store.

    Stores orders in `orders` and `order_items`.

    Example:
        >>> repo = PostgreSQLOrderRepository(engine)
        >>> async with repo.transaction() as tx:
        ...     await tx.insert_order(order)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the order repository.

        Args:
            conn: Database connection or engine
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgreSQLOrderTransaction]:
        async with scoped_transaction(self.conn) as conn:
            yield PostgreSQLOrderTransaction(conn, self._tracer)

    async def get_order(self, order_id: UUID) -> Order | None:
        with self._tracer.span(
            "checkoutflow.order.get",
            {ATTR_ORDER_ID: str(order_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = :id")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": order_id})
                row = result.fetchone()
            return row_to_order(row) if row else None

    async def get_order_for_session(self, session_id: UUID) -> Order | None:
        with self._tracer.span(
            "checkoutflow.order.get_for_session",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE checkout_session_id = :session_id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"session_id": session_id})
                row = result.fetchone()
            return row_to_order(row) if row else None

    async def list_order_items(self, order_id: UUID) -> list[OrderItem]:
        with self._tracer.span(
            "checkoutflow.order.list_items",
            {ATTR_ORDER_ID: str(order_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT {ORDER_ITEM_COLUMNS}
                FROM order_items
                WHERE order_id = :order_id
                ORDER BY id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"order_id": order_id})
                rows = result.fetchall()
            return [row_to_order_item(row) for row in rows]


class InMemoryOrderTransaction:
    """
    OrderTransaction over the in-memory stores.

    The owning repository holds every store lock while this object is live,
    so it reads and writes the stores' dictionaries directly.
    """

    def __init__(
        self,
        orders: "InMemoryOrderRepository",
        sessions: InMemoryCheckoutSessionRepository,
        baskets: InMemoryBasketRepository,
        tracer: Tracer,
    ) -> None:
        self._orders = orders
        self._sessions = sessions
        self._baskets = baskets
        self._tracer = tracer

    async def insert_order(self, order: Order) -> None:
        with self._tracer.span(
            "checkoutflow.order.insert",
            {ATTR_ORDER_ID: str(order.id), ATTR_DB_SYSTEM: "memory"},
        ):
            if order.id in self._orders._orders:
                raise ValueError(f"Order {order.id} already exists")
            if any(
                o.checkout_session_id == order.checkout_session_id
                for o in self._orders._orders.values()
            ):
                raise ValueError(f"Session {order.checkout_session_id} already has an order")
            self._orders._orders[order.id] = order

    async def read_basket_lines(self, basket_id: UUID) -> list[BasketLine]:
        with self._tracer.span(
            "checkoutflow.order.read_basket_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "memory"},
        ):
            items = list(self._baskets._items.get(basket_id, []))
            return await self._baskets.price_items(items)

    async def insert_order_items(self, items: list[OrderItem]) -> None:
        with self._tracer.span(
            "checkoutflow.order.insert_items",
            {ATTR_LINE_COUNT: len(items), ATTR_DB_SYSTEM: "memory"},
        ):
            for item in items:
                self._orders._items.setdefault(item.order_id, []).append(item)

    async def complete_session(self, session_id: UUID, completed_at: datetime) -> None:
        with self._tracer.span(
            "checkoutflow.order.complete_session",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "memory"},
        ):
            patch = SessionPatch(status=SessionStatus.COMPLETED, completed_at=completed_at)
            updated = self._sessions._apply_patch(
                session_id, patch, completed_at, SessionStatus.ACTIVE
            )
            if updated is None:
                raise SessionAlreadyFinalizedError(session_id)

    async def clear_basket(self, basket_id: UUID) -> int:
        with self._tracer.span(
            "checkoutflow.order.clear_basket",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "memory"},
        ):
            removed = self._baskets._items.pop(basket_id, [])
            return len(removed)


class InMemoryOrderRepository:
    """
    In-memory implementation of the order store for testing.

    Commits touch the session and basket stores too, so the repository is
    built over the in-memory repositories it writes to.

    Example:
        >>> orders = InMemoryOrderRepository(sessions, baskets)
        >>> async with orders.transaction() as tx:
        ...     await tx.insert_order(order)
    """

    def __init__(
        self,
        sessions: InMemoryCheckoutSessionRepository,
        baskets: InMemoryBasketRepository,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._sessions = sessions
        self._baskets = baskets
        self._orders: dict[UUID, Order] = {}
        self._items: dict[UUID, list[OrderItem]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryOrderTransaction]:
        async with AsyncExitStack() as stack:
            # Fixed acquisition order: sessions, baskets, orders
            await stack.enter_async_context(self._sessions._lock)
            await stack.enter_async_context(self._baskets._lock)
            await stack.enter_async_context(self._lock)

            sessions_snapshot = dict(self._sessions._sessions)
            baskets_snapshot = {k: list(v) for k, v in self._baskets._items.items()}
            orders_snapshot = dict(self._orders)
            items_snapshot = {k: list(v) for k, v in self._items.items()}

            try:
                yield InMemoryOrderTransaction(self, self._sessions, self._baskets, self._tracer)
            except BaseException:
                self._sessions._sessions = sessions_snapshot
                self._baskets._items = baskets_snapshot
                self._orders = orders_snapshot
                self._items = items_snapshot
                raise

    async def get_order(self, order_id: UUID) -> Order | None:
        with self._tracer.span(
            "checkoutflow.order.get",
            {ATTR_ORDER_ID: str(order_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                return self._orders.get(order_id)

    async def get_order_for_session(self, session_id: UUID) -> Order | None:
        with self._tracer.span(
            "checkoutflow.order.get_for_session",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                for order in self._orders.values():
                    if order.checkout_session_id == session_id:
                        return order
                return None

    async def list_order_items(self, order_id: UUID) -> list[OrderItem]:
        with self._tracer.span(
            "checkoutflow.order.list_items",
            {ATTR_ORDER_ID: str(order_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                return list(self._items.get(order_id, []))

    async def count_orders(self) -> int:
        """Number of stored orders."""
        async with self._lock:
            return len(self._orders)


class SQLiteOrderTransaction:
    """OrderTransaction bound to an aiosqlite connection inside BEGIN."""

    def __init__(self, connection: "aiosqlite.Connection", tracer: Tracer) -> None:
        self._connection = connection
        self._tracer = tracer

    async def insert_order(self, order: Order) -> None:
        with self._tracer.span(
            "checkoutflow.order.insert",
            {ATTR_ORDER_ID: str(order.id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            await self._connection.execute(
                """
                INSERT INTO orders
                    (id, checkout_session_id, basket_id, customer_id, guest_email, status,
                     shipping_address, billing_address, shipping_method_id,
                     payment_method_id, subtotal, tax_amount, shipping_amount,
                     discount_amount, total, currency, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(order.id),
                    str(order.checkout_session_id),
                    str(order.basket_id),
                    str(order.customer_id) if order.customer_id else None,
                    order.guest_email,
                    order.status.value,
                    dump_address(order.shipping_address),
                    dump_address(order.billing_address),
                    str(order.shipping_method_id) if order.shipping_method_id else None,
                    str(order.payment_method_id) if order.payment_method_id else None,
                    str(order.subtotal),
                    str(order.tax_amount),
                    str(order.shipping_amount),
                    str(order.discount_amount),
                    str(order.total),
                    order.currency,
                    format_datetime(order.created_at),
                ),
            )

    async def read_basket_lines(self, basket_id: UUID) -> list[BasketLine]:
        with self._tracer.span(
            "checkoutflow.order.read_basket_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"""
                SELECT {LINE_COLUMNS}
                FROM basket_items bi
                JOIN products p ON p.id = bi.product_id
                WHERE bi.basket_id = ?
                ORDER BY bi.created_at, bi.rowid
                """,
                (str(basket_id),),
            )
            return [row_to_line(row) for row in await cursor.fetchall()]

    async def insert_order_items(self, items: list[OrderItem]) -> None:
        with self._tracer.span(
            "checkoutflow.order.insert_items",
            {ATTR_LINE_COUNT: len(items), ATTR_DB_SYSTEM: "sqlite"},
        ):
            await self._connection.executemany(
                """
                INSERT INTO order_items
                    (id, order_id, product_id, quantity, unit_price, line_total)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(item.id),
                        str(item.order_id),
                        str(item.product_id),
                        item.quantity,
                        str(item.unit_price),
                        str(item.line_total),
                    )
                    for item in items
                ],
            )

    async def complete_session(self, session_id: UUID, completed_at: datetime) -> None:
        with self._tracer.span(
            "checkoutflow.order.complete_session",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            stamp = format_datetime(completed_at)
            cursor = await self._connection.execute(
                """
                UPDATE checkout_sessions
                SET status = 'completed',
                    completed_at = ?,
                    updated_at = ?
                WHERE id = ?
                  AND status = 'active'
                """,
                (stamp, stamp, str(session_id)),
            )
            if cursor.rowcount == 0:
                raise SessionAlreadyFinalizedError(session_id)

    async def clear_basket(self, basket_id: UUID) -> int:
        with self._tracer.span(
            "checkoutflow.order.clear_basket",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                "DELETE FROM basket_items WHERE basket_id = ?", (str(basket_id),)
            )
            return cursor.rowcount


class SQLiteOrderRepository:
    """
    SQLite implementation of the order store.

    SQLite-specific adaptations:
    - UUIDs, money amounts and timestamps stored as TEXT
    - Addresses stored as JSON TEXT
    - Commits run inside an explicit BEGIN IMMEDIATE so the write lock is
      taken before the first statement

    Example:
        >>> async with aiosqlite.connect("checkout.db") as db:
        ...     repo = SQLiteOrderRepository(db)
        ...     order = await repo.get_order_for_session(session_id)
    """

    def __init__(
        self,
        connection: "aiosqlite.Connection",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._connection = connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLiteOrderTransaction]:
        await self._connection.execute("BEGIN IMMEDIATE")
        try:
            yield SQLiteOrderTransaction(self._connection, self._tracer)
        except BaseException:
            await self._connection.rollback()
            raise
        else:
            await self._connection.commit()

    async def get_order(self, order_id: UUID) -> Order | None:
        with self._tracer.span(
            "checkoutflow.order.get",
            {ATTR_ORDER_ID: str(order_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?", (str(order_id),)
            )
            row = await cursor.fetchone()
            return row_to_order(row) if row else None

    async def get_order_for_session(self, session_id: UUID) -> Order | None:
        with self._tracer.span(
            "checkoutflow.order.get_for_session",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"SELECT {ORDER_COLUMNS} FROM orders WHERE checkout_session_id = ?",
                (str(session_id),),
            )
            row = await cursor.fetchone()
            return row_to_order(row) if row else None

    async def list_order_items(self, order_id: UUID) -> list[OrderItem]:
        with self._tracer.span(
            "checkoutflow.order.list_items",
            {ATTR_ORDER_ID: str(order_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"SELECT {ORDER_ITEM_COLUMNS} FROM order_items WHERE order_id = ? ORDER BY rowid",
                (str(order_id),),
            )
            rows = await cursor.fetchall()
            return [row_to_order_item(row) for row in rows]


__all__ = [
    "InMemoryOrderRepository",
    "InMemoryOrderTransaction",
    "OrderRepository",
    "OrderTransaction",
    "PostgreSQLOrderRepository",
    "PostgreSQLOrderTransaction",
    "SQLiteOrderRepository",
    "SQLiteOrderTransaction",
    "row_to_order",
    "row_to_order_item",
]
