"""
Basket and product readers.

Baskets and products belong to other subsystems. These repositories give
checkout the read access it needs, and enough write access to seed data in
development and tests:

- basket repositories satisfy ``checkoutflow.protocols.BasketReader``
- product repositories satisfy ``checkoutflow.protocols.ProductTaxCategoryReader``

Basket lines are always priced by joining the product's current price.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from checkoutflow.config import utc_now
from checkoutflow.models.baskets import BasketLine, Product
from checkoutflow.money import ZERO
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_BASKET_ID,
    ATTR_DB_SYSTEM,
    ATTR_LINE_COUNT,
    ATTR_PRODUCT_ID,
)
from checkoutflow.repositories._connection import execute_with_connection
from checkoutflow.repositories._values import (
    as_decimal,
    as_optional_uuid,
    as_uuid,
    format_datetime,
)

if TYPE_CHECKING:
    import aiosqlite


LINE_COLUMNS = "bi.id, bi.basket_id, bi.product_id, bi.quantity, p.price"


def row_to_line(row: Any) -> BasketLine:
    """Build a BasketLine from a row selected with LINE_COLUMNS."""
    return BasketLine(
        id=as_uuid(row[0]),
        basket_id=as_uuid(row[1]),
        product_id=as_uuid(row[2]),
        quantity=row[3],
        unit_price=as_decimal(row[4]),
    )


def row_to_product(row: Any) -> Product:
    return Product(
        id=as_uuid(row[0]),
        name=row[1],
        price=as_decimal(row[2]),
        tax_category_id=as_optional_uuid(row[3]),
    )


@runtime_checkable
class ProductRepository(Protocol):
    """
    Protocol for product stores read at checkout.
    """

    async def add_product(self, product: Product) -> Product:
        """Store a product."""
        ...

    async def get_product(self, product_id: UUID) -> Product | None:
        """Get a product by ID, or None."""
        ...

    async def set_price(self, product_id: UUID, price: Decimal) -> Product | None:
        """Change a product's current price. Returns None for unknown products."""
        ...

    async def get_tax_category(self, product_id: UUID) -> UUID | None:
        """Get a product's tax category, or None."""
        ...


@runtime_checkable
class BasketRepository(Protocol):
    """
    Protocol for basket stores read at checkout.
    """

    async def add_item(self, basket_id: UUID, product_id: UUID, quantity: int) -> UUID:
        """
        Add a line to a basket.

        Returns:
            The new basket item id
        """
        ...

    async def remove_item(self, item_id: UUID) -> bool:
        """Remove a basket line. Returns False if it did not exist."""
        ...

    async def list_lines(self, basket_id: UUID) -> list[BasketLine]:
        """List basket lines priced at current product prices."""
        ...

    async def count_lines(self, basket_id: UUID) -> int:
        """Number of lines in the basket."""
        ...

    async def get_subtotal(self, basket_id: UUID) -> Decimal:
        """Sum of unit_price * quantity over every line."""
        ...


class PostgreSQLProductRepository:
    """
    PostgreSQL implementation of the product store (`products` table).
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def add_product(self, product: Product) -> Product:
        with self._tracer.span(
            "checkoutflow.product.add",
            {ATTR_PRODUCT_ID: str(product.id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                INSERT INTO products (id, name, price, tax_category_id, created_at)
                VALUES (:id, :name, :price, :tax_category_id, :created_at)
            """)
            params = {
                "id": product.id,
                "name": product.name,
                "price": product.price,
                "tax_category_id": product.tax_category_id,
                "created_at": utc_now(),
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, params)
            return product

    async def get_product(self, product_id: UUID) -> Product | None:
        with self._tracer.span(
            "checkoutflow.product.get",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                SELECT id, name, price, tax_category_id
                FROM products
                WHERE id = :id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": product_id})
                row = result.fetchone()
            return row_to_product(row) if row else None

    async def set_price(self, product_id: UUID, price: Decimal) -> Product | None:
        with self._tracer.span(
            "checkoutflow.product.set_price",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                UPDATE products
                SET price = :price
                WHERE id = :id
                RETURNING id, name, price, tax_category_id
            """)
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, {"id": product_id, "price": price})
                row = result.fetchone()
            return row_to_product(row) if row else None

    async def get_tax_category(self, product_id: UUID) -> UUID | None:
        with self._tracer.span(
            "checkoutflow.product.get_tax_category",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("SELECT tax_category_id FROM products WHERE id = :id")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": product_id})
                row = result.fetchone()
            return as_optional_uuid(row[0]) if row else None


class PostgreSQLBasketRepository:
    """
    PostgreSQL implementation of the basket reader (`basket_items` joined
    with `products`).
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def add_item(self, basket_id: UUID, product_id: UUID, quantity: int) -> UUID:
        with self._tracer.span(
            "checkoutflow.basket.add_item",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            item_id = uuid4()
            query = text("""
                INSERT INTO basket_items (id, basket_id, product_id, quantity, created_at)
                VALUES (:id, :basket_id, :product_id, :quantity, :created_at)
            """)
            params = {
                "id": item_id,
                "basket_id": basket_id,
                "product_id": product_id,
                "quantity": quantity,
                "created_at": utc_now(),
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, params)
            return item_id

    async def remove_item(self, item_id: UUID) -> bool:
        with self._tracer.span("checkoutflow.basket.remove_item", {ATTR_DB_SYSTEM: "postgresql"}):
            query = text("DELETE FROM basket_items WHERE id = :id RETURNING id")
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, {"id": item_id})
                return result.fetchone() is not None

    async def list_lines(self, basket_id: UUID) -> list[BasketLine]:
        with self._tracer.span(
            "checkoutflow.basket.list_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ) as span:
            query = text(f"""
                SELECT {LINE_COLUMNS}
                FROM basket_items bi
                JOIN products p ON p.id = bi.product_id
                WHERE bi.basket_id = :basket_id
                ORDER BY bi.created_at, bi.id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"basket_id": basket_id})
                rows = result.fetchall()
            lines = [row_to_line(row) for row in rows]
            if span:
                span.set_attribute(ATTR_LINE_COUNT, len(lines))
            return lines

    async def count_lines(self, basket_id: UUID) -> int:
        with self._tracer.span(
            "checkoutflow.basket.count_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                SELECT COUNT(*)
                FROM basket_items bi
                JOIN products p ON p.id = bi.product_id
                WHERE bi.basket_id = :basket_id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"basket_id": basket_id})
                return result.scalar() or 0

    async def get_subtotal(self, basket_id: UUID) -> Decimal:
        with self._tracer.span(
            "checkoutflow.basket.get_subtotal",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                SELECT COALESCE(SUM(p.price * bi.quantity), 0)
                FROM basket_items bi
                JOIN products p ON p.id = bi.product_id
                WHERE bi.basket_id = :basket_id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"basket_id": basket_id})
                return as_decimal(result.scalar())


class InMemoryProductRepository:
    """
    In-memory implementation of the product store for testing.
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._products: dict[UUID, Product] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def add_product(self, product: Product) -> Product:
        with self._tracer.span(
            "checkoutflow.product.add",
            {ATTR_PRODUCT_ID: str(product.id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                self._products[product.id] = product
            return product

    async def get_product(self, product_id: UUID) -> Product | None:
        with self._tracer.span(
            "checkoutflow.product.get",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                return self._products.get(product_id)

    async def set_price(self, product_id: UUID, price: Decimal) -> Product | None:
        with self._tracer.span(
            "checkoutflow.product.set_price",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                product = self._products.get(product_id)
                if product is None:
                    return None
                updated = product.model_copy(update={"price": price})
                self._products[product_id] = updated
                return updated

    async def get_tax_category(self, product_id: UUID) -> UUID | None:
        product = await self.get_product(product_id)
        return product.tax_category_id if product else None


@dataclass(frozen=True)
class StoredBasketItem:
    """A basket line as stored, before pricing."""

    id: UUID
    basket_id: UUID
    product_id: UUID
    quantity: int
    created_at: datetime


class InMemoryBasketRepository:
    """
    In-memory implementation of the basket reader for testing.

    Lines are priced through the given product repository, so a price change
    there is visible on the next read.

    Example:
        >>> products = InMemoryProductRepository()
        >>> baskets = InMemoryBasketRepository(products)
        >>> await baskets.add_item(basket_id, tshirt.id, quantity=2)
    """

    def __init__(
        self,
        products: InMemoryProductRepository,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._products = products
        self._items: dict[UUID, list[StoredBasketItem]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def add_item(self, basket_id: UUID, product_id: UUID, quantity: int) -> UUID:
        with self._tracer.span(
            "checkoutflow.basket.add_item",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "memory"},
        ):
            if quantity <= 0:
                raise ValueError(f"quantity must be positive, got {quantity}")
            item = StoredBasketItem(
                id=uuid4(),
                basket_id=basket_id,
                product_id=product_id,
                quantity=quantity,
                created_at=utc_now(),
            )
            async with self._lock:
                self._items.setdefault(basket_id, []).append(item)
            return item.id

    async def remove_item(self, item_id: UUID) -> bool:
        with self._tracer.span("checkoutflow.basket.remove_item", {ATTR_DB_SYSTEM: "memory"}):
            async with self._lock:
                for basket_id, items in self._items.items():
                    kept = [item for item in items if item.id != item_id]
                    if len(kept) != len(items):
                        self._items[basket_id] = kept
                        return True
            return False

    async def list_lines(self, basket_id: UUID) -> list[BasketLine]:
        with self._tracer.span(
            "checkoutflow.basket.list_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "memory"},
        ) as span:
            async with self._lock:
                items = list(self._items.get(basket_id, []))
            lines = await self.price_items(items)
            if span:
                span.set_attribute(ATTR_LINE_COUNT, len(lines))
            return lines

    async def count_lines(self, basket_id: UUID) -> int:
        return len(await self.list_lines(basket_id))

    async def get_subtotal(self, basket_id: UUID) -> Decimal:
        lines = await self.list_lines(basket_id)
        return sum((line.line_total for line in lines), ZERO)

    async def price_items(self, items: list[StoredBasketItem]) -> list[BasketLine]:
        """Join stored items with current product prices, dropping unknown products."""
        lines = []
        for item in items:
            product = await self._products.get_product(item.product_id)
            if product is None:
                continue
            lines.append(
                BasketLine(
                    id=item.id,
                    basket_id=item.basket_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=product.price,
                )
            )
        return lines

    async def clear(self) -> None:
        """Remove every stored basket line."""
        async with self._lock:
            self._items.clear()


class SQLiteProductRepository:
    """
    SQLite implementation of the product store.

    Prices are stored as TEXT to keep Decimal precision.
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

    async def add_product(self, product: Product) -> Product:
        with self._tracer.span(
            "checkoutflow.product.add",
            {ATTR_PRODUCT_ID: str(product.id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            await self._connection.execute(
                """
                INSERT INTO products (id, name, price, tax_category_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    str(product.id),
                    product.name,
                    str(product.price),
                    str(product.tax_category_id) if product.tax_category_id else None,
                    format_datetime(utc_now()),
                ),
            )
            await self._connection.commit()
            return product

    async def get_product(self, product_id: UUID) -> Product | None:
        with self._tracer.span(
            "checkoutflow.product.get",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                "SELECT id, name, price, tax_category_id FROM products WHERE id = ?",
                (str(product_id),),
            )
            row = await cursor.fetchone()
            return row_to_product(row) if row else None

    async def set_price(self, product_id: UUID, price: Decimal) -> Product | None:
        with self._tracer.span(
            "checkoutflow.product.set_price",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                "UPDATE products SET price = ? WHERE id = ?",
                (str(price), str(product_id)),
            )
            matched = cursor.rowcount
            await self._connection.commit()
            if not matched:
                return None
            return await self.get_product(product_id)

    async def get_tax_category(self, product_id: UUID) -> UUID | None:
        with self._tracer.span(
            "checkoutflow.product.get_tax_category",
            {ATTR_PRODUCT_ID: str(product_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                "SELECT tax_category_id FROM products WHERE id = ?", (str(product_id),)
            )
            row = await cursor.fetchone()
            return as_optional_uuid(row[0]) if row else None


class SQLiteBasketRepository:
    """
    SQLite implementation of the basket reader.

    Subtotals are summed in Python because prices are stored as TEXT.
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

    async def add_item(self, basket_id: UUID, product_id: UUID, quantity: int) -> UUID:
        with self._tracer.span(
            "checkoutflow.basket.add_item",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            item_id = uuid4()
            await self._connection.execute(
                """
                INSERT INTO basket_items (id, basket_id, product_id, quantity, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    str(item_id),
                    str(basket_id),
                    str(product_id),
                    quantity,
                    format_datetime(utc_now()),
                ),
            )
            await self._connection.commit()
            return item_id

    async def remove_item(self, item_id: UUID) -> bool:
        with self._tracer.span("checkoutflow.basket.remove_item", {ATTR_DB_SYSTEM: "sqlite"}):
            cursor = await self._connection.execute(
                "DELETE FROM basket_items WHERE id = ?", (str(item_id),)
            )
            removed = cursor.rowcount
            await self._connection.commit()
            return removed > 0

    async def list_lines(self, basket_id: UUID) -> list[BasketLine]:
        with self._tracer.span(
            "checkoutflow.basket.list_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "sqlite"},
        ) as span:
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
            rows = await cursor.fetchall()
            lines = [row_to_line(row) for row in rows]
            if span:
                span.set_attribute(ATTR_LINE_COUNT, len(lines))
            return lines

    async def count_lines(self, basket_id: UUID) -> int:
        with self._tracer.span(
            "checkoutflow.basket.count_lines",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                """
                SELECT COUNT(*)
                FROM basket_items bi
                JOIN products p ON p.id = bi.product_id
                WHERE bi.basket_id = ?
                """,
                (str(basket_id),),
            )
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def get_subtotal(self, basket_id: UUID) -> Decimal:
        lines = await self.list_lines(basket_id)
        return sum((line.line_total for line in lines), ZERO)


__all__ = [
    "BasketRepository",
    "InMemoryBasketRepository",
    "InMemoryProductRepository",
    "PostgreSQLBasketRepository",
    "PostgreSQLProductRepository",
    "ProductRepository",
    "SQLiteBasketRepository",
    "SQLiteProductRepository",
    "StoredBasketItem",
    "row_to_line",
]
