"""
Shipping and payment method catalogs.

Both catalogs obey the same rules, so one repository per backend serves
either kind; the kind is chosen by the model class passed at construction.

Catalog invariants:
- Exactly one method of each kind is the default. The first method added
  becomes the default, and promoting a method unsets the previous default
  in the same transaction.
- The last remaining method of a kind cannot be deleted.
- The current default cannot be deleted until another method is promoted.
- Listings return enabled methods, default first, then by name.

Example:
    >>> shipping = InMemoryMethodRepository(ShippingMethod)
    >>> payment = InMemoryMethodRepository(PaymentMethod)
    >>> await shipping.add_method(standard)
    >>> await shipping.set_default(express.id)
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar, runtime_checkable
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from checkoutflow.config import utc_now
from checkoutflow.exceptions import DefaultMethodDeletionError, LastMethodError
from checkoutflow.models.methods import (
    CatalogMethod,
    MethodKind,
    PaymentMethod,
    PaymentMethodType,
    ShippingMethod,
)
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_METHOD_ID,
    ATTR_METHOD_KIND,
)
from checkoutflow.repositories._connection import execute_with_connection
from checkoutflow.repositories._values import as_decimal, as_uuid, format_datetime, parse_datetime

if TYPE_CHECKING:
    import aiosqlite

M = TypeVar("M", bound=CatalogMethod)


def sort_for_listing(methods: list[M]) -> list[M]:
    """Order methods default first, then by name."""
    return sorted(methods, key=lambda m: (not m.is_default, m.name))


@dataclass(frozen=True)
class _CatalogTable:
    """Static SQL and row mapping for one catalog kind."""

    table: str
    columns: str
    pg_insert: str
    sqlite_insert: str
    pg_params: Callable[[Any], dict[str, Any]]
    sqlite_params: Callable[[Any], tuple[Any, ...]]
    from_row: Callable[[Any], CatalogMethod]


def _shipping_from_row(row: Any) -> ShippingMethod:
    return ShippingMethod(
        id=as_uuid(row[0]),
        name=row[1],
        is_default=bool(row[2]),
        is_enabled=bool(row[3]),
        created_at=parse_datetime(row[4]),
        updated_at=parse_datetime(row[5]),
        description=row[6],
        price=as_decimal(row[7]),
        estimated_delivery=row[8],
    )


def _payment_from_row(row: Any) -> PaymentMethod:
    return PaymentMethod(
        id=as_uuid(row[0]),
        name=row[1],
        is_default=bool(row[2]),
        is_enabled=bool(row[3]),
        created_at=parse_datetime(row[4]),
        updated_at=parse_datetime(row[5]),
        type=PaymentMethodType(row[6]),
        processor_id=row[7],
    )


_SHIPPING_TABLE = _CatalogTable(
    table="shipping_methods",
    columns="""
        id, name, is_default, is_enabled, created_at, updated_at,
        description, price, estimated_delivery
    """,
    pg_insert="""
        INSERT INTO shipping_methods
            (id, name, is_default, is_enabled, created_at, updated_at,
             description, price, estimated_delivery)
        VALUES (:id, :name, :is_default, :is_enabled, :created_at, :updated_at,
                :description, :price, :estimated_delivery)
    """,
    sqlite_insert="""
        INSERT INTO shipping_methods
            (id, name, is_default, is_enabled, created_at, updated_at,
             description, price, estimated_delivery)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    """,
    pg_params=lambda m: {
        "id": m.id,
        "name": m.name,
        "is_default": m.is_default,
        "is_enabled": m.is_enabled,
        "created_at": m.created_at,
        "updated_at": m.updated_at,
        "description": m.description,
        "price": m.price,
        "estimated_delivery": m.estimated_delivery,
    },
    sqlite_params=lambda m: (
        str(m.id),
        m.name,
        int(m.is_default),
        int(m.is_enabled),
        format_datetime(m.created_at),
        format_datetime(m.updated_at),
        m.description,
        str(m.price),
        m.estimated_delivery,
    ),
    from_row=_shipping_from_row,
)

_PAYMENT_TABLE = _CatalogTable(
    table="payment_methods",
    columns="""
        id, name, is_default, is_enabled, created_at, updated_at,
        type, processor_id
    """,
    pg_insert="""
        INSERT INTO payment_methods
            (id, name, is_default, is_enabled, created_at, updated_at,
             type, processor_id)
        VALUES (:id, :name, :is_default, :is_enabled, :created_at, :updated_at,
                :type, :processor_id)
    """,
    sqlite_insert="""
        INSERT INTO payment_methods
            (id, name, is_default, is_enabled, created_at, updated_at,
             type, processor_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """,
    pg_params=lambda m: {
        "id": m.id,
        "name": m.name,
        "is_default": m.is_default,
        "is_enabled": m.is_enabled,
        "created_at": m.created_at,
        "updated_at": m.updated_at,
        "type": m.type.value,
        "processor_id": m.processor_id,
    },
    sqlite_params=lambda m: (
        str(m.id),
        m.name,
        int(m.is_default),
        int(m.is_enabled),
        format_datetime(m.created_at),
        format_datetime(m.updated_at),
        m.type.value,
        m.processor_id,
    ),
    from_row=_payment_from_row,
)

_TABLES: dict[MethodKind, _CatalogTable] = {
    MethodKind.SHIPPING: _SHIPPING_TABLE,
    MethodKind.PAYMENT: _PAYMENT_TABLE,
}


@runtime_checkable
class MethodRepository(Protocol[M]):
    """
    Protocol for shipping and payment method catalogs.
    """

    @property
    def kind(self) -> MethodKind:
        """The catalog kind this repository serves."""
        ...

    async def add_method(self, method: M) -> M:
        """
        Add a method to the catalog.

        A method added with ``is_default=True``, or the first method of the
        catalog, becomes the default and any previous default is unset.

        Args:
            method: The method to add

        Returns:
            The stored method
        """
        ...

    async def get_method(self, method_id: UUID) -> M | None:
        """Get a method by ID whether or not it is enabled."""
        ...

    async def get_enabled_method(self, method_id: UUID) -> M | None:
        """
        Get a method by ID for selection at checkout.

        Returns:
            The method, or None if it does not exist or is disabled
        """
        ...

    async def list_methods(self) -> list[M]:
        """List every method, default first, then by name."""
        ...

    async def list_enabled_methods(self) -> list[M]:
        """List enabled methods, default first, then by name."""
        ...

    async def set_default(self, method_id: UUID) -> M | None:
        """
        Promote a method to default, unsetting the previous default atomically.

        Returns:
            The promoted method, or None if it does not exist
        """
        ...

    async def set_enabled(self, method_id: UUID, is_enabled: bool) -> M | None:
        """
        Enable or disable a method.

        Returns:
            The updated method, or None if it does not exist
        """
        ...

    async def delete_method(self, method_id: UUID) -> bool:
        """
        Delete a method.

        Returns:
            True if deleted, False if it did not exist

        Raises:
            LastMethodError: If it is the last method of its kind
            DefaultMethodDeletionError: If it is the current default
        """
        ...


class PostgreSQLMethodRepository(Generic[M]):
    """
    PostgreSQL implementation of a method catalog.

    Stores methods in `shipping_methods` or `payment_methods`, depending on
    the model class.

    Example:
        >>> shipping = PostgreSQLMethodRepository(engine, ShippingMethod)
        >>> methods = await shipping.list_enabled_methods()
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        method_type: type[M],
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the method repository.

        Args:
            conn: Database connection or engine
            method_type: ShippingMethod or PaymentMethod
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn
        self._method_type = method_type
        self._catalog = _TABLES[method_type.kind]

    @property
    def kind(self) -> MethodKind:
        return self._method_type.kind

    def _attrs(self, method_id: UUID | None = None) -> dict[str, Any]:
        attrs: dict[str, Any] = {ATTR_METHOD_KIND: self.kind.value, ATTR_DB_SYSTEM: "postgresql"}
        if method_id is not None:
            attrs[ATTR_METHOD_ID] = str(method_id)
        return attrs

    async def add_method(self, method: M) -> M:
        with self._tracer.span("checkoutflow.method.add", self._attrs(method.id)):
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(
                    text(f"SELECT COUNT(*) FROM {self._catalog.table} WHERE is_default")
                )
                has_default = (result.scalar() or 0) > 0
                if not has_default and not method.is_default:
                    method = method.model_copy(update={"is_default": True})
                if method.is_default:
                    await conn.execute(
                        text(f"""
                            UPDATE {self._catalog.table}
                            SET is_default = FALSE, updated_at = :now
                            WHERE is_default
                        """),
                        {"now": method.updated_at},
                    )
                await conn.execute(text(self._catalog.pg_insert), self._catalog.pg_params(method))
            return method

    async def get_method(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.get", self._attrs(method_id)):
            query = text(f"SELECT {self._catalog.columns} FROM {self._catalog.table} WHERE id = :id")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": method_id})
                row = result.fetchone()
            return self._catalog.from_row(row) if row else None  # type: ignore[return-value]

    async def get_enabled_method(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.get_enabled", self._attrs(method_id)):
            query = text(f"""
                SELECT {self._catalog.columns}
                FROM {self._catalog.table}
                WHERE id = :id AND is_enabled
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": method_id})
                row = result.fetchone()
            return self._catalog.from_row(row) if row else None  # type: ignore[return-value]

    async def list_methods(self) -> list[M]:
        with self._tracer.span("checkoutflow.method.list", self._attrs()):
            query = text(f"""
                SELECT {self._catalog.columns}
                FROM {self._catalog.table}
                ORDER BY is_default DESC, name ASC
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query)
                rows = result.fetchall()
            return [self._catalog.from_row(row) for row in rows]  # type: ignore[misc]

    async def list_enabled_methods(self) -> list[M]:
        with self._tracer.span("checkoutflow.method.list_enabled", self._attrs()):
            query = text(f"""
                SELECT {self._catalog.columns}
                FROM {self._catalog.table}
                WHERE is_enabled
                ORDER BY is_default DESC, name ASC
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query)
                rows = result.fetchall()
            return [self._catalog.from_row(row) for row in rows]  # type: ignore[misc]

    async def set_default(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.set_default", self._attrs(method_id)):
            now = utc_now()
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(
                    text(f"SELECT id FROM {self._catalog.table} WHERE id = :id FOR UPDATE"),
                    {"id": method_id},
                )
                if result.fetchone() is None:
                    return None
                # Unset first: the partial unique index is checked per row
                await conn.execute(
                    text(f"""
                        UPDATE {self._catalog.table}
                        SET is_default = FALSE, updated_at = :now
                        WHERE is_default AND id <> :id
                    """),
                    {"id": method_id, "now": now},
                )
                result = await conn.execute(
                    text(f"""
                        UPDATE {self._catalog.table}
                        SET is_default = TRUE, updated_at = :now
                        WHERE id = :id
                        RETURNING {self._catalog.columns}
                    """),
                    {"id": method_id, "now": now},
                )
                row = result.fetchone()
            return self._catalog.from_row(row) if row else None  # type: ignore[return-value]

    async def set_enabled(self, method_id: UUID, is_enabled: bool) -> M | None:
        with self._tracer.span("checkoutflow.method.set_enabled", self._attrs(method_id)):
            query = text(f"""
                UPDATE {self._catalog.table}
                SET is_enabled = :is_enabled, updated_at = :now
                WHERE id = :id
                RETURNING {self._catalog.columns}
            """)
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(
                    query, {"id": method_id, "is_enabled": is_enabled, "now": utc_now()}
                )
                row = result.fetchone()
            return self._catalog.from_row(row) if row else None  # type: ignore[return-value]

    async def delete_method(self, method_id: UUID) -> bool:
        with self._tracer.span("checkoutflow.method.delete", self._attrs(method_id)):
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(
                    text(f"SELECT id, is_default FROM {self._catalog.table} FOR UPDATE")
                )
                rows = {as_uuid(row[0]): bool(row[1]) for row in result.fetchall()}
                if method_id not in rows:
                    return False
                _check_deletable(method_id, rows, self.kind)
                await conn.execute(
                    text(f"DELETE FROM {self._catalog.table} WHERE id = :id"), {"id": method_id}
                )
            return True


def _check_deletable(method_id: UUID, defaults: dict[UUID, bool], kind: MethodKind) -> None:
    """
    Refuse deletions that would break the catalog invariants.

    Args:
        method_id: Method to delete
        defaults: is_default flag of every method of the kind, keyed by id
        kind: Catalog kind, for error messages
    """
    if len(defaults) <= 1:
        raise LastMethodError(method_id, kind.value)
    if defaults[method_id]:
        raise DefaultMethodDeletionError(method_id, kind.value)


class InMemoryMethodRepository(Generic[M]):
    """
    In-memory implementation of a method catalog for testing.

    Example:
        >>> repo = InMemoryMethodRepository(ShippingMethod)
        >>> await repo.add_method(standard)
        >>> (await repo.list_enabled_methods())[0].is_default
        True
    """

    def __init__(
        self,
        method_type: type[M],
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize an empty in-memory method repository.

        Args:
            method_type: ShippingMethod or PaymentMethod
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._method_type = method_type
        self._methods: dict[UUID, M] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    @property
    def kind(self) -> MethodKind:
        return self._method_type.kind

    def _attrs(self, method_id: UUID | None = None) -> dict[str, Any]:
        attrs: dict[str, Any] = {ATTR_METHOD_KIND: self.kind.value, ATTR_DB_SYSTEM: "memory"}
        if method_id is not None:
            attrs[ATTR_METHOD_ID] = str(method_id)
        return attrs

    async def add_method(self, method: M) -> M:
        with self._tracer.span("checkoutflow.method.add", self._attrs(method.id)):
            async with self._lock:
                has_default = any(m.is_default for m in self._methods.values())
                if not has_default and not method.is_default:
                    method = method.model_copy(update={"is_default": True})
                if method.is_default:
                    self._unset_default(except_id=method.id, now=method.updated_at)
                self._methods[method.id] = method
            return method

    async def get_method(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.get", self._attrs(method_id)):
            async with self._lock:
                return self._methods.get(method_id)

    async def get_enabled_method(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.get_enabled", self._attrs(method_id)):
            async with self._lock:
                method = self._methods.get(method_id)
            if method is None or not method.is_enabled:
                return None
            return method

    async def list_methods(self) -> list[M]:
        with self._tracer.span("checkoutflow.method.list", self._attrs()):
            async with self._lock:
                methods = list(self._methods.values())
            return sort_for_listing(methods)

    async def list_enabled_methods(self) -> list[M]:
        with self._tracer.span("checkoutflow.method.list_enabled", self._attrs()):
            async with self._lock:
                methods = [m for m in self._methods.values() if m.is_enabled]
            return sort_for_listing(methods)

    async def set_default(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.set_default", self._attrs(method_id)):
            now = utc_now()
            async with self._lock:
                method = self._methods.get(method_id)
                if method is None:
                    return None
                self._unset_default(except_id=method_id, now=now)
                promoted = method.model_copy(update={"is_default": True, "updated_at": now})
                self._methods[method_id] = promoted
                return promoted

    async def set_enabled(self, method_id: UUID, is_enabled: bool) -> M | None:
        with self._tracer.span("checkoutflow.method.set_enabled", self._attrs(method_id)):
            async with self._lock:
                method = self._methods.get(method_id)
                if method is None:
                    return None
                updated = method.model_copy(
                    update={"is_enabled": is_enabled, "updated_at": utc_now()}
                )
                self._methods[method_id] = updated
                return updated

    async def delete_method(self, method_id: UUID) -> bool:
        with self._tracer.span("checkoutflow.method.delete", self._attrs(method_id)):
            async with self._lock:
                if method_id not in self._methods:
                    return False
                defaults = {m.id: m.is_default for m in self._methods.values()}
                _check_deletable(method_id, defaults, self.kind)
                del self._methods[method_id]
                return True

    def _unset_default(self, except_id: UUID, now: Any) -> None:
        """Clear the default flag on every other method. Callers hold ``_lock``."""
        for other_id, other in list(self._methods.items()):
            if other.is_default and other_id != except_id:
                self._methods[other_id] = other.model_copy(
                    update={"is_default": False, "updated_at": now}
                )

    async def clear(self) -> None:
        """Remove every stored method."""
        async with self._lock:
            self._methods.clear()


class SQLiteMethodRepository(Generic[M]):
    """
    SQLite implementation of a method catalog.

    SQLite-specific adaptations:
    - UUIDs and timestamps stored as TEXT
    - Prices stored as TEXT to keep Decimal precision
    - Booleans stored as INTEGER 0/1

    Example:
        >>> async with aiosqlite.connect("checkout.db") as db:
        ...     repo = SQLiteMethodRepository(db, PaymentMethod)
        ...     methods = await repo.list_enabled_methods()
    """

    def __init__(
        self,
        connection: "aiosqlite.Connection",
        method_type: type[M],
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the method repository.

        Args:
            connection: aiosqlite database connection
            method_type: ShippingMethod or PaymentMethod
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._connection = connection
        self._method_type = method_type
        self._catalog = _TABLES[method_type.kind]

    @property
    def kind(self) -> MethodKind:
        return self._method_type.kind

    def _attrs(self, method_id: UUID | None = None) -> dict[str, Any]:
        attrs: dict[str, Any] = {ATTR_METHOD_KIND: self.kind.value, ATTR_DB_SYSTEM: "sqlite"}
        if method_id is not None:
            attrs[ATTR_METHOD_ID] = str(method_id)
        return attrs

    async def add_method(self, method: M) -> M:
        with self._tracer.span("checkoutflow.method.add", self._attrs(method.id)):
            try:
                cursor = await self._connection.execute(
                    f"SELECT COUNT(*) FROM {self._catalog.table} WHERE is_default = 1"
                )
                row = await cursor.fetchone()
                has_default = bool(row and row[0])
                if not has_default and not method.is_default:
                    method = method.model_copy(update={"is_default": True})
                if method.is_default:
                    await self._connection.execute(
                        f"""
                        UPDATE {self._catalog.table}
                        SET is_default = 0, updated_at = ?
                        WHERE is_default = 1
                        """,
                        (format_datetime(method.updated_at),),
                    )
                await self._connection.execute(
                    self._catalog.sqlite_insert, self._catalog.sqlite_params(method)
                )
                await self._connection.commit()
            except BaseException:
                await self._connection.rollback()
                raise
            return method

    async def get_method(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.get", self._attrs(method_id)):
            cursor = await self._connection.execute(
                f"SELECT {self._catalog.columns} FROM {self._catalog.table} WHERE id = ?",
                (str(method_id),),
            )
            row = await cursor.fetchone()
            return self._catalog.from_row(row) if row else None  # type: ignore[return-value]

    async def get_enabled_method(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.get_enabled", self._attrs(method_id)):
            cursor = await self._connection.execute(
                f"""
                SELECT {self._catalog.columns}
                FROM {self._catalog.table}
                WHERE id = ? AND is_enabled = 1
                """,
                (str(method_id),),
            )
            row = await cursor.fetchone()
            return self._catalog.from_row(row) if row else None  # type: ignore[return-value]

    async def list_methods(self) -> list[M]:
        with self._tracer.span("checkoutflow.method.list", self._attrs()):
            cursor = await self._connection.execute(
                f"""
                SELECT {self._catalog.columns}
                FROM {self._catalog.table}
                ORDER BY is_default DESC, name ASC
                """
            )
            rows = await cursor.fetchall()
            return [self._catalog.from_row(row) for row in rows]  # type: ignore[misc]

    async def list_enabled_methods(self) -> list[M]:
        with self._tracer.span("checkoutflow.method.list_enabled", self._attrs()):
            cursor = await self._connection.execute(
                f"""
                SELECT {self._catalog.columns}
                FROM {self._catalog.table}
                WHERE is_enabled = 1
                ORDER BY is_default DESC, name ASC
                """
            )
            rows = await cursor.fetchall()
            return [self._catalog.from_row(row) for row in rows]  # type: ignore[misc]

    async def set_default(self, method_id: UUID) -> M | None:
        with self._tracer.span("checkoutflow.method.set_default", self._attrs(method_id)):
            now = format_datetime(utc_now())
            try:
                cursor = await self._connection.execute(
                    f"SELECT id FROM {self._catalog.table} WHERE id = ?", (str(method_id),)
                )
                if await cursor.fetchone() is None:
                    return None
                await self._connection.execute(
                    f"""
                    UPDATE {self._catalog.table}
                    SET is_default = 0, updated_at = ?
                    WHERE is_default = 1 AND id <> ?
                    """,
                    (now, str(method_id)),
                )
                await self._connection.execute(
                    f"""
                    UPDATE {self._catalog.table}
                    SET is_default = 1, updated_at = ?
                    WHERE id = ?
                    """,
                    (now, str(method_id)),
                )
                await self._connection.commit()
            except BaseException:
                await self._connection.rollback()
                raise
            return await self.get_method(method_id)

    async def set_enabled(self, method_id: UUID, is_enabled: bool) -> M | None:
        with self._tracer.span("checkoutflow.method.set_enabled", self._attrs(method_id)):
            cursor = await self._connection.execute(
                f"""
                UPDATE {self._catalog.table}
                SET is_enabled = ?, updated_at = ?
                WHERE id = ?
                """,
                (int(is_enabled), format_datetime(utc_now()), str(method_id)),
            )
            matched = cursor.rowcount
            await self._connection.commit()
            if not matched:
                return None
            return await self.get_method(method_id)

    async def delete_method(self, method_id: UUID) -> bool:
        with self._tracer.span("checkoutflow.method.delete", self._attrs(method_id)):
            try:
                cursor = await self._connection.execute(
                    f"SELECT id, is_default FROM {self._catalog.table}"
                )
                rows = {as_uuid(row[0]): bool(row[1]) for row in await cursor.fetchall()}
                if method_id not in rows:
                    return False
                _check_deletable(method_id, rows, self.kind)
                await self._connection.execute(
                    f"DELETE FROM {self._catalog.table} WHERE id = ?", (str(method_id),)
                )
                await self._connection.commit()
            except BaseException:
                await self._connection.rollback()
                raise
            return True


__all__ = [
    "InMemoryMethodRepository",
    "MethodRepository",
    "PostgreSQLMethodRepository",
    "SQLiteMethodRepository",
    "sort_for_listing",
]
