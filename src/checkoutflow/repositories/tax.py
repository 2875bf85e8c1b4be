"""
Tax rate and tax exemption repositories.

The rate repositories are the tax rate resolver: ``find_applicable_rates``
returns the rates that apply to a jurisdiction and product category, already
in application order. SQL backends narrow candidates by country and status
in the query, then apply the shared rules from ``checkoutflow.tax.rules``.

The exemption repositories satisfy ``checkoutflow.protocols.TaxExemptionReader``.
"""

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from checkoutflow.models.address import Jurisdiction
from checkoutflow.models.tax import TaxExemption, TaxExemptionStatus, TaxRate, TaxRateStatus
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_CUSTOMER_ID,
    ATTR_DB_SYSTEM,
    ATTR_TAX_COUNTRY,
    ATTR_TAX_RATE_COUNT,
)
from checkoutflow.repositories._connection import execute_with_connection
from checkoutflow.repositories._values import (
    as_decimal,
    as_uuid,
    dump_uuid_list,
    format_datetime,
    load_uuid_list,
    parse_datetime,
)
from checkoutflow.tax.rules import order_rates, select_applicable_rates

if TYPE_CHECKING:
    import aiosqlite


RATE_COLUMNS = """
    id, name, rate, country, region, postal_code, tax_category_ids,
    priority, status, effective_from, effective_until
"""

EXEMPTION_COLUMNS = "id, customer_id, status, exemption_number, reason, expires_at"


def row_to_rate(row: Any) -> TaxRate:
    """Build a TaxRate from a row selected with RATE_COLUMNS."""
    return TaxRate(
        id=as_uuid(row[0]),
        name=row[1],
        rate=as_decimal(row[2]),
        country=row[3],
        region=row[4],
        postal_code=row[5],
        tax_category_ids=load_uuid_list(row[6]),
        priority=row[7],
        status=TaxRateStatus(row[8]),
        effective_from=parse_datetime(row[9]),
        effective_until=parse_datetime(row[10]),
    )


def row_to_exemption(row: Any) -> TaxExemption:
    """Build a TaxExemption from a row selected with EXEMPTION_COLUMNS."""
    return TaxExemption(
        id=as_uuid(row[0]),
        customer_id=as_uuid(row[1]),
        status=TaxExemptionStatus(row[2]),
        exemption_number=row[3],
        reason=row[4],
        expires_at=parse_datetime(row[5]),
    )


@runtime_checkable
class TaxRateRepository(Protocol):
    """
    Protocol for tax rate stores.
    """

    async def add_rate(self, rate: TaxRate) -> TaxRate:
        """
        Store a tax rate.

        Args:
            rate: Rate to store

        Returns:
            The stored rate
        """
        ...

    async def get_rate(self, rate_id: UUID) -> TaxRate | None:
        """Get a rate by ID, or None."""
        ...

    async def list_rates(self, country: str | None = None) -> list[TaxRate]:
        """
        List stored rates in application order.

        Args:
            country: Restrict to one country (optional)
        """
        ...

    async def find_applicable_rates(
        self,
        jurisdiction: Jurisdiction,
        tax_category_id: UUID | None,
        now: datetime,
    ) -> list[TaxRate]:
        """
        Resolve the rates that apply to a line.

        Args:
            jurisdiction: Normalized shipping jurisdiction
            tax_category_id: The product's tax category, if any
            now: Reference time for validity windows

        Returns:
            Applicable rates, priority descending, ties by rate id
        """
        ...


@runtime_checkable
class TaxExemptionRepository(Protocol):
    """
    Protocol for customer tax exemption stores.
    """

    async def add_exemption(self, exemption: TaxExemption) -> TaxExemption:
        """Store an exemption record."""
        ...

    async def list_exemptions(self, customer_id: UUID) -> list[TaxExemption]:
        """List every exemption record of a customer, whatever its status."""
        ...


class PostgreSQLTaxRateRepository:
    """
    PostgreSQL implementation of the tax rate store.

    Stores rates in the `tax_rates` table; category restrictions are a
    UUID[] column.

    Example:
        >>> repo = PostgreSQLTaxRateRepository(engine)
        >>> rates = await repo.find_applicable_rates(address.jurisdiction(), None, now)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the tax rate repository.

        Args:
            conn: Database connection or engine
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def add_rate(self, rate: TaxRate) -> TaxRate:
        with self._tracer.span(
            "checkoutflow.tax.add_rate",
            {ATTR_TAX_COUNTRY: rate.country, ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                INSERT INTO tax_rates
                    (id, name, rate, country, region, postal_code, tax_category_ids,
                     priority, status, effective_from, effective_until)
                VALUES (:id, :name, :rate, :country, :region, :postal_code,
                        CAST(:tax_category_ids AS UUID[]),
                        :priority, :status, :effective_from, :effective_until)
            """)
            params = {
                "id": rate.id,
                "name": rate.name,
                "rate": rate.rate,
                "country": rate.country,
                "region": rate.region,
                "postal_code": rate.postal_code,
                "tax_category_ids": rate.tax_category_ids,
                "priority": rate.priority,
                "status": rate.status.value,
                "effective_from": rate.effective_from,
                "effective_until": rate.effective_until,
            }

            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, params)

            return rate

    async def get_rate(self, rate_id: UUID) -> TaxRate | None:
        with self._tracer.span("checkoutflow.tax.get_rate", {ATTR_DB_SYSTEM: "postgresql"}):
            query = text(f"SELECT {RATE_COLUMNS} FROM tax_rates WHERE id = :id")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": rate_id})
                row = result.fetchone()
            return row_to_rate(row) if row else None

    async def list_rates(self, country: str | None = None) -> list[TaxRate]:
        with self._tracer.span("checkoutflow.tax.list_rates", {ATTR_DB_SYSTEM: "postgresql"}):
            query = text(f"""
                SELECT {RATE_COLUMNS}
                FROM tax_rates
                WHERE CAST(:country AS VARCHAR) IS NULL
                   OR UPPER(country) = CAST(:country AS VARCHAR)
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(
                    query, {"country": country.strip().upper() if country else None}
                )
                rows = result.fetchall()
            return order_rates(row_to_rate(row) for row in rows)

    async def find_applicable_rates(
        self,
        jurisdiction: Jurisdiction,
        tax_category_id: UUID | None,
        now: datetime,
    ) -> list[TaxRate]:
        with self._tracer.span(
            "checkoutflow.tax.find_rates",
            {ATTR_TAX_COUNTRY: jurisdiction.country, ATTR_DB_SYSTEM: "postgresql"},
        ) as span:
            query = text(f"""
                SELECT {RATE_COLUMNS}
                FROM tax_rates
                WHERE status = 'active'
                  AND UPPER(country) = :country
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"country": jurisdiction.country})
                rows = result.fetchall()

            rates = select_applicable_rates(
                (row_to_rate(row) for row in rows), jurisdiction, tax_category_id, now
            )
            if span:
                span.set_attribute(ATTR_TAX_RATE_COUNT, len(rates))
            return rates


class PostgreSQLTaxExemptionRepository:
    """
    PostgreSQL implementation of the tax exemption store.

    Stores exemptions in the `tax_exemptions` table.
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

    async def add_exemption(self, exemption: TaxExemption) -> TaxExemption:
        with self._tracer.span(
            "checkoutflow.tax.add_exemption",
            {ATTR_CUSTOMER_ID: str(exemption.customer_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text("""
                INSERT INTO tax_exemptions
                    (id, customer_id, status, exemption_number, reason, expires_at)
                VALUES (:id, :customer_id, :status, :exemption_number, :reason, :expires_at)
            """)
            params = {
                "id": exemption.id,
                "customer_id": exemption.customer_id,
                "status": exemption.status.value,
                "exemption_number": exemption.exemption_number,
                "reason": exemption.reason,
                "expires_at": exemption.expires_at,
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, params)
            return exemption

    async def list_exemptions(self, customer_id: UUID) -> list[TaxExemption]:
        with self._tracer.span(
            "checkoutflow.tax.list_exemptions",
            {ATTR_CUSTOMER_ID: str(customer_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT {EXEMPTION_COLUMNS}
                FROM tax_exemptions
                WHERE customer_id = :customer_id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"customer_id": customer_id})
                rows = result.fetchall()
            return [row_to_exemption(row) for row in rows]


class InMemoryTaxRateRepository:
    """
    In-memory implementation of the tax rate store for testing.

    Example:
        >>> repo = InMemoryTaxRateRepository()
        >>> await repo.add_rate(TaxRate(id=uuid4(), name="VAT", rate=Decimal("0.2"), country="GB"))
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._rates: dict[UUID, TaxRate] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def add_rate(self, rate: TaxRate) -> TaxRate:
        with self._tracer.span(
            "checkoutflow.tax.add_rate",
            {ATTR_TAX_COUNTRY: rate.country, ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                self._rates[rate.id] = rate
            return rate

    async def get_rate(self, rate_id: UUID) -> TaxRate | None:
        with self._tracer.span("checkoutflow.tax.get_rate", {ATTR_DB_SYSTEM: "memory"}):
            async with self._lock:
                return self._rates.get(rate_id)

    async def list_rates(self, country: str | None = None) -> list[TaxRate]:
        with self._tracer.span("checkoutflow.tax.list_rates", {ATTR_DB_SYSTEM: "memory"}):
            wanted = country.strip().upper() if country else None
            async with self._lock:
                rates = [r for r in self._rates.values() if wanted is None or r.country == wanted]
            return order_rates(rates)

    async def find_applicable_rates(
        self,
        jurisdiction: Jurisdiction,
        tax_category_id: UUID | None,
        now: datetime,
    ) -> list[TaxRate]:
        with self._tracer.span(
            "checkoutflow.tax.find_rates",
            {ATTR_TAX_COUNTRY: jurisdiction.country, ATTR_DB_SYSTEM: "memory"},
        ) as span:
            async with self._lock:
                candidates = list(self._rates.values())
            rates = select_applicable_rates(candidates, jurisdiction, tax_category_id, now)
            if span:
                span.set_attribute(ATTR_TAX_RATE_COUNT, len(rates))
            return rates

    async def clear(self) -> None:
        """Remove every stored rate."""
        async with self._lock:
            self._rates.clear()


class InMemoryTaxExemptionRepository:
    """
    In-memory implementation of the tax exemption store for testing.
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._exemptions: dict[UUID, TaxExemption] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def add_exemption(self, exemption: TaxExemption) -> TaxExemption:
        with self._tracer.span(
            "checkoutflow.tax.add_exemption",
            {ATTR_CUSTOMER_ID: str(exemption.customer_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                self._exemptions[exemption.id] = exemption
            return exemption

    async def list_exemptions(self, customer_id: UUID) -> list[TaxExemption]:
        with self._tracer.span(
            "checkoutflow.tax.list_exemptions",
            {ATTR_CUSTOMER_ID: str(customer_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                return [e for e in self._exemptions.values() if e.customer_id == customer_id]

    async def clear(self) -> None:
        """Remove every stored exemption."""
        async with self._lock:
            self._exemptions.clear()


class SQLiteTaxRateRepository:
    """
    SQLite implementation of the tax rate store.

    SQLite-specific adaptations:
    - UUIDs and timestamps stored as TEXT
    - Rates stored as TEXT to keep Decimal precision
    - Category restrictions stored as a JSON array of UUID strings

    Example:
        >>> async with aiosqlite.connect("checkout.db") as db:
        ...     repo = SQLiteTaxRateRepository(db)
        ...     rates = await repo.find_applicable_rates(jurisdiction, category_id, now)
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

    async def add_rate(self, rate: TaxRate) -> TaxRate:
        with self._tracer.span(
            "checkoutflow.tax.add_rate",
            {ATTR_TAX_COUNTRY: rate.country, ATTR_DB_SYSTEM: "sqlite"},
        ):
            await self._connection.execute(
                """
                INSERT INTO tax_rates
                    (id, name, rate, country, region, postal_code, tax_category_ids,
                     priority, status, effective_from, effective_until)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(rate.id),
                    rate.name,
                    str(rate.rate),
                    rate.country,
                    rate.region,
                    rate.postal_code,
                    dump_uuid_list(rate.tax_category_ids),
                    rate.priority,
                    rate.status.value,
                    format_datetime(rate.effective_from),
                    format_datetime(rate.effective_until),
                ),
            )
            await self._connection.commit()
            return rate

    async def get_rate(self, rate_id: UUID) -> TaxRate | None:
        with self._tracer.span("checkoutflow.tax.get_rate", {ATTR_DB_SYSTEM: "sqlite"}):
            cursor = await self._connection.execute(
                f"SELECT {RATE_COLUMNS} FROM tax_rates WHERE id = ?", (str(rate_id),)
            )
            row = await cursor.fetchone()
            return row_to_rate(row) if row else None

    async def list_rates(self, country: str | None = None) -> list[TaxRate]:
        with self._tracer.span("checkoutflow.tax.list_rates", {ATTR_DB_SYSTEM: "sqlite"}):
            wanted = country.strip().upper() if country else None
            cursor = await self._connection.execute(
                f"""
                SELECT {RATE_COLUMNS}
                FROM tax_rates
                WHERE ? IS NULL OR UPPER(country) = ?
                """,
                (wanted, wanted),
            )
            rows = await cursor.fetchall()
            return order_rates(row_to_rate(row) for row in rows)

    async def find_applicable_rates(
        self,
        jurisdiction: Jurisdiction,
        tax_category_id: UUID | None,
        now: datetime,
    ) -> list[TaxRate]:
        with self._tracer.span(
            "checkoutflow.tax.find_rates",
            {ATTR_TAX_COUNTRY: jurisdiction.country, ATTR_DB_SYSTEM: "sqlite"},
        ) as span:
            cursor = await self._connection.execute(
                f"""
                SELECT {RATE_COLUMNS}
                FROM tax_rates
                WHERE status = 'active'
                  AND UPPER(country) = ?
                """,
                (jurisdiction.country,),
            )
            rows = await cursor.fetchall()
            rates = select_applicable_rates(
                (row_to_rate(row) for row in rows), jurisdiction, tax_category_id, now
            )
            if span:
                span.set_attribute(ATTR_TAX_RATE_COUNT, len(rates))
            return rates


class SQLiteTaxExemptionRepository:
    """
    SQLite implementation of the tax exemption store.
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

    async def add_exemption(self, exemption: TaxExemption) -> TaxExemption:
        with self._tracer.span(
            "checkoutflow.tax.add_exemption",
            {ATTR_CUSTOMER_ID: str(exemption.customer_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            await self._connection.execute(
                """
                INSERT INTO tax_exemptions
                    (id, customer_id, status, exemption_number, reason, expires_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(exemption.id),
                    str(exemption.customer_id),
                    exemption.status.value,
                    exemption.exemption_number,
                    exemption.reason,
                    format_datetime(exemption.expires_at),
                ),
            )
            await self._connection.commit()
            return exemption

    async def list_exemptions(self, customer_id: UUID) -> list[TaxExemption]:
        with self._tracer.span(
            "checkoutflow.tax.list_exemptions",
            {ATTR_CUSTOMER_ID: str(customer_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"SELECT {EXEMPTION_COLUMNS} FROM tax_exemptions WHERE customer_id = ?",
                (str(customer_id),),
            )
            rows = await cursor.fetchall()
            return [row_to_exemption(row) for row in rows]


__all__ = [
    "InMemoryTaxExemptionRepository",
    "InMemoryTaxRateRepository",
    "PostgreSQLTaxExemptionRepository",
    "PostgreSQLTaxRateRepository",
    "SQLiteTaxExemptionRepository",
    "SQLiteTaxRateRepository",
    "TaxExemptionRepository",
    "TaxRateRepository",
    "row_to_exemption",
    "row_to_rate",
]
