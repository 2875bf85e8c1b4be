"""
Checkout session store.

Persists the mutable session record: addresses, method selections, computed
totals, status and expiry. Every write is a single statement; no transaction
spans two calls. The only multi-statement write to this table happens inside
the order commit (see ``checkoutflow.repositories.orders``).

"At most one active session per basket" is a lookup convention: callers ask
``find_active_for_basket`` for the most recently created active session.
There is no uniqueness constraint, so two concurrent creations for the same
basket can both succeed.
"""

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from checkoutflow.models.session import CheckoutSession, SessionPatch, SessionStatus
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_BASKET_ID,
    ATTR_CUSTOMER_ID,
    ATTR_DB_SYSTEM,
    ATTR_EXPIRED_COUNT,
    ATTR_SESSION_ID,
    ATTR_SESSION_STATUS,
)
from checkoutflow.repositories._connection import execute_with_connection
from checkoutflow.repositories._values import (
    as_decimal,
    as_optional_uuid,
    as_uuid,
    dump_address,
    format_datetime,
    load_address,
    parse_datetime,
)

if TYPE_CHECKING:
    import aiosqlite


SESSION_COLUMNS = """
    id, basket_id, customer_id, guest_email, status,
    shipping_address, billing_address, shipping_method_id, payment_method_id,
    subtotal, tax_amount, shipping_amount, discount_amount, total,
    degraded_tax_calculation, notes, created_at, updated_at, expires_at, completed_at,
    coupon_code
"""


def row_to_session(row: Any) -> CheckoutSession:
    """Build a CheckoutSession from a row selected with SESSION_COLUMNS."""
    return CheckoutSession(
        id=as_uuid(row[0]),
        basket_id=as_uuid(row[1]),
        customer_id=as_optional_uuid(row[2]),
        guest_email=row[3],
        status=SessionStatus(row[4]),
        shipping_address=load_address(row[5]),
        billing_address=load_address(row[6]),
        shipping_method_id=as_optional_uuid(row[7]),
        payment_method_id=as_optional_uuid(row[8]),
        subtotal=as_decimal(row[9]),
        tax_amount=as_decimal(row[10]),
        shipping_amount=as_decimal(row[11]),
        discount_amount=as_decimal(row[12]),
        total=as_decimal(row[13]),
        degraded_tax_calculation=bool(row[14]),
        notes=row[15],
        created_at=parse_datetime(row[16]),
        updated_at=parse_datetime(row[17]),
        expires_at=parse_datetime(row[18]),
        completed_at=parse_datetime(row[19]),
        coupon_code=row[20],
    )


@runtime_checkable
class CheckoutSessionRepository(Protocol):
    """
    Protocol for checkout session stores.

    Lookups return None for unknown sessions rather than raising.
    """

    async def create_session(self, session: CheckoutSession) -> CheckoutSession:
        """
        Persist a newly built session.

        Args:
            session: Session record, normally in ACTIVE status with zero totals

        Returns:
            The stored session
        """
        ...

    async def get_session(self, session_id: UUID) -> CheckoutSession | None:
        """
        Get a session by ID.

        Args:
            session_id: Session identifier

        Returns:
            The session, or None if it does not exist
        """
        ...

    async def find_active_for_basket(self, basket_id: UUID) -> CheckoutSession | None:
        """
        Get the most recently created ACTIVE session for a basket.

        Args:
            basket_id: Basket identifier

        Returns:
            The newest active session, or None
        """
        ...

    async def list_sessions_for_customer(self, customer_id: UUID) -> list[CheckoutSession]:
        """
        List every session of a customer, newest first.

        Args:
            customer_id: Customer identifier

        Returns:
            Sessions in descending creation order
        """
        ...

    async def update_session(
        self,
        session_id: UUID,
        patch: SessionPatch,
        updated_at: datetime,
        expected_status: SessionStatus | None = None,
    ) -> CheckoutSession | None:
        """
        Apply a partial update to a session.

        Args:
            session_id: Session identifier
            patch: Fields to change; None fields keep their stored value
            updated_at: Timestamp to record as the last write
            expected_status: When given, only update a session currently in
                this status

        Returns:
            The updated session, or None when no session matched
        """
        ...

    async def expire_sessions(self, now: datetime) -> int:
        """
        Move every ACTIVE session whose expiry is before ``now`` to EXPIRED.

        Args:
            now: Reference time for the sweep

        Returns:
            Number of sessions transitioned
        """
        ...


class PostgreSQLCheckoutSessionRepository:
    """
    PostgreSQL implementation of the checkout session store.

    Stores sessions in the `checkout_sessions` table. Addresses are kept in
    JSONB columns.

    Example:
        >>> repo = PostgreSQLCheckoutSessionRepository(engine)
        >>> session = await repo.get_session(session_id)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the session repository.

        Args:
            conn: Database connection or engine
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def create_session(self, session: CheckoutSession) -> CheckoutSession:
        with self._tracer.span(
            "checkoutflow.session.create",
            {
                ATTR_SESSION_ID: str(session.id),
                ATTR_BASKET_ID: str(session.basket_id),
                ATTR_DB_SYSTEM: "postgresql",
            },
        ):
            query = text("""
                INSERT INTO checkout_sessions
                    (id, basket_id, customer_id, guest_email, status,
                     shipping_address, billing_address, shipping_method_id, payment_method_id,
                     subtotal, tax_amount, shipping_amount, discount_amount, total,
                     degraded_tax_calculation, notes, created_at, updated_at, expires_at,
                     completed_at, coupon_code)
                VALUES (:id, :basket_id, :customer_id, :guest_email, :status,
                        CAST(:shipping_address AS JSONB), CAST(:billing_address AS JSONB),
                        :shipping_method_id, :payment_method_id,
                        :subtotal, :tax_amount, :shipping_amount, :discount_amount, :total,
                        :degraded_tax_calculation, :notes, :created_at, :updated_at,
                        :expires_at, :completed_at, :coupon_code)
            """)
            params = {
                "id": session.id,
                "basket_id": session.basket_id,
                "customer_id": session.customer_id,
                "guest_email": session.guest_email,
                "status": session.status.value,
                "shipping_address": dump_address(session.shipping_address),
                "billing_address": dump_address(session.billing_address),
                "shipping_method_id": session.shipping_method_id,
                "payment_method_id": session.payment_method_id,
                "subtotal": session.subtotal,
                "tax_amount": session.tax_amount,
                "shipping_amount": session.shipping_amount,
                "discount_amount": session.discount_amount,
                "total": session.total,
                "degraded_tax_calculation": session.degraded_tax_calculation,
                "notes": session.notes,
                "created_at": session.created_at,
                "updated_at": session.updated_at,
                "expires_at": session.expires_at,
                "completed_at": session.completed_at,
                "coupon_code": session.coupon_code,
            }

            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, params)

            return session

    async def get_session(self, session_id: UUID) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.get",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT {SESSION_COLUMNS}
                FROM checkout_sessions
                WHERE id = :id
            """)

            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": session_id})
                row = result.fetchone()

            return row_to_session(row) if row else None

    async def find_active_for_basket(self, basket_id: UUID) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.find_active_for_basket",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT {SESSION_COLUMNS}
                FROM checkout_sessions
                WHERE basket_id = :basket_id
                  AND status = 'active'
                ORDER BY created_at DESC
                LIMIT 1
            """)

            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"basket_id": basket_id})
                row = result.fetchone()

            return row_to_session(row) if row else None

    async def list_sessions_for_customer(self, customer_id: UUID) -> list[CheckoutSession]:
        with self._tracer.span(
            "checkoutflow.session.list_for_customer",
            {ATTR_CUSTOMER_ID: str(customer_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                SELECT {SESSION_COLUMNS}
                FROM checkout_sessions
                WHERE customer_id = :customer_id
                ORDER BY created_at DESC
            """)

            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"customer_id": customer_id})
                rows = result.fetchall()

            return [row_to_session(row) for row in rows]

    async def update_session(
        self,
        session_id: UUID,
        patch: SessionPatch,
        updated_at: datetime,
        expected_status: SessionStatus | None = None,
    ) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.update",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "postgresql"},
        ):
            query = text(f"""
                UPDATE checkout_sessions SET
                    shipping_address = COALESCE(CAST(:shipping_address AS JSONB), shipping_address),
                    billing_address = COALESCE(CAST(:billing_address AS JSONB), billing_address),
                    shipping_method_id = COALESCE(CAST(:shipping_method_id AS UUID), shipping_method_id),
                    shipping_amount = COALESCE(CAST(:shipping_amount AS NUMERIC), shipping_amount),
                    payment_method_id = COALESCE(CAST(:payment_method_id AS UUID), payment_method_id),
                    subtotal = COALESCE(CAST(:subtotal AS NUMERIC), subtotal),
                    tax_amount = COALESCE(CAST(:tax_amount AS NUMERIC), tax_amount),
                    total = COALESCE(CAST(:total AS NUMERIC), total),
                    degraded_tax_calculation = COALESCE(
                        CAST(:degraded_tax_calculation AS BOOLEAN), degraded_tax_calculation
                    ),
                    discount_amount = COALESCE(CAST(:discount_amount AS NUMERIC), discount_amount),
                    coupon_code = NULLIF(COALESCE(CAST(:coupon_code AS VARCHAR), coupon_code), ''),
                    notes = COALESCE(CAST(:notes AS TEXT), notes),
                    status = COALESCE(CAST(:status AS VARCHAR), status),
                    completed_at = COALESCE(CAST(:completed_at AS TIMESTAMPTZ), completed_at),
                    updated_at = :updated_at
                WHERE id = :id
                  AND (CAST(:expected_status AS VARCHAR) IS NULL
                       OR status = CAST(:expected_status AS VARCHAR))
                RETURNING {SESSION_COLUMNS}
            """)
            params = {
                "id": session_id,
                "shipping_address": dump_address(patch.shipping_address),
                "billing_address": dump_address(patch.billing_address),
                "shipping_method_id": patch.shipping_method_id,
                "shipping_amount": patch.shipping_amount,
                "payment_method_id": patch.payment_method_id,
                "subtotal": patch.subtotal,
                "tax_amount": patch.tax_amount,
                "total": patch.total,
                "degraded_tax_calculation": patch.degraded_tax_calculation,
                "discount_amount": patch.discount_amount,
                "coupon_code": patch.coupon_code,
                "notes": patch.notes,
                "status": patch.status.value if patch.status else None,
                "completed_at": patch.completed_at,
                "updated_at": updated_at,
                "expected_status": expected_status.value if expected_status else None,
            }

            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
                row = result.fetchone()

            return row_to_session(row) if row else None

    async def expire_sessions(self, now: datetime) -> int:
        with self._tracer.span(
            "checkoutflow.session.expire",
            {ATTR_SESSION_STATUS: SessionStatus.EXPIRED.value, ATTR_DB_SYSTEM: "postgresql"},
        ) as span:
            query = text("""
                UPDATE checkout_sessions
                SET status = 'expired',
                    updated_at = :now
                WHERE status = 'active'
                  AND expires_at < :now
                RETURNING id
            """)

            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, {"now": now})
                expired = len(result.fetchall())

            if span:
                span.set_attribute(ATTR_EXPIRED_COUNT, expired)
            return expired


class InMemoryCheckoutSessionRepository:
    """
    In-memory implementation of the checkout session store for testing.

    Stores sessions in memory. All data is lost when process terminates.

    Example:
        >>> repo = InMemoryCheckoutSessionRepository()
        >>> await repo.create_session(session)
        >>> await repo.get_session(session.id)
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize an empty in-memory session repository.

        Args:
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        # Insertion ordered, so later inserts win ties on created_at
        self._sessions: dict[UUID, CheckoutSession] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    async def create_session(self, session: CheckoutSession) -> CheckoutSession:
        with self._tracer.span(
            "checkoutflow.session.create",
            {
                ATTR_SESSION_ID: str(session.id),
                ATTR_BASKET_ID: str(session.basket_id),
                ATTR_DB_SYSTEM: "memory",
            },
        ):
            async with self._lock:
                self._sessions[session.id] = session
            return session

    async def get_session(self, session_id: UUID) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.get",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                return self._sessions.get(session_id)

    async def find_active_for_basket(self, basket_id: UUID) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.find_active_for_basket",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                newest: CheckoutSession | None = None
                for session in self._sessions.values():
                    if session.basket_id != basket_id or session.status is not SessionStatus.ACTIVE:
                        continue
                    if newest is None or session.created_at >= newest.created_at:
                        newest = session
                return newest

    async def list_sessions_for_customer(self, customer_id: UUID) -> list[CheckoutSession]:
        with self._tracer.span(
            "checkoutflow.session.list_for_customer",
            {ATTR_CUSTOMER_ID: str(customer_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                sessions = [s for s in self._sessions.values() if s.customer_id == customer_id]
            # Stable sort on reversed insertion order keeps newest-inserted first on ties
            sessions.reverse()
            sessions.sort(key=lambda s: s.created_at, reverse=True)
            return sessions

    async def update_session(
        self,
        session_id: UUID,
        patch: SessionPatch,
        updated_at: datetime,
        expected_status: SessionStatus | None = None,
    ) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.update",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "memory"},
        ):
            async with self._lock:
                return self._apply_patch(session_id, patch, updated_at, expected_status)

    async def expire_sessions(self, now: datetime) -> int:
        with self._tracer.span(
            "checkoutflow.session.expire",
            {ATTR_SESSION_STATUS: SessionStatus.EXPIRED.value, ATTR_DB_SYSTEM: "memory"},
        ) as span:
            patch = SessionPatch(status=SessionStatus.EXPIRED)
            async with self._lock:
                due = [
                    s.id
                    for s in self._sessions.values()
                    if s.status is SessionStatus.ACTIVE and s.expires_at < now
                ]
                for session_id in due:
                    self._apply_patch(session_id, patch, now, SessionStatus.ACTIVE)
            if span:
                span.set_attribute(ATTR_EXPIRED_COUNT, len(due))
            return len(due)

    def _apply_patch(
        self,
        session_id: UUID,
        patch: SessionPatch,
        updated_at: datetime,
        expected_status: SessionStatus | None,
    ) -> CheckoutSession | None:
        """Apply a patch without locking. Callers must hold ``_lock``."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if expected_status is not None and session.status is not expected_status:
            return None
        updated = patch.apply(session, updated_at)
        self._sessions[session_id] = updated
        return updated

    async def clear(self) -> None:
        """Remove every stored session."""
        async with self._lock:
            self._sessions.clear()


class SQLiteCheckoutSessionRepository:
    """
    SQLite implementation of the checkout session store.

    Stores sessions in the `checkout_sessions` table.

    SQLite-specific adaptations:
    - UUIDs stored as TEXT (36 characters, hyphenated format)
    - Money amounts stored as TEXT to keep Decimal precision
    - Timestamps stored as TEXT in ISO 8601 format
    - Addresses stored as JSON TEXT
    - Uses `?` positional parameters instead of named parameters

    Example:
        >>> async with aiosqlite.connect("checkout.db") as db:
        ...     repo = SQLiteCheckoutSessionRepository(db)
        ...     session = await repo.get_session(session_id)
    """

    def __init__(
        self,
        connection: "aiosqlite.Connection",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the session repository.

        Args:
            connection: aiosqlite database connection
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._connection = connection

    async def create_session(self, session: CheckoutSession) -> CheckoutSession:
        with self._tracer.span(
            "checkoutflow.session.create",
            {
                ATTR_SESSION_ID: str(session.id),
                ATTR_BASKET_ID: str(session.basket_id),
                ATTR_DB_SYSTEM: "sqlite",
            },
        ):
            await self._connection.execute(
                """
                INSERT INTO checkout_sessions
                    (id, basket_id, customer_id, guest_email, status,
                     shipping_address, billing_address, shipping_method_id, payment_method_id,
                     subtotal, tax_amount, shipping_amount, discount_amount, total,
                     degraded_tax_calculation, notes, created_at, updated_at, expires_at,
                     completed_at, coupon_code)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(session.id),
                    str(session.basket_id),
                    str(session.customer_id) if session.customer_id else None,
                    session.guest_email,
                    session.status.value,
                    dump_address(session.shipping_address),
                    dump_address(session.billing_address),
                    str(session.shipping_method_id) if session.shipping_method_id else None,
                    str(session.payment_method_id) if session.payment_method_id else None,
                    str(session.subtotal),
                    str(session.tax_amount),
                    str(session.shipping_amount),
                    str(session.discount_amount),
                    str(session.total),
                    int(session.degraded_tax_calculation),
                    session.notes,
                    format_datetime(session.created_at),
                    format_datetime(session.updated_at),
                    format_datetime(session.expires_at),
                    format_datetime(session.completed_at),
                    session.coupon_code,
                ),
            )
            await self._connection.commit()
            return session

    async def get_session(self, session_id: UUID) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.get",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"SELECT {SESSION_COLUMNS} FROM checkout_sessions WHERE id = ?",
                (str(session_id),),
            )
            row = await cursor.fetchone()
            return row_to_session(row) if row else None

    async def find_active_for_basket(self, basket_id: UUID) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.find_active_for_basket",
            {ATTR_BASKET_ID: str(basket_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"""
                SELECT {SESSION_COLUMNS}
                FROM checkout_sessions
                WHERE basket_id = ?
                  AND status = 'active'
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (str(basket_id),),
            )
            row = await cursor.fetchone()
            return row_to_session(row) if row else None

    async def list_sessions_for_customer(self, customer_id: UUID) -> list[CheckoutSession]:
        with self._tracer.span(
            "checkoutflow.session.list_for_customer",
            {ATTR_CUSTOMER_ID: str(customer_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            cursor = await self._connection.execute(
                f"""
                SELECT {SESSION_COLUMNS}
                FROM checkout_sessions
                WHERE customer_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (str(customer_id),),
            )
            rows = await cursor.fetchall()
            return [row_to_session(row) for row in rows]

    async def update_session(
        self,
        session_id: UUID,
        patch: SessionPatch,
        updated_at: datetime,
        expected_status: SessionStatus | None = None,
    ) -> CheckoutSession | None:
        with self._tracer.span(
            "checkoutflow.session.update",
            {ATTR_SESSION_ID: str(session_id), ATTR_DB_SYSTEM: "sqlite"},
        ):
            expected = expected_status.value if expected_status else None
            cursor = await self._connection.execute(
                """
                UPDATE checkout_sessions SET
                    shipping_address = COALESCE(?, shipping_address),
                    billing_address = COALESCE(?, billing_address),
                    shipping_method_id = COALESCE(?, shipping_method_id),
                    shipping_amount = COALESCE(?, shipping_amount),
                    payment_method_id = COALESCE(?, payment_method_id),
                    subtotal = COALESCE(?, subtotal),
                    tax_amount = COALESCE(?, tax_amount),
                    total = COALESCE(?, total),
                    degraded_tax_calculation = COALESCE(?, degraded_tax_calculation),
                    discount_amount = COALESCE(?, discount_amount),
                    coupon_code = NULLIF(COALESCE(?, coupon_code), ''),
                    notes = COALESCE(?, notes),
                    status = COALESCE(?, status),
                    completed_at = COALESCE(?, completed_at),
                    updated_at = ?
                WHERE id = ?
                  AND (? IS NULL OR status = ?)
                """,
                (
                    dump_address(patch.shipping_address),
                    dump_address(patch.billing_address),
                    str(patch.shipping_method_id) if patch.shipping_method_id else None,
                    _text_or_none(patch.shipping_amount),
                    str(patch.payment_method_id) if patch.payment_method_id else None,
                    _text_or_none(patch.subtotal),
                    _text_or_none(patch.tax_amount),
                    _text_or_none(patch.total),
                    None
                    if patch.degraded_tax_calculation is None
                    else int(patch.degraded_tax_calculation),
                    _text_or_none(patch.discount_amount),
                    patch.coupon_code,
                    patch.notes,
                    patch.status.value if patch.status else None,
                    format_datetime(patch.completed_at),
                    format_datetime(updated_at),
                    str(session_id),
                    expected,
                    expected,
                ),
            )
            matched = cursor.rowcount
            await self._connection.commit()

            if not matched:
                return None
            return await self.get_session(session_id)

    async def expire_sessions(self, now: datetime) -> int:
        with self._tracer.span(
            "checkoutflow.session.expire",
            {ATTR_SESSION_STATUS: SessionStatus.EXPIRED.value, ATTR_DB_SYSTEM: "sqlite"},
        ) as span:
            stamp = format_datetime(now)
            cursor = await self._connection.execute(
                """
                UPDATE checkout_sessions
                SET status = 'expired',
                    updated_at = ?
                WHERE status = 'active'
                  AND expires_at < ?
                """,
                (stamp, stamp),
            )
            expired = cursor.rowcount
            await self._connection.commit()

            if span:
                span.set_attribute(ATTR_EXPIRED_COUNT, expired)
            return expired


def _text_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


__all__ = [
    "CheckoutSessionRepository",
    "InMemoryCheckoutSessionRepository",
    "PostgreSQLCheckoutSessionRepository",
    "SQLiteCheckoutSessionRepository",
    "SESSION_COLUMNS",
    "row_to_session",
]
