"""
Database schema support for the checkoutflow library.

This module serves the DDL for every table checkoutflow reads or writes.

Tables:
    - checkout_sessions: Checkout session records
    - shipping_methods / payment_methods: Method catalogs
    - tax_rates / tax_exemptions: Tax resolution data
    - orders / order_items: Commit targets
    - products / basket_items: Collaborator tables read at checkout

Supported backends:
    - postgresql (default): NUMERIC money, UUID ids, JSONB addresses
    - sqlite: TEXT storage for money, ids, timestamps and JSON

Usage:
    from checkoutflow.migrations import get_schema, get_statements

    # PostgreSQL: asyncpg runs one statement per execute()
    async with engine.begin() as conn:
        for statement in get_statements():
            await conn.execute(text(statement))

    # SQLite
    async with aiosqlite.connect(":memory:") as db:
        await db.executescript(get_schema(backend="sqlite"))
"""

from pathlib import Path
from typing import Literal

# Supported database backends
BackendName = Literal["postgresql", "sqlite"]

_SCHEMAS_DIR = Path(__file__).parent / "schemas"


def get_schema_path(backend: BackendName = "postgresql") -> Path:
    """
    Get the path to the schema file of a backend.

    Args:
        backend: The database backend (postgresql, sqlite). Defaults to postgresql.

    Returns:
        Path to the SQL schema file

    Raises:
        ValueError: If no schema exists for the backend
    """
    path = _SCHEMAS_DIR / f"{backend}.sql"
    if not path.exists():
        raise ValueError(
            f"No schema available for backend '{backend}'. "
            f"Available backends: {list_backends()}"
        )
    return path


def get_schema(backend: BackendName = "postgresql") -> str:
    """
    Load the full SQL schema of a backend.

    Args:
        backend: The database backend. One of:
            - "postgresql": Full-featured PostgreSQL schema (default)
            - "sqlite": SQLite-compatible schema

    Returns:
        SQL schema definition as a string

    Raises:
        ValueError: If no schema exists for the backend

    Example:
        >>> from checkoutflow.migrations import get_schema
        >>> sqlite_sql = get_schema(backend="sqlite")
    """
    return get_schema_path(backend).read_text()


def get_statements(backend: BackendName = "postgresql") -> list[str]:
    """
    Split the schema of a backend into individual statements.

    Comment lines are dropped. Drivers that refuse multi-statement strings
    (asyncpg) can execute the result one entry at a time.

    Args:
        backend: The database backend (postgresql, sqlite). Defaults to postgresql.

    Returns:
        Statements in file order, without trailing semicolons
    """
    lines = [
        line for line in get_schema(backend).splitlines() if not line.lstrip().startswith("--")
    ]
    return [stmt.strip() for stmt in "\n".join(lines).split(";") if stmt.strip()]


def list_backends() -> list[str]:
    """
    List all database backends with a schema file.

    Example:
        >>> from checkoutflow.migrations import list_backends
        >>> print(list_backends())
        ['postgresql', 'sqlite']
    """
    return sorted(p.stem for p in _SCHEMAS_DIR.glob("*.sql"))


__all__ = [
    "BackendName",
    "get_schema",
    "get_schema_path",
    "get_statements",
    "list_backends",
]
