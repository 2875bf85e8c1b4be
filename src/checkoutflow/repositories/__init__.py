"""
Repository implementations for checkoutflow.

This module provides storage for:

- **Checkout sessions**: The mutable session record and its lifecycle sweeps
- **Method catalogs**: Shipping and payment methods with a single default
- **Tax**: Tax rates and customer exemptions
- **Baskets and products**: Readers over data owned by other subsystems
- **Orders**: Order records and the scoped transaction used to commit them

Each repository type provides:
- A Protocol (interface) defining the contract
- PostgreSQL implementation for production use
- SQLite implementation for lightweight deployments
- In-memory implementation for testing

Naming Convention:
    - get_{entity}()      - Fetch a single entity by ID
    - list_{entities}()   - Fetch multiple entities
    - add_{entity}()      - Create a new entity
    - update_{entity}()   - Update an existing entity
    - delete_{entity}()   - Delete an entity
"""

# Basket and product readers
from checkoutflow.repositories.baskets import (
    BasketRepository,
    InMemoryBasketRepository,
    InMemoryProductRepository,
    PostgreSQLBasketRepository,
    PostgreSQLProductRepository,
    ProductRepository,
    SQLiteBasketRepository,
    SQLiteProductRepository,
)

# Method catalogs
from checkoutflow.repositories.methods import (
    InMemoryMethodRepository,
    MethodRepository,
    PostgreSQLMethodRepository,
    SQLiteMethodRepository,
)

# Orders
from checkoutflow.repositories.orders import (
    InMemoryOrderRepository,
    OrderRepository,
    OrderTransaction,
    PostgreSQLOrderRepository,
    SQLiteOrderRepository,
)

# Checkout sessions
from checkoutflow.repositories.sessions import (
    CheckoutSessionRepository,
    InMemoryCheckoutSessionRepository,
    PostgreSQLCheckoutSessionRepository,
    SQLiteCheckoutSessionRepository,
)

# Tax rates and exemptions
from checkoutflow.repositories.tax import (
    InMemoryTaxExemptionRepository,
    InMemoryTaxRateRepository,
    PostgreSQLTaxExemptionRepository,
    PostgreSQLTaxRateRepository,
    SQLiteTaxExemptionRepository,
    SQLiteTaxRateRepository,
    TaxExemptionRepository,
    TaxRateRepository,
)

__all__ = [
    # Baskets and products
    "BasketRepository",
    "InMemoryBasketRepository",
    "InMemoryProductRepository",
    "PostgreSQLBasketRepository",
    "PostgreSQLProductRepository",
    "ProductRepository",
    "SQLiteBasketRepository",
    "SQLiteProductRepository",
    # Methods
    "InMemoryMethodRepository",
    "MethodRepository",
    "PostgreSQLMethodRepository",
    "SQLiteMethodRepository",
    # Orders
    "InMemoryOrderRepository",
    "OrderRepository",
    "OrderTransaction",
    "PostgreSQLOrderRepository",
    "SQLiteOrderRepository",
    # Sessions
    "CheckoutSessionRepository",
    "InMemoryCheckoutSessionRepository",
    "PostgreSQLCheckoutSessionRepository",
    "SQLiteCheckoutSessionRepository",
    # Tax
    "InMemoryTaxExemptionRepository",
    "InMemoryTaxRateRepository",
    "PostgreSQLTaxExemptionRepository",
    "PostgreSQLTaxRateRepository",
    "SQLiteTaxExemptionRepository",
    "SQLiteTaxRateRepository",
    "TaxExemptionRepository",
    "TaxRateRepository",
]
