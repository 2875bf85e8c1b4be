"""Library exceptions for the checkoutflow package."""

from uuid import UUID


class CheckoutFlowError(Exception):
    """Base exception for checkoutflow library."""

    pass


class AddressValidationError(CheckoutFlowError):
    """
    Raised when an address submitted at the operation boundary is incomplete.

    Attributes:
        missing_fields: Names of the required fields that are blank
    """

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(f"Address is missing required fields: {', '.join(missing_fields)}")


class CatalogError(CheckoutFlowError):
    """Raised when a shipping or payment method catalog operation is refused."""

    pass


class LastMethodError(CatalogError):
    """Raised when deleting the last remaining method of a kind."""

    def __init__(self, method_id: UUID, kind: str) -> None:
        self.method_id = method_id
        self.kind = kind
        super().__init__(f"Cannot delete {kind} method {method_id}: it is the last one remaining")


class DefaultMethodDeletionError(CatalogError):
    """
    Raised when deleting the current default method.

    Another method of the same kind must be promoted to default first.
    """

    def __init__(self, method_id: UUID, kind: str) -> None:
        self.method_id = method_id
        self.kind = kind
        super().__init__(
            f"Cannot delete {kind} method {method_id}: it is the current default. "
            f"Promote another {kind} method to default first."
        )


class TaxCalculationError(CheckoutFlowError):
    """
    Raised when tax rates, categories or exemptions cannot be resolved.

    Attributes:
        product_id: Product whose line was being taxed, when known
    """

    def __init__(self, message: str, product_id: UUID | None = None) -> None:
        self.product_id = product_id
        super().__init__(message)


class OrderCommitError(CheckoutFlowError):
    """Raised inside the commit transaction to force a rollback."""

    pass


class SessionAlreadyFinalizedError(OrderCommitError):
    """Raised when a session left the active state before its commit finished."""

    def __init__(self, session_id: UUID) -> None:
        self.session_id = session_id
        super().__init__(f"Checkout session {session_id} is no longer active")
