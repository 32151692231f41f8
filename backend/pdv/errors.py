# Overview: Domain error hierarchy shared by services, routes, and the CLI.

"""
PDV error hierarchy.

Every business failure is a PdvError carrying the HTTP status it maps to and
a stable machine-readable code. Routes translate these with to_dict(); any
other exception is treated as a server error.

    PdvError
    ├── ValidationError (400)
    │   ├── InvalidReferenceError
    │   ├── ModifierConstraintError
    │   └── InvalidTableError
    ├── AmountMismatchError (422)
    ├── UnauthenticatedError (401)
    ├── NotFoundError (404)
    └── ConflictError (409)
        ├── RegisterClosedError
        ├── ShiftRequiredError
        ├── NotCancelableError
        ├── InvalidOrderError
        ├── AlreadyPaidError
        ├── ConcurrentSettlementError
        └── InsufficientStockError
"""

from __future__ import annotations


class PdvError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.details = details

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body


class ValidationError(PdvError):
    """Invalid input."""
    status_code = 400
    code = "validation_error"


class InvalidReferenceError(ValidationError):
    """Referenced catalog entry is unknown or inactive."""
    code = "invalid_reference"


class ModifierConstraintError(ValidationError):
    """Modifier selection violates a group's min/max rules."""
    code = "modifier_constraint"

    def __init__(self, message: str, *, group_id: int):
        super().__init__(message, group_id=group_id)
        self.group_id = group_id


class InvalidTableError(ValidationError):
    """Table order without a matching open table session."""
    code = "invalid_table"


class AmountMismatchError(PdvError):
    """Tendered amounts do not add up to the order total."""
    status_code = 422
    code = "amount_mismatch"

    def __init__(self, *, expected_cents: int, tendered_cents: int):
        super().__init__(
            f"Payments total {tendered_cents} cents but order total is {expected_cents} cents",
            expected_cents=expected_cents,
            tendered_cents=tendered_cents,
        )
        self.expected_cents = expected_cents
        self.tendered_cents = tendered_cents


class UnauthenticatedError(PdvError):
    """Authentication required."""
    status_code = 401
    code = "unauthenticated"


class NotFoundError(PdvError):
    """Resource not found."""
    status_code = 404
    code = "not_found"


class ConflictError(PdvError):
    """Request conflicts with the current state."""
    status_code = 409
    code = "conflict"


class RegisterClosedError(ConflictError):
    """No open cash register."""
    code = "register_closed"


class ShiftRequiredError(ConflictError):
    """Operator has no open shift."""
    code = "shift_required"


class NotCancelableError(ConflictError):
    """Order can no longer be canceled."""
    code = "not_cancelable"


class InvalidOrderError(ConflictError):
    """Order is missing or not open."""
    code = "invalid_order"


class AlreadyPaidError(ConflictError):
    """Order already has payments."""
    code = "already_paid"


class ConcurrentSettlementError(ConflictError):
    """Order was settled by a concurrent request."""
    code = "concurrent_settlement"


class InsufficientStockError(ConflictError):
    """Not enough stock to settle the order."""
    code = "insufficient_stock"

    def __init__(self, *, product_id: int, product_name: str, requested: int, available: int | None):
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available
