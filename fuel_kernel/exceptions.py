"""
Typed Exception Hierarchy for the Fuel Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A rejected fuel operation must tell the caller exactly which rule stopped it
and by how much. Callers catch by type, report by ``code``, and read the
quantities off structured attributes:

    try:
        breakdown = operations.record_fueling(tank_id, Decimal("500"), ...)
    except InsufficientLotCoverageError as e:
        api_response(code=e.code, uncovered=str(e.uncovered))
    except OverrideRequiredError as e:
        prompt_for_override(e.tank_id, e.operation_type)

Every exception has a ``code`` class attribute (machine-readable, API-safe)
and carries the data that caused it.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FuelKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidMrnFormatError
    |   +-- NonPositiveQuantityError
    |   +-- QuantityPrecisionError
    |   +-- NegativeBalancingQuantityError
    |   +-- LegacyBreakdownFormatError
    |   +-- InvalidTransferError
    |
    +-- CoverageError
    |   +-- InsufficientLotCoverageError
    |   +-- InsufficientTankQuantityError
    |   +-- UnresolvableAdjustmentError
    |
    +-- AuthorizationError
    |   +-- OverrideRequiredError
    |   +-- TokenNotFoundError
    |   +-- TokenExpiredError
    |   +-- TokenAlreadyConsumedError
    |   +-- TokenTankMismatchError
    |
    +-- TankError
    |   +-- TankNotFoundError
    |   +-- TankAlreadyConsistentError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|----------------------------------------
Validation      | INVALID_MRN_FORMAT           | MRN fails the customs format check
                | NON_POSITIVE_QUANTITY        | Intake/draw quantity <= 0
                | QUANTITY_PRECISION           | More than 3 decimal places of litres
                | NEGATIVE_BALANCING_QUANTITY  | Balancing lot requested for a deficit
                | LEGACY_BREAKDOWN_FORMAT      | Legacy JSON breakdown is malformed
                | INVALID_TRANSFER             | Transfer source and target are the same
----------------|------------------------------|----------------------------------------
Coverage        | INSUFFICIENT_LOT_COVERAGE    | Lots cannot cover the requested draw
                | INSUFFICIENT_TANK_QUANTITY   | Physical reading cannot cover the draw
                | UNRESOLVABLE_ADJUSTMENT      | Lots cannot absorb the correction delta
----------------|------------------------------|----------------------------------------
Authorization   | OVERRIDE_REQUIRED            | Guarded action without a token
                | TOKEN_NOT_FOUND              | Token string unknown
                | TOKEN_EXPIRED                | Token used past its window
                | TOKEN_ALREADY_CONSUMED       | Token used a second time
                | TOKEN_TANK_MISMATCH          | Token issued for other tank/operation
----------------|------------------------------|----------------------------------------
Tank            | TANK_NOT_FOUND               | Tank ID doesn't exist
                | TANK_ALREADY_CONSISTENT      | Correction requested, nothing to fix
----------------|------------------------------|----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT     | Concurrent modification detected
----------------|------------------------------|----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION       | Modifying an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

Validation errors are raised before any mutation. Coverage errors signal
drift between the ledger and the physical reading and are never resolved
automatically; the uncovered/unresolved amount lets an operator pick a
correction path. Authorization errors block the action entirely.
ConcurrencyError is the only category the transaction runner retries.

===============================================================================
"""

from decimal import Decimal


class FuelKernelError(Exception):
    """
    Base exception for all fuel kernel errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FUEL_KERNEL_ERROR"


# Validation exceptions


class ValidationError(FuelKernelError):
    """Base exception for input rejected before any mutation."""

    code: str = "VALIDATION_ERROR"


class InvalidMrnFormatError(ValidationError):
    """MRN does not match the customs format and is not a system sentinel."""

    code: str = "INVALID_MRN_FORMAT"

    def __init__(self, mrn: str, reason: str | None = None):
        self.mrn = mrn
        self.reason = reason or "expected 2 letters, 6 digits, 9 alphanumerics"
        super().__init__(f"Invalid MRN format: {mrn!r} ({self.reason})")


class NonPositiveQuantityError(ValidationError):
    """Quantity must be strictly positive."""

    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, quantity: Decimal, field: str = "quantity"):
        self.quantity = quantity
        self.field = field
        super().__init__(f"{field} must be positive, got {quantity}")


class QuantityPrecisionError(ValidationError, ValueError):
    """Quantity has more decimal places than the ledger stores."""

    code: str = "QUANTITY_PRECISION"

    def __init__(self, quantity: Decimal, places: int):
        self.quantity = quantity
        self.places = places
        super().__init__(
            f"Quantity {quantity} has more than {places} decimal places"
        )


class NegativeBalancingQuantityError(ValidationError):
    """
    A balancing lot was requested while the tank shows a deficit.

    A deficit cannot be balanced by adding a lot; adjust the tank or the
    MRN lots instead.
    """

    code: str = "NEGATIVE_BALANCING_QUANTITY"

    def __init__(self, tank_id: str, difference: Decimal):
        self.tank_id = tank_id
        self.difference = difference
        super().__init__(
            f"Cannot create balancing MRN for tank {tank_id}: "
            f"difference {difference} is negative"
        )


class LegacyBreakdownFormatError(ValidationError):
    """Legacy JSON allocation breakdown could not be parsed."""

    code: str = "LEGACY_BREAKDOWN_FORMAT"

    def __init__(self, reason: str, entry_index: int | None = None):
        self.reason = reason
        self.entry_index = entry_index
        where = f" at entry {entry_index}" if entry_index is not None else ""
        super().__init__(f"Malformed legacy breakdown{where}: {reason}")


class InvalidTransferError(ValidationError):
    """Tank-to-tank transfer with the same tank on both ends."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, tank_id: str):
        self.tank_id = tank_id
        super().__init__(f"Cannot transfer fuel from tank {tank_id} to itself")


# Coverage exceptions


class CoverageError(FuelKernelError):
    """Base exception for ledger/physical drift surfaced to the caller."""

    code: str = "COVERAGE_ERROR"


class InsufficientLotCoverageError(CoverageError):
    """The tank's MRN lots cannot cover the requested draw."""

    code: str = "INSUFFICIENT_LOT_COVERAGE"

    def __init__(
        self,
        tank_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.tank_id = tank_id
        self.requested = requested
        self.available = available
        self.uncovered = requested - available
        super().__init__(
            f"Insufficient MRN lot coverage in tank {tank_id}: "
            f"requested {requested}, lots hold {available}, "
            f"uncovered {self.uncovered}"
        )


class InsufficientTankQuantityError(CoverageError):
    """The physical tank reading cannot cover the requested draw."""

    code: str = "INSUFFICIENT_TANK_QUANTITY"

    def __init__(self, tank_id: str, requested: Decimal, current: Decimal):
        self.tank_id = tank_id
        self.requested = requested
        self.current = current
        super().__init__(
            f"Tank {tank_id} holds {current}, cannot draw {requested}"
        )


class UnresolvableAdjustmentError(CoverageError):
    """The MRN lots cannot absorb the correction delta within their bounds."""

    code: str = "UNRESOLVABLE_ADJUSTMENT"

    def __init__(self, tank_id: str, delta: Decimal, unresolved: Decimal):
        self.tank_id = tank_id
        self.delta = delta
        self.unresolved = unresolved
        super().__init__(
            f"Cannot distribute {delta} across MRN lots of tank {tank_id}: "
            f"{unresolved} left unresolved"
        )


# Authorization exceptions


class AuthorizationError(FuelKernelError):
    """Base exception for override-token failures."""

    code: str = "AUTHORIZATION_ERROR"


class OverrideRequiredError(AuthorizationError):
    """A guarded action was attempted without an override token."""

    code: str = "OVERRIDE_REQUIRED"

    def __init__(self, tank_id: str, operation_type: str, reason: str = ""):
        self.tank_id = tank_id
        self.operation_type = operation_type
        self.reason = reason
        msg = f"Override token required for {operation_type} on tank {tank_id}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class TokenNotFoundError(AuthorizationError):
    """Override token string is unknown."""

    code: str = "TOKEN_NOT_FOUND"

    def __init__(self, token: str):
        self.token = token
        super().__init__("Override token not found")


class TokenExpiredError(AuthorizationError):
    """Override token was presented after its expiry."""

    code: str = "TOKEN_EXPIRED"

    def __init__(self, token_id: str, expires_at: str):
        self.token_id = token_id
        self.expires_at = expires_at
        super().__init__(f"Override token {token_id} expired at {expires_at}")


class TokenAlreadyConsumedError(AuthorizationError):
    """Override token was already used to authorize an operation."""

    code: str = "TOKEN_ALREADY_CONSUMED"

    def __init__(self, token_id: str):
        self.token_id = token_id
        super().__init__(f"Override token {token_id} has already been used")


class TokenTankMismatchError(AuthorizationError):
    """Override token was issued for a different tank or operation."""

    code: str = "TOKEN_TANK_MISMATCH"

    def __init__(
        self,
        token_id: str,
        expected_tank_id: str,
        expected_operation: str,
        actual_tank_id: str,
        actual_operation: str,
    ):
        self.token_id = token_id
        self.expected_tank_id = expected_tank_id
        self.expected_operation = expected_operation
        self.actual_tank_id = actual_tank_id
        self.actual_operation = actual_operation
        super().__init__(
            f"Override token {token_id} authorizes {expected_operation} on "
            f"tank {expected_tank_id}, not {actual_operation} on tank "
            f"{actual_tank_id}"
        )


# Tank exceptions


class TankError(FuelKernelError):
    """Base exception for tank-level errors."""

    code: str = "TANK_ERROR"


class TankNotFoundError(TankError):
    """Tank with given ID was not found."""

    code: str = "TANK_NOT_FOUND"

    def __init__(self, tank_id: str):
        self.tank_id = tank_id
        super().__init__(f"Fuel tank not found: {tank_id}")


class TankAlreadyConsistentError(TankError):
    """Correction requested for a tank whose ledger already matches."""

    code: str = "TANK_ALREADY_CONSISTENT"

    def __init__(self, tank_id: str):
        self.tank_id = tank_id
        super().__init__(
            f"Tank {tank_id} is already consistent; no correction needed"
        )


# Concurrency exceptions


class ConcurrencyError(FuelKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(FuelKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Correction records, movements and allocation lines are immutable
    after creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
