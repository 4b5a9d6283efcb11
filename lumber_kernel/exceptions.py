"""
Typed Exception Hierarchy for the Lumber Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers catch by type and read structured attributes instead of parsing
message strings.  Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        tally_service.create_tally_sheet(...)
    except MissingRequiredFieldError as e:
        show_field_error(e.field_name, e.code)

===============================================================================
WHEN THE CORE RAISES
===============================================================================

Conversion and validation failures are returned as results
(ConversionResult / ValidationResult), and FIFO shortfalls are reported in
the allocation result.  Exceptions are reserved for:

  - Hard required-field validation (missing item or location, output BF
    greater than input BF, non-positive received quantity).
  - Lookups of records that do not exist.
  - Lot transitions the workflow forbids (void/closed lots are frozen).
  - Concurrency conflicts on lot rows (converted to failed OperationResult
    at the service boundary, see lumber_kernel.domain.results).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LumberKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingRequiredFieldError
    |   +-- InvalidQuantityError
    |   +-- OutputExceedsInputError
    |   +-- InvalidYieldPercentageError
    |
    +-- TallyError
    |   +-- TallySheetNotFoundError
    |   +-- TallySheetFrozenError
    |   +-- InsufficientTallyBalanceError
    |   +-- InvalidLotTransitionError
    |
    +-- YieldError
    |   +-- YieldEntryNotFoundError
    |
    +-- ItemError
    |   +-- ItemNotFoundError
    |
    +-- ConfigurationError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- BatchError
        +-- TaskNotRegisteredError

===============================================================================
"""


class LumberKernelError(Exception):
    """
    Base exception for all lumber kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LUMBER_KERNEL_ERROR"


# Validation exceptions


class ValidationError(LumberKernelError):
    """Base exception for hard validation failures."""

    code: str = "VALIDATION_ERROR"


class MissingRequiredFieldError(ValidationError):
    """A required field was not supplied."""

    code: str = "MISSING_REQUIRED_FIELD"

    def __init__(self, field_name: str, context: str = ""):
        self.field_name = field_name
        self.context = context
        suffix = f" for {context}" if context else ""
        super().__init__(f"{field_name} is required{suffix}")


class InvalidQuantityError(ValidationError):
    """Quantity is zero, negative, or otherwise unusable."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field_name: str, value: str, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field_name} {value}: {reason}")


class OutputExceedsInputError(ValidationError):
    """Recovered output board feet exceed the consumed input."""

    code: str = "OUTPUT_EXCEEDS_INPUT"

    def __init__(self, output_bf: str, input_bf: str):
        self.output_bf = output_bf
        self.input_bf = input_bf
        super().__init__(
            f"Output BF ({output_bf}) cannot exceed input BF ({input_bf})"
        )


class InvalidYieldPercentageError(ValidationError):
    """Yield percentage outside (0, 100]."""

    code: str = "INVALID_YIELD_PERCENTAGE"

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Yield percentage must be between 0 and 100, got {value}"
        )


# Tally exceptions


class TallyError(LumberKernelError):
    """Base exception for tally sheet (lot) errors."""

    code: str = "TALLY_ERROR"


class TallySheetNotFoundError(TallyError):
    """Tally sheet with given ID was not found."""

    code: str = "TALLY_SHEET_NOT_FOUND"

    def __init__(self, tally_id: str):
        self.tally_id = tally_id
        super().__init__(f"Tally sheet not found: {tally_id}")


class TallySheetFrozenError(TallyError):
    """Tally sheet is void or closed and accepts no balance changes."""

    code: str = "TALLY_SHEET_FROZEN"

    def __init__(self, tally_id: str, status: str):
        self.tally_id = tally_id
        self.status = status
        super().__init__(
            f"Tally sheet {tally_id} is {status} and cannot be modified"
        )


class InsufficientTallyBalanceError(TallyError):
    """A single-lot reservation asked for more than the lot has available."""

    code: str = "INSUFFICIENT_TALLY_BALANCE"

    def __init__(self, tally_id: str, requested_bf: str, available_bf: str):
        self.tally_id = tally_id
        self.requested_bf = requested_bf
        self.available_bf = available_bf
        super().__init__(
            f"Cannot allocate {requested_bf} BF from tally {tally_id}. "
            f"Only {available_bf} BF available."
        )


class InvalidLotTransitionError(TallyError):
    """Requested lot status transition is not defined by the lot workflow."""

    code: str = "INVALID_LOT_TRANSITION"

    def __init__(self, tally_id: str, from_status: str, to_status: str):
        self.tally_id = tally_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Tally sheet {tally_id} cannot move from {from_status} to {to_status}"
        )


# Yield exceptions


class YieldError(LumberKernelError):
    """Base exception for yield tracking errors."""

    code: str = "YIELD_ERROR"


class YieldEntryNotFoundError(YieldError):
    """Yield entry with given ID was not found."""

    code: str = "YIELD_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Yield entry not found: {entry_id}")


# Item exceptions


class ItemError(LumberKernelError):
    """Base exception for item master errors."""

    code: str = "ITEM_ERROR"


class ItemNotFoundError(ItemError):
    """Item is not present in the item master."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


# Configuration exceptions


class ConfigurationError(LumberKernelError):
    """Settings failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid settings: " + "; ".join(self.errors))


# Concurrency exceptions


class ConcurrencyError(LumberKernelError):
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


# Batch exceptions


class BatchError(LumberKernelError):
    """Base exception for batch processing errors."""

    code: str = "BATCH_ERROR"


class TaskNotRegisteredError(BatchError):
    """No batch task registered for the requested task type."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(f"No batch task registered for type '{task_type}'")
