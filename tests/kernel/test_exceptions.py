"""
Tests for the kernel exception hierarchy.

Covers:
- Every concrete exception carries its machine-readable code
- Structured attributes on the most used exceptions
- Hierarchy: callers can catch by family
"""

import pytest

from lumber_kernel.exceptions import (
    BatchError,
    ConcurrencyError,
    ConfigurationError,
    InsufficientTallyBalanceError,
    InvalidLotTransitionError,
    InvalidQuantityError,
    InvalidYieldPercentageError,
    ItemNotFoundError,
    LumberKernelError,
    MissingRequiredFieldError,
    OptimisticLockError,
    OutputExceedsInputError,
    TallyError,
    TallySheetFrozenError,
    TallySheetNotFoundError,
    TaskNotRegisteredError,
    ValidationError,
    YieldEntryNotFoundError,
)


class TestExceptionCodes:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (MissingRequiredFieldError("item_id"), "MISSING_REQUIRED_FIELD"),
            (InvalidQuantityError("received_bf", "-1", "must be positive"), "INVALID_QUANTITY"),
            (OutputExceedsInputError("90", "80"), "OUTPUT_EXCEEDS_INPUT"),
            (InvalidYieldPercentageError("101"), "INVALID_YIELD_PERCENTAGE"),
            (TallySheetNotFoundError("lot-1"), "TALLY_SHEET_NOT_FOUND"),
            (TallySheetFrozenError("lot-1", "void"), "TALLY_SHEET_FROZEN"),
            (InsufficientTallyBalanceError("lot-1", "50", "20"), "INSUFFICIENT_TALLY_BALANCE"),
            (InvalidLotTransitionError("lot-1", "void", "open"), "INVALID_LOT_TRANSITION"),
            (YieldEntryNotFoundError("e-1"), "YIELD_ENTRY_NOT_FOUND"),
            (ItemNotFoundError("2X4"), "ITEM_NOT_FOUND"),
            (ConfigurationError(["bad"]), "CONFIGURATION_ERROR"),
            (OptimisticLockError("TallySheet", "lot-1"), "OPTIMISTIC_LOCK_CONFLICT"),
            (TaskNotRegisteredError("x"), "TASK_NOT_REGISTERED"),
        ],
    )
    def test_code(self, exc, code):
        assert exc.code == code
        assert isinstance(exc, LumberKernelError)


class TestExceptionData:
    def test_missing_field_message(self):
        exc = MissingRequiredFieldError("location_id", "tally sheet")

        assert exc.field_name == "location_id"
        assert str(exc) == "location_id is required for tally sheet"

    def test_missing_field_without_context(self):
        assert str(MissingRequiredFieldError("item_id")) == "item_id is required"

    def test_insufficient_balance_message(self):
        exc = InsufficientTallyBalanceError("lot-1", "50", "20")

        assert str(exc) == "Cannot allocate 50 BF from tally lot-1. Only 20 BF available."

    def test_output_exceeds_input_message(self):
        assert str(OutputExceedsInputError("90", "80")) == (
            "Output BF (90) cannot exceed input BF (80)"
        )

    def test_configuration_errors_joined(self):
        exc = ConfigurationError(["a is wrong", "b is wrong"])

        assert exc.errors == ["a is wrong", "b is wrong"]
        assert str(exc) == "Invalid settings: a is wrong; b is wrong"


class TestHierarchy:
    def test_families(self):
        assert issubclass(OutputExceedsInputError, ValidationError)
        assert issubclass(InvalidLotTransitionError, TallyError)
        assert issubclass(OptimisticLockError, ConcurrencyError)
        assert issubclass(TaskNotRegisteredError, BatchError)

    def test_catch_by_family(self):
        with pytest.raises(TallyError):
            raise TallySheetFrozenError("lot-1", "closed")
