"""
Results -- Explicit success/failure return values for service operations.

Responsibility:
    Service operations that touch persistence return an OperationResult
    instead of raising for repository or concurrency failures, so that a
    failed allocation side-effect never blocks the surrounding business
    transaction.  Validation results use ValidationResult, which can carry
    several errors and warnings at once.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Outcome of a service operation.

    Contract:
        ``success=False`` requires ``error`` to carry a human-readable
        description; ``error_code`` carries the machine-readable code of the
        underlying exception when one exists.
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> OperationResult[T]:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, error_code: str | None = None) -> OperationResult[T]:
        return cls(success=False, error=error, error_code=error_code)


@dataclass(frozen=True)
class ValidationResult:
    """
    Structured validation outcome.

    Guarantees:
        - ``is_valid`` is True iff ``errors`` is empty.
        - warnings never affect validity.
    """

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @classmethod
    def of(
        cls,
        errors: list[str] | tuple[str, ...] = (),
        warnings: list[str] | tuple[str, ...] = (),
        data: dict[str, Any] | None = None,
    ) -> ValidationResult:
        return cls(errors=tuple(errors), warnings=tuple(warnings), data=data or {})

    @classmethod
    def combine(cls, *results: ValidationResult | None) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        for result in results:
            if result is not None:
                errors.extend(result.errors)
                warnings.extend(result.warnings)
        return cls.of(errors, warnings)

    def format(self) -> str:
        """Multi-line message for display near the offending field."""
        lines: list[str] = []
        if self.errors:
            lines.append("Validation Errors:")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        return "\n".join(lines)
