"""
Pure domain layer.

Value objects, result types and the clock abstraction, with NO
dependencies on the ORM, the database or I/O.
"""

from lumber_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from lumber_kernel.domain.results import OperationResult, ValidationResult
from lumber_kernel.domain.values import (
    DimensionSet,
    DimensionSource,
    UnitCode,
    parse_decimal,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "OperationResult",
    "ValidationResult",
    "DimensionSet",
    "DimensionSource",
    "UnitCode",
    "parse_decimal",
]
