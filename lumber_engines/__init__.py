"""
Module: lumber_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for higher layers
    (lumber_services, lumber_batch).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import lumber_kernel (domain values, logging) and sibling
    engine modules.  MUST NOT import lumber_services or lumber_batch.

Invariants enforced:
    - Purity: engines never read the clock; dates are passed in.
    - Decimal-only arithmetic for quantities, dimensions and percentages.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from lumber_engines.conversion import ConversionEngine
    from lumber_engines.yield_calc import YieldCalculator
    from lumber_engines.fifo import plan_fifo_draws
"""

from lumber_engines.bf_calculator import (
    apply_yield,
    calculate_bf,
    calculate_waste,
    round_to,
)
from lumber_engines.conversion import (
    BetweenResult,
    ConversionEngine,
    ConversionMatrix,
    ConversionResult,
)
from lumber_engines.dimensions import (
    DimensionLayer,
    ResolvedDimensions,
    format_dimensions,
    merge_layers,
    validate_dimensions,
)
from lumber_engines.fifo import FifoCandidate, FifoPlan, plan_fifo_draws
from lumber_engines.reconciliation import (
    Discrepancy,
    LotReconciliation,
    Severity,
    TallyReconciliationChecker,
)
from lumber_engines.yield_calc import YieldCalculator

__all__ = [
    "apply_yield",
    "calculate_bf",
    "calculate_waste",
    "round_to",
    "BetweenResult",
    "ConversionEngine",
    "ConversionMatrix",
    "ConversionResult",
    "DimensionLayer",
    "ResolvedDimensions",
    "format_dimensions",
    "merge_layers",
    "validate_dimensions",
    "FifoCandidate",
    "FifoPlan",
    "plan_fifo_draws",
    "Discrepancy",
    "LotReconciliation",
    "Severity",
    "TallyReconciliationChecker",
    "YieldCalculator",
]
