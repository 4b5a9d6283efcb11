"""
lumber_engines.validation -- Field-level business validation.

Responsibility:
    Validate dimensions, unit codes, quantities, percentages and the input
    shapes of tally sheets, tally allocations and work-order lines.  Every
    function returns a ValidationResult so callers can show all problems at
    once next to the offending field.

Architecture position:
    Engines -- pure, zero I/O.  Used by services before persisting and by
    lumber_config.schema for settings validation.

Invariants enforced:
    - Validation never raises; hard failures are the caller's decision.
    - Warnings never make a result invalid.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from lumber_engines.bf_calculator import bf_per_piece, round_to
from lumber_kernel.domain.results import ValidationResult
from lumber_kernel.domain.values import ZERO, DimensionSet, UnitCode, parse_decimal

MAX_QUANTITY = Decimal("999999999")
LOW_YIELD_WARNING_PCT = Decimal("50")
HIGH_WASTE_WARNING_PCT = Decimal("50")
HIGH_MOISTURE_WARNING_PCT = Decimal("25")


def _num(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# =============================================================================
# Dimensions
# =============================================================================


def validate_dimension(
    value: Any,
    name: str,
    minimum: Decimal = ZERO,
    maximum: Decimal = Decimal("1000"),
    required: bool = True,
) -> ValidationResult:
    """One dimension: present, numeric, above ``minimum``; warn above ``maximum``."""
    if _is_blank(value):
        if required:
            return ValidationResult.of([f"{name} is required"])
        return ValidationResult.of()

    parsed = parse_decimal(value)
    if parsed is None:
        return ValidationResult.of([f"{name} must be a valid number"])

    errors: list[str] = []
    warnings: list[str] = []
    if parsed <= minimum:
        errors.append(f"{name} must be greater than {_num(Decimal(minimum))}")
    if parsed > maximum:
        warnings.append(f"{name} ({_num(parsed)}) exceeds typical maximum of {_num(Decimal(maximum))}")
    return ValidationResult.of(errors, warnings, {"value": parsed})


def validate_dimension_values(
    thickness: Any,
    width: Any,
    length: Any,
    all_required: bool = False,
) -> ValidationResult:
    """
    Thickness, width and length together, with lumber-specific range
    warnings.  ``all_required`` (the ``dimensions_required`` setting) adds
    an error when any of the three is missing.
    """
    thickness_result = validate_dimension(thickness, "Thickness", maximum=Decimal("12"), required=all_required)
    width_result = validate_dimension(width, "Width", maximum=Decimal("48"), required=all_required)
    length_result = validate_dimension(length, "Length", maximum=Decimal("40"), required=all_required)

    errors: list[str] = []
    warnings: list[str] = []
    for result in (thickness_result, width_result, length_result):
        errors.extend(result.errors)
        warnings.extend(result.warnings)

    t = parse_decimal(thickness)
    w = parse_decimal(width)
    if t is not None and ZERO < t < Decimal("0.25"):
        warnings.append('Thickness under 0.25" is unusually thin for lumber')
    if w is not None and ZERO < w < Decimal("1"):
        warnings.append('Width under 1" is unusually narrow for lumber')

    if all_required and any(_is_blank(v) for v in (thickness, width, length)):
        errors.append("All dimensions are required by system settings")

    return ValidationResult.of(errors, warnings)


def validate_uom_code(code: Any) -> ValidationResult:
    if _is_blank(code):
        return ValidationResult.of(["UOM code is required"])
    if not UnitCode.is_valid(code):
        valid = ", ".join(u.value for u in UnitCode)
        return ValidationResult.of([f"Invalid UOM code: {code}. Valid codes: {valid}"])
    return ValidationResult.of(data={"uom_code": UnitCode.parse(code)})


def validate_dimensions_for_uom(code: Any, dims: DimensionSet) -> ValidationResult:
    """Which dimensions are missing for converting ``code``."""
    unit = UnitCode.parse(code)
    errors: list[str] = []
    if unit is UnitCode.LF:
        if not dims.has_thickness:
            errors.append("Thickness required for Linear Feet conversion")
        if not dims.has_width:
            errors.append("Width required for Linear Feet conversion")
    elif unit in (UnitCode.SF, UnitCode.MSF):
        if not dims.has_thickness:
            errors.append("Thickness required for Square Feet conversion")
    elif unit in (UnitCode.EACH, UnitCode.BUNDLE):
        if not dims.has_thickness:
            errors.append("Thickness required for piece conversion")
        if not dims.has_width:
            errors.append("Width required for piece conversion")
        if not dims.has_length:
            errors.append("Length required for piece conversion")
    return ValidationResult.of(errors)


# =============================================================================
# Quantities and percentages
# =============================================================================


def validate_quantity(
    value: Any,
    name: str = "Quantity",
    allow_zero: bool = False,
    allow_negative: bool = False,
    max_value: Decimal = MAX_QUANTITY,
) -> ValidationResult:
    if _is_blank(value):
        return ValidationResult.of([f"{name} is required"])
    parsed = parse_decimal(value)
    if parsed is None:
        return ValidationResult.of([f"{name} must be a valid number"])

    errors: list[str] = []
    if not allow_negative and parsed < ZERO:
        errors.append(f"{name} cannot be negative")
    if not allow_zero and parsed == ZERO:
        errors.append(f"{name} cannot be zero")
    if parsed > max_value:
        errors.append(f"{name} exceeds maximum allowed value of {_num(max_value)}")
    return ValidationResult.of(errors, data={"value": parsed})


def validate_board_feet(board_feet: Any, dims: DimensionSet | None = None) -> ValidationResult:
    """
    A positive BF quantity; with complete dimensions also warns when the
    quantity is a tiny or fractional number of pieces.
    """
    result = validate_quantity(board_feet, "Board Feet")
    if not result.is_valid:
        return result
    bf: Decimal = result.data["value"]

    warnings: list[str] = []
    if dims is not None and dims.is_complete:
        per_piece = bf_per_piece(dims)
        implied = bf / per_piece
        if implied < Decimal("0.01"):
            warnings.append("BF quantity implies less than 1% of a piece")
        remainder = implied % 1
        if Decimal("0.01") < remainder < Decimal("0.99"):
            warnings.append(f"BF quantity implies {_num(round_to(implied, 2))} pieces (fractional)")
    return ValidationResult.of(warnings=warnings, data={"board_feet": bf})


def validate_percentage(
    value: Any,
    name: str = "Percentage",
    minimum: Decimal = ZERO,
    maximum: Decimal = Decimal("100"),
    required: bool = True,
) -> ValidationResult:
    if _is_blank(value):
        if required:
            return ValidationResult.of([f"{name} is required"])
        return ValidationResult.of()
    parsed = parse_decimal(value)
    if parsed is None:
        return ValidationResult.of([f"{name} must be a valid number"])

    errors: list[str] = []
    if parsed < minimum:
        errors.append(f"{name} must be at least {_num(Decimal(minimum))}%")
    if parsed > maximum:
        errors.append(f"{name} cannot exceed {_num(Decimal(maximum))}%")
    return ValidationResult.of(errors, data={"value": parsed})


def validate_yield_percentage(value: Any) -> ValidationResult:
    result = validate_percentage(value, "Yield", minimum=Decimal("1"), maximum=Decimal("100"))
    if result.is_valid and result.data["value"] < LOW_YIELD_WARNING_PCT:
        return ValidationResult.of(
            result.errors, (*result.warnings, "Yield below 50% is unusually low"), result.data,
        )
    return result


def validate_waste_percentage(value: Any) -> ValidationResult:
    result = validate_percentage(value, "Waste", minimum=ZERO, maximum=Decimal("100"))
    if result.is_valid and result.data["value"] > HIGH_WASTE_WARNING_PCT:
        return ValidationResult.of(
            result.errors, (*result.warnings, "Waste above 50% is unusually high"), result.data,
        )
    return result


# =============================================================================
# Record shapes
# =============================================================================


def validate_tally_data(data: Mapping[str, Any]) -> ValidationResult:
    """
    Input for a new tally sheet.  Keys: item_id, location_id,
    subsidiary_id, received_bf, and optionally moisture_pct, thickness,
    width, length.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if _is_blank(data.get("item_id")):
        errors.append("Item is required for tally sheet")
    if _is_blank(data.get("location_id")):
        errors.append("Location is required for tally sheet")
    if _is_blank(data.get("subsidiary_id")):
        errors.append("Subsidiary is required for tally sheet")

    errors.extend(validate_quantity(data.get("received_bf"), "Received BF").errors)

    moisture = data.get("moisture_pct")
    if moisture is not None:
        moisture_result = validate_percentage(moisture, "Moisture")
        errors.extend(moisture_result.errors)
        if moisture_result.is_valid and moisture_result.data["value"] > HIGH_MOISTURE_WARNING_PCT:
            warnings.append("Moisture above 25% is unusually high for kiln-dried lumber")

    dims = (data.get("thickness"), data.get("width"), data.get("length"))
    if any(not _is_blank(v) and v != 0 for v in dims):
        dim_result = validate_dimension_values(*dims, all_required=False)
        errors.extend(dim_result.errors)
        warnings.extend(dim_result.warnings)

    return ValidationResult.of(errors, warnings)


def validate_tally_allocation(
    tally_id: Any,
    demand_id: Any,
    allocated_bf: Any,
    available_bf: Decimal,
) -> ValidationResult:
    errors: list[str] = []
    if _is_blank(tally_id):
        errors.append("Tally sheet is required for allocation")
    if _is_blank(demand_id):
        errors.append("Work Order is required for allocation")

    qty = validate_quantity(allocated_bf, "Allocated BF")
    if not qty.is_valid:
        errors.extend(qty.errors)
    elif qty.data["value"] > available_bf:
        errors.append(
            f"Cannot allocate {_num(qty.data['value'])} BF. "
            f"Only {_num(Decimal(available_bf))} BF available."
        )
    return ValidationResult.of(errors)


def validate_work_order_line(
    item_id: Any,
    quantity: Any,
    selling_uom: Any = None,
    dims: DimensionSet | None = None,
    yield_pct: Any = None,
) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if _is_blank(item_id):
        errors.append("Item is required")
    errors.extend(validate_quantity(quantity, "Quantity").errors)

    if not _is_blank(selling_uom):
        uom_result = validate_uom_code(selling_uom)
        if not uom_result.is_valid:
            errors.extend(uom_result.errors)
        else:
            errors.extend(
                validate_dimensions_for_uom(selling_uom, dims or DimensionSet.empty()).errors
            )

    if yield_pct is not None:
        yield_result = validate_yield_percentage(yield_pct)
        errors.extend(yield_result.errors)
        warnings.extend(yield_result.warnings)

    return ValidationResult.of(errors, warnings)
