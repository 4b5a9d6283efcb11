"""
Tests for the engine tracer.

Covers:
- Fingerprints are deterministic and depend only on selected fields
- Positional and keyword calls fingerprint identically
- LUMBER_ENGINE_TRACE records are emitted
"""

from decimal import Decimal

from lumber_engines.tracer import compute_input_fingerprint, traced_engine
from lumber_kernel.domain.values import DimensionSet, UnitCode


class TestComputeInputFingerprint:
    def test_deterministic(self):
        args = {"unit": UnitCode.LF, "qty": Decimal("10")}

        first = compute_input_fingerprint(("unit", "qty"), args)
        second = compute_input_fingerprint(("unit", "qty"), dict(args))

        assert first == second
        assert len(first) == 16

    def test_ignores_unselected_fields(self):
        a = compute_input_fingerprint(("qty",), {"qty": 1, "other": "x"})
        b = compute_input_fingerprint(("qty",), {"qty": 1, "other": "y"})

        assert a == b

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("qty",), {}) == compute_input_fingerprint(
            ("qty",), {"qty": None}
        )

    def test_dataclass_inputs(self):
        a = compute_input_fingerprint(("dims",), {"dims": DimensionSet.of(2, 4, 8)})
        b = compute_input_fingerprint(("dims",), {"dims": DimensionSet.of(2, 4, 10)})

        assert a != b


class TestTracedEngine:
    def test_emits_trace_record(self, captured_logs):
        @traced_engine("sample", "2.1", fingerprint_fields=("qty",))
        def double(qty):
            return qty * 2

        assert double(Decimal("4")) == Decimal("8")

        traces = [r for r in captured_logs() if r["message"] == "LUMBER_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "sample"
        assert traces[-1]["engine_version"] == "2.1"
        assert "duration_ms" in traces[-1]

    def test_positional_and_keyword_calls_match(self, captured_logs):
        @traced_engine("sample", "1.0", fingerprint_fields=("qty",))
        def identity(qty):
            return qty

        identity(5)
        identity(qty=5)

        traces = [r for r in captured_logs() if r["message"] == "LUMBER_ENGINE_TRACE"]
        assert traces[-1]["input_fingerprint"] == traces[-2]["input_fingerprint"]
