"""Tests for the engine tracer fingerprint."""

from datetime import date
from enum import Enum

from erp_engines.tracer import compute_input_fingerprint, traced_engine


class _Kind(Enum):
    A = "a"


class TestInputFingerprint:

    def test_dict_key_order_does_not_matter(self):
        first = compute_input_fingerprint(("x",), {"x": {"b": 1, "a": 2}})
        second = compute_input_fingerprint(("x",), {"x": {"a": 2, "b": 1}})
        assert first == second
        assert len(first) == 16

    def test_sequence_order_matters(self):
        assert compute_input_fingerprint(("x",), {"x": [1, 2]}) != compute_input_fingerprint(
            ("x",), {"x": [2, 1]}
        )

    def test_missing_fields_and_enums(self):
        assert compute_input_fingerprint(("k", "missing"), {"k": _Kind.A}) == (
            compute_input_fingerprint(("k", "missing"), {"k": "a", "missing": None})
        )


class TestTracedEngine:

    def test_result_is_returned_unchanged(self, captured_logs):
        @traced_engine("demo", "2.0", fingerprint_fields=("as_of",))
        def compute(*, as_of):
            return as_of.year

        assert compute(as_of=date(2024, 1, 1)) == 2024
        trace = [r for r in captured_logs() if r["message"] == "ERP_ENGINE_TRACE"][-1]
        assert trace["engine_name"] == "demo"
        assert trace["engine_version"] == "2.0"
        assert trace["duration_ms"] >= 0
