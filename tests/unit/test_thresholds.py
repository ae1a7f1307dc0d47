"""Tests for performance threshold classification."""

from __future__ import annotations

import pytest

from signalbox.records import ErrorSeverity, PerformanceCategory
from signalbox.thresholds import PERFORMANCE_THRESHOLDS, ThresholdEvaluator, classify


class TestClassify:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1000, PerformanceCategory.EXCELLENT),
            (1875, PerformanceCategory.EXCELLENT),
            (2000, PerformanceCategory.GOOD),
            (2500, PerformanceCategory.GOOD),
            (3000, PerformanceCategory.NEEDS_IMPROVEMENT),
            (3750, PerformanceCategory.NEEDS_IMPROVEMENT),
            (4000, PerformanceCategory.POOR),
        ],
    )
    def test_lcp_categories(self, value: float, expected: PerformanceCategory) -> None:
        """Boundary values fall into the better category."""
        assert classify(value, PERFORMANCE_THRESHOLDS["LCP"]) == expected

    def test_default_table(self) -> None:
        assert PERFORMANCE_THRESHOLDS["LCP"] == 2500
        assert PERFORMANCE_THRESHOLDS["FCP"] == 1800
        assert PERFORMANCE_THRESHOLDS["CLS"] == 0.1
        assert PERFORMANCE_THRESHOLDS["TTFB"] == 600


class TestThresholdEvaluator:
    def test_no_breach_for_good_values(self) -> None:
        evaluator = ThresholdEvaluator()
        assert evaluator.evaluate("LCP", 2000) is None
        assert evaluator.evaluate("FCP", 900) is None

    def test_needs_improvement_is_medium(self) -> None:
        breach = ThresholdEvaluator().evaluate("LCP", 3000)
        assert breach is not None
        assert breach.category == PerformanceCategory.NEEDS_IMPROVEMENT
        assert breach.severity == ErrorSeverity.MEDIUM
        assert not breach.is_poor
        assert breach.threshold == 2500

    def test_poor_is_high(self) -> None:
        breach = ThresholdEvaluator().evaluate("LCP", 4000)
        assert breach is not None
        assert breach.is_poor
        assert breach.severity == ErrorSeverity.HIGH

    def test_metric_without_threshold(self) -> None:
        evaluator = ThresholdEvaluator()
        assert evaluator.category_for("long_task", 900) is None
        assert evaluator.evaluate("long_task", 900) is None

    def test_custom_thresholds(self) -> None:
        evaluator = ThresholdEvaluator({"LCP": 1000})
        assert evaluator.category_for("LCP", 2000) == PerformanceCategory.POOR
        assert evaluator.category_for("FCP", 5000) is None

    def test_thresholds_property_is_a_copy(self) -> None:
        evaluator = ThresholdEvaluator()
        evaluator.thresholds["LCP"] = 1
        assert evaluator.thresholds["LCP"] == 2500
