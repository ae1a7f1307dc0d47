"""
Performance thresholds and classification.

For a metric with threshold ``T`` an observed value ``v`` is:

    excellent          v <= 0.75 * T
    good               0.75 * T < v <= T
    needs_improvement  T < v <= 1.5 * T
    poor               v > 1.5 * T

Boundary values fall into the better category. ``needs_improvement`` and
``poor`` are breaches; ``poor`` breaches are high severity.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from signalbox.records import ErrorSeverity, PerformanceCategory

# Milliseconds, except CLS which is unitless
PERFORMANCE_THRESHOLDS: dict[str, float] = {
    "LCP": 2500,  # Largest Contentful Paint
    "FCP": 1800,  # First Contentful Paint
    "TBT": 300,  # Total Blocking Time
    "CLS": 0.1,  # Cumulative Layout Shift
    "FID": 100,  # First Input Delay
    "INP": 200,  # Interaction to Next Paint
    "TTFB": 600,  # Time to First Byte
    "TTI": 3800,  # Time to Interactive
    "FMP": 2000,  # First Meaningful Paint
    "SI": 3400,  # Speed Index
}

EXCELLENT_RATIO = 0.75
NEEDS_IMPROVEMENT_RATIO = 1.5


def classify(value: float, threshold: float) -> PerformanceCategory:
    if value <= threshold * EXCELLENT_RATIO:
        return PerformanceCategory.EXCELLENT
    if value <= threshold:
        return PerformanceCategory.GOOD
    if value <= threshold * NEEDS_IMPROVEMENT_RATIO:
        return PerformanceCategory.NEEDS_IMPROVEMENT
    return PerformanceCategory.POOR


@dataclass(frozen=True)
class ThresholdBreach:
    metric_name: str
    value: float
    threshold: float
    category: PerformanceCategory

    @property
    def severity(self) -> ErrorSeverity:
        if self.category == PerformanceCategory.POOR:
            return ErrorSeverity.HIGH
        return ErrorSeverity.MEDIUM

    @property
    def is_poor(self) -> bool:
        return self.category == PerformanceCategory.POOR


class ThresholdEvaluator:
    """Classifies metric values against a fixed threshold table."""

    def __init__(self, thresholds: Mapping[str, float] | None = None) -> None:
        self._thresholds = dict(PERFORMANCE_THRESHOLDS if thresholds is None else thresholds)

    @property
    def thresholds(self) -> dict[str, float]:
        return dict(self._thresholds)

    def category_for(self, metric_name: str, value: float) -> PerformanceCategory | None:
        """Category for ``value``, or None when the metric has no threshold."""
        threshold = self._thresholds.get(metric_name)
        if threshold is None:
            return None
        return classify(value, threshold)

    def evaluate(self, metric_name: str, value: float) -> ThresholdBreach | None:
        """Return a breach for needs_improvement/poor values, otherwise None."""
        category = self.category_for(metric_name, value)
        if category not in (PerformanceCategory.NEEDS_IMPROVEMENT, PerformanceCategory.POOR):
            return None
        return ThresholdBreach(
            metric_name=metric_name,
            value=value,
            threshold=self._thresholds[metric_name],
            category=category,
        )
