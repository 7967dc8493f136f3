"""Derived metric formulas.

Each formula divides one actual metric by another for the same tenant and
date, then scales the ratio. Input names are compared after
normalize_metric_name, so "Link  Clicks" and "link clicks" are the same input.
"""

from dataclasses import dataclass
from typing import Mapping


def normalize_metric_name(name: str) -> str:
    """Lowercase a metric name and collapse its whitespace."""
    return " ".join(name.lower().split())


@dataclass(frozen=True)
class DerivedMetric:
    name: str
    numerator: str
    denominator: str
    scale: float = 1.0

    @property
    def inputs(self) -> tuple[str, str]:
        return (normalize_metric_name(self.numerator), normalize_metric_name(self.denominator))

    def evaluate(self, values: Mapping[str, float | None]) -> float | None:
        """
        Compute the metric from actual values keyed by normalized metric name.

        Returns None when the numerator or denominator is missing or the
        denominator is zero. None means "not computable", never zero.
        """
        numerator_name, denominator_name = self.inputs
        numerator = values.get(numerator_name)
        denominator = values.get(denominator_name)
        if numerator is None or denominator is None or denominator == 0:
            return None
        return numerator / denominator * self.scale


DERIVED_METRICS: tuple[DerivedMetric, ...] = (
    DerivedMetric("CPM", "Spent", "Impressions", 1000),
    DerivedMetric("CPC (All)", "Spent", "Clicks (All)"),
    DerivedMetric("CTR (All)", "Clicks (All)", "Impressions", 100),
    DerivedMetric("CPC (Link)", "Spent", "Link Clicks"),
    DerivedMetric("CTR (Link)", "Link Clicks", "Impressions", 100),
    DerivedMetric("Cost Per App", "Spent", "Applications"),
    DerivedMetric("Cost Per MQL", "Spent", "MQL"),
    DerivedMetric("Cost Per Lead", "Spent", "Leads"),
    DerivedMetric("MQL Approval Rate", "MQL", "Applications", 100),
    DerivedMetric("Budget Utilization (%)", "Spent", "Daily Budget", 100),
    DerivedMetric("Unique Click to Apps", "Applications", "Clicks (All)", 100),
    DerivedMetric("Lead Rate", "Leads", "Clicks", 100),
)


def applicable_formulas(
    metric_names: set[str], formulas: tuple[DerivedMetric, ...] = DERIVED_METRICS
) -> list[DerivedMetric]:
    """Formulas with at least one input among the given (normalized) metric names."""
    return [f for f in formulas if metric_names.intersection(f.inputs)]
