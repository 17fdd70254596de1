"""
Metrics module: Per-attempt records, aggregation, and cost estimation.

This module contains:
- store.py: thread-safe MetricsStore with per-model summaries
- cost.py: CostEstimator for successful attempts
- reporter.py: MetricsReporter for the /metrics endpoint
"""

from lightrouter.metrics.cost import CostEstimator, estimate_tokens
from lightrouter.metrics.store import MetricsRecord, MetricsStore, ModelMetricsSummary

__all__ = [
    "MetricsRecord",
    "ModelMetricsSummary",
    "MetricsStore",
    "CostEstimator",
    "estimate_tokens",
]
