"""
Metrics Reporter for API Responses

Transforms per-model summaries from the MetricsStore into the
MetricsResponse schema served by the /metrics endpoint.
"""

from collections import Counter

from lightrouter.metrics.store import MetricsStore
from lightrouter.registry.models import CapabilityRegistry
from lightrouter.schemas.routing import MetricsResponse, ModelMetrics


class MetricsReporter:
    """
    Generate metrics reports from aggregated data.

    Example:
        reporter = MetricsReporter(store, registry)
        return reporter.generate_report()  # Ready for JSON serialization
    """

    def __init__(self, store: MetricsStore, registry: CapabilityRegistry | None = None):
        """
        Args:
            store: MetricsStore to report from
            registry: Used to attribute attempts to provider kinds; models
                      no longer registered are reported as "unknown"
        """
        self._store = store
        self._registry = registry

    def generate_report(self) -> MetricsResponse:
        """
        Generate a complete metrics report over the store's rolling window.

        Returns:
            MetricsResponse ready for API serialization
        """
        summaries = self._store.summarize_all()

        models: dict[str, ModelMetrics] = {}
        by_kind: Counter[str] = Counter()
        total = successes = 0
        total_cost = total_duration = 0.0

        for descriptor_id, summary in sorted(summaries.items()):
            if not summary.has_data:
                continue

            models[descriptor_id] = ModelMetrics(
                model_id=descriptor_id,
                request_count=summary.count,
                success_count=summary.success_count,
                success_rate=round(summary.success_rate, 4),
                avg_latency_ms=round(summary.average_duration_ms, 2),
                total_cost=round(summary.total_cost, 6),
            )
            by_kind[self._provider_kind(descriptor_id)] += summary.count

            total += summary.count
            successes += summary.success_count
            total_cost += summary.total_cost
            total_duration += summary.average_duration_ms * summary.count

        return MetricsResponse(
            total_attempts=total,
            successful_attempts=successes,
            overall_success_rate=round(successes / total, 4) if total else 0.0,
            total_cost=round(total_cost, 6),
            avg_latency_ms=round(total_duration / total, 2) if total else 0.0,
            attempts_by_model=models,
            attempts_by_provider_kind=dict(by_kind),
        )

    def _provider_kind(self, descriptor_id: str) -> str:
        descriptor = self._registry.get(descriptor_id) if self._registry else None
        return descriptor.provider_kind.value if descriptor else "unknown"
