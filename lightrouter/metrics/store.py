"""
Metrics Store for Generation Attempts

Append-only record of every attempt the router makes, aggregated on read
into per-model summaries (success rate, average latency, total cost).
The selector consults these summaries as a ranking tie-breaker.

Uses in-memory storage bounded by a record count and a rolling time
window. The store is thread-safe using threading.Lock, which also covers
concurrent coroutines appending from FastAPI's async environment.
"""

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass

from lightrouter.exceptions import ErrorKind


@dataclass(frozen=True)
class MetricsRecord:
    """
    One attempted generation.

    Attributes:
        descriptor_id: Model that was attempted
        timestamp_ms: Unix time in milliseconds when the attempt started
        duration_ms: Time spent in the provider adapter
        success: Whether the attempt produced output
        cost_incurred: Estimated cost of the attempt
        error_kind: Classified failure kind for failed attempts
    """

    descriptor_id: str
    timestamp_ms: int
    duration_ms: float
    success: bool
    cost_incurred: float = 0.0
    error_kind: ErrorKind | None = None


@dataclass(frozen=True)
class ModelMetricsSummary:
    """
    Aggregate over the retained records of one model.

    success_rate is 0.0 when there is no data; check has_data to tell
    "never tried" apart from "always fails".
    """

    descriptor_id: str
    count: int = 0
    success_count: int = 0
    success_rate: float = 0.0
    average_duration_ms: float = 0.0
    total_cost: float = 0.0

    @property
    def has_data(self) -> bool:
        return self.count > 0

    @property
    def failure_count(self) -> int:
        return self.count - self.success_count


def _now_ms() -> int:
    return int(time.time() * 1000)


class MetricsStore:
    """
    Thread-safe in-memory metrics storage.

    Keeps a global log (for recent-history queries) and one bounded log per
    descriptor (so summarizing one model never scans the others). Both are
    deques with a maxlen, so appends are O(1) and memory is bounded.

    Example:
        store = MetricsStore()
        store.record(MetricsRecord(
            descriptor_id="llama3.1:8b",
            timestamp_ms=now_ms,
            duration_ms=850.0,
            success=True,
        ))
        summary = store.summarize("llama3.1:8b")
        print(f"Success rate: {summary.success_rate:.0%}")
    """

    def __init__(
        self,
        max_history: int = 10000,
        max_per_descriptor: int = 1000,
        window_seconds: float | None = 86400.0,
    ):
        """
        Initialize the metrics store.

        Args:
            max_history: Maximum records retained across all models.
            max_per_descriptor: Maximum records retained per model.
            window_seconds: Only records newer than this contribute to
                            summaries. None disables the time window.
        """
        self._lock = threading.Lock()
        self._max_per_descriptor = max_per_descriptor
        self._window_ms = int(window_seconds * 1000) if window_seconds else None

        self._records: deque[MetricsRecord] = deque(maxlen=max_history)
        self._by_descriptor: dict[str, deque[MetricsRecord]] = defaultdict(
            lambda: deque(maxlen=self._max_per_descriptor)
        )
        self._total_records: int = 0

    def record(self, entry: MetricsRecord) -> None:
        """
        Append a metrics record.

        Thread-safe; each call adds exactly one record.

        Args:
            entry: The attempt to record
        """
        with self._lock:
            self._records.append(entry)
            self._by_descriptor[entry.descriptor_id].append(entry)
            self._total_records += 1

    def summarize(self, descriptor_id: str, now_ms: int | None = None) -> ModelMetricsSummary:
        """
        Aggregate the retained window for one model.

        Args:
            descriptor_id: Model to summarize
            now_ms: Reference time for the window (defaults to now)

        Returns:
            ModelMetricsSummary (empty when the model has no records)
        """
        with self._lock:
            entries = list(self._by_descriptor.get(descriptor_id, ()))
        return self._aggregate(descriptor_id, entries, now_ms)

    def summarize_all(self, now_ms: int | None = None) -> dict[str, ModelMetricsSummary]:
        """Aggregate every model that has retained records."""
        with self._lock:
            copies = {
                descriptor_id: list(entries)
                for descriptor_id, entries in self._by_descriptor.items()
            }
        return {
            descriptor_id: self._aggregate(descriptor_id, entries, now_ms)
            for descriptor_id, entries in copies.items()
        }

    def _aggregate(
        self,
        descriptor_id: str,
        entries: list[MetricsRecord],
        now_ms: int | None,
    ) -> ModelMetricsSummary:
        if self._window_ms is not None:
            cutoff = (now_ms if now_ms is not None else _now_ms()) - self._window_ms
            entries = [e for e in entries if e.timestamp_ms >= cutoff]

        if not entries:
            return ModelMetricsSummary(descriptor_id=descriptor_id)

        count = len(entries)
        successes = sum(1 for e in entries if e.success)
        return ModelMetricsSummary(
            descriptor_id=descriptor_id,
            count=count,
            success_count=successes,
            success_rate=successes / count,
            average_duration_ms=sum(e.duration_ms for e in entries) / count,
            total_cost=sum(e.cost_incurred for e in entries),
        )

    def get_recent(self, count: int = 100) -> list[MetricsRecord]:
        """
        Get most recent metrics records.

        Thread-safe. Returns the newest records, oldest first.

        Args:
            count: Number of recent records to return
        """
        with self._lock:
            if count <= 0:
                return []
            return list(self._records)[-count:]

    @property
    def total_records(self) -> int:
        """Records appended since creation or the last reset (not capped by retention)."""
        with self._lock:
            return self._total_records

    def reset(self) -> None:
        """
        Reset all metrics.

        Thread-safe. Clears all stored records. Primarily used for testing.
        """
        with self._lock:
            self._records.clear()
            self._by_descriptor.clear()
            self._total_records = 0
