"""
Router Engine - Execute a generation with ordered fallback.

For each request the router:
1. Takes the current registry snapshot (a concurrent refresh cannot
   change the plan mid-request)
2. Asks the selector for a SelectionPlan
3. Tries the primary, then each fallback, strictly one at a time
4. Records one MetricsRecord per attempt
5. Returns the first success, or raises once the plan is exhausted

INVALID_REQUEST failures are the caller's fault and are raised at once;
every other failure kind moves on to the next descriptor. Cancellation of
the calling task abandons the in-flight attempt and is not recorded.
"""

import asyncio
import logging
import time
from dataclasses import dataclass

from lightrouter.dispatcher.base import GenerationOptions
from lightrouter.dispatcher.handlers import ProviderAdapters
from lightrouter.exceptions import (
    AllModelsExhaustedError,
    AttemptFailure,
    ErrorKind,
    GenerationError,
)
from lightrouter.metrics.cost import CostEstimator
from lightrouter.metrics.store import MetricsRecord, MetricsStore
from lightrouter.registry.models import CapabilityRegistry, ModelDescriptor
from lightrouter.router.selector import SelectionPlan, TaskRequirement, select_plan

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutcome:
    """
    Result of a successful routed generation.

    Attributes:
        result: Generated text, or a URL/data URI for media
        descriptor_used: Model that produced the result
        attempts: Descriptor ids tried, in order (last one succeeded)
        latency_ms: Wall time of the whole execute() call
        cost_incurred: Estimated cost of the successful attempt
    """

    result: str
    descriptor_used: ModelDescriptor
    attempts: list[str]
    latency_ms: float
    cost_incurred: float = 0.0

    @property
    def fallback_used(self) -> bool:
        return len(self.attempts) > 1

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "result": self.result,
            "descriptor_used": self.descriptor_used.id,
            "attempts": self.attempts,
            "latency_ms": round(self.latency_ms, 2),
            "cost_incurred": self.cost_incurred,
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


class Router:
    """
    Selection plus fallback execution over a capability registry.

    Example:
        router = Router(registry, adapters, metrics=MetricsStore())
        outcome = await router.execute(
            TaskRequirement(modality=Modality.TEXT, privacy_required=True),
            "Summarize this document",
        )
        print(outcome.descriptor_used.id, outcome.result)
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        adapters: ProviderAdapters,
        metrics: MetricsStore | None = None,
        max_fallbacks: int = 2,
        attempt_timeout_seconds: float | None = None,
        cost_estimator: CostEstimator | None = None,
    ) -> None:
        """
        Args:
            registry: Model catalog to select from
            adapters: Provider kind -> adapter lookup
            metrics: Store for per-attempt records (a fresh one if omitted)
            max_fallbacks: Alternates tried after the primary
            attempt_timeout_seconds: Default per-attempt timeout (None = none)
            cost_estimator: Cost model for successful attempts (None = no cost)
        """
        if max_fallbacks < 0:
            raise ValueError("max_fallbacks must be >= 0")
        self.registry = registry
        self.adapters = adapters
        self.metrics = metrics if metrics is not None else MetricsStore()
        self.max_fallbacks = max_fallbacks
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self.cost_estimator = cost_estimator

    def plan(self, requirement: TaskRequirement) -> SelectionPlan:
        """
        Dry run: the plan execute() would follow right now.

        Raises:
            NoEligibleModelError: No descriptor passes the hard constraints
        """
        return select_plan(
            requirement,
            self.registry.snapshot(),
            metrics=self.metrics,
            max_fallbacks=self.max_fallbacks,
        )

    async def execute(
        self,
        requirement: TaskRequirement,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> GenerationOutcome:
        """
        Generate with the best eligible model, falling back on failure.

        Args:
            requirement: Task constraints and preferences
            prompt: Prompt passed to the model
            options: Generation parameters (defaults if omitted)

        Returns:
            GenerationOutcome from the first successful attempt

        Raises:
            NoEligibleModelError: Nothing eligible; no attempt was made
            GenerationError: An attempt failed with INVALID_REQUEST
            AllModelsExhaustedError: Every planned descriptor failed
        """
        options = options or GenerationOptions()
        start_time = time.perf_counter()

        plan = self.plan(requirement)
        failures: list[AttemptFailure] = []
        attempts: list[str] = []

        for descriptor in plan.candidates:
            attempts.append(descriptor.id)
            try:
                result, cost = await self._attempt(descriptor, prompt, options)
            except GenerationError as e:
                failures.append(
                    AttemptFailure(descriptor.id, e.kind, e.message, retry_after=e.retry_after)
                )
                if not e.kind.allows_fallback:
                    logger.warning(
                        f"Invalid request rejected by {descriptor.id}; not falling back: {e.message}"
                    )
                    raise
                logger.warning(
                    f"Attempt {len(attempts)}/{len(plan.candidates)} failed: "
                    f"model={descriptor.id}, kind={e.kind.value}, error={e.message}"
                )
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"Generation succeeded: model={descriptor.id}, attempts={len(attempts)}, "
                f"latency={latency_ms:.0f}ms"
            )
            return GenerationOutcome(
                result=result,
                descriptor_used=descriptor,
                attempts=attempts,
                latency_ms=latency_ms,
                cost_incurred=cost,
            )

        logger.error(f"All models exhausted: {[f.descriptor_id for f in failures]}")
        raise AllModelsExhaustedError(failures)

    async def _attempt(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> tuple[str, float]:
        """
        Run one attempt and record exactly one metrics entry for it.

        CancelledError propagates without a record. Unclassified exceptions
        are recorded as failures and re-raised unchanged.
        """
        timestamp_ms = _now_ms()
        start = time.perf_counter()

        def record(success: bool, cost: float = 0.0, kind: ErrorKind | None = None) -> None:
            self.metrics.record(
                MetricsRecord(
                    descriptor_id=descriptor.id,
                    timestamp_ms=timestamp_ms,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    success=success,
                    cost_incurred=cost,
                    error_kind=kind,
                )
            )

        try:
            result = await self._call_adapter(descriptor, prompt, options)
        except GenerationError as e:
            record(False, kind=e.kind)
            raise
        except asyncio.CancelledError:
            raise
        except Exception:
            record(False, kind=ErrorKind.UNAVAILABLE)
            raise

        cost = (
            self.cost_estimator.estimate(descriptor, prompt, result)
            if self.cost_estimator is not None
            else 0.0
        )
        record(True, cost=cost)
        return result, cost

    async def _call_adapter(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        adapter = self.adapters.get(descriptor.provider_kind)
        if adapter is None:
            raise GenerationError(
                ErrorKind.UNAVAILABLE,
                f"No adapter configured for {descriptor.provider_kind.value} models",
                descriptor_id=descriptor.id,
            )

        timeout = (
            options.timeout_seconds
            if options.timeout_seconds is not None
            else self.attempt_timeout_seconds
        )
        logger.info(f"Dispatching to {descriptor.id} via {adapter.name}")

        try:
            return await asyncio.wait_for(
                adapter.generate(descriptor, prompt, options), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(
                ErrorKind.TIMEOUT,
                f"Attempt exceeded {timeout}s",
                descriptor_id=descriptor.id,
            ) from e
