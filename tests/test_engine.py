"""
Router Engine Tests

Tests for Router.execute() fallback behavior against scripted adapters.

Test Categories:
1. TestSuccessPath - first success stops, outcome contents
2. TestFallback - failure kinds, exhaustion, short-circuit
3. TestTimeoutsAndCancellation - per-attempt timeout, caller cancellation
4. TestConcurrency - snapshot isolation, metrics integrity under load
"""

import asyncio

import pytest

from lightrouter.dispatcher.base import GenerationOptions
from lightrouter.dispatcher.handlers import ProviderAdapters
from lightrouter.exceptions import (
    AllModelsExhaustedError,
    ErrorKind,
    GenerationError,
    NoEligibleModelError,
)
from lightrouter.metrics.store import MetricsStore
from lightrouter.registry.models import CapabilityRegistry, Modality, ProviderKind
from lightrouter.router.engine import Router
from lightrouter.router.selector import TaskRequirement
from tests.fixtures import FakeAdapter, failure, make_descriptor

TEXT = TaskRequirement(modality=Modality.TEXT)


class TestSuccessPath:
    """A successful attempt ends the request."""

    @pytest.mark.asyncio
    async def test_primary_success_makes_one_attempt(self, router, fake_adapter, metrics_store):
        """Verify a primary success records exactly one attempt."""
        outcome = await router.execute(TEXT, "hello world")

        assert outcome.result == "ok:gw-best"
        assert outcome.descriptor_used.id == "gw-best"
        assert outcome.attempts == ["gw-best"]
        assert outcome.fallback_used is False
        assert fake_adapter.calls == ["gw-best"]

        records = metrics_store.get_recent()
        assert len(records) == 1
        assert records[0].success is True
        assert records[0].error_kind is None

    @pytest.mark.asyncio
    async def test_cost_estimated_for_success(self, router, metrics_store):
        """Verify a successful attempt records its estimated cost."""
        # 11 + 10 chars -> 3 + 3 tokens at 0.03 per 1K
        outcome = await router.execute(TEXT, "hello world")

        assert outcome.cost_incurred == pytest.approx(6 / 1000 * 0.03)
        assert metrics_store.summarize("gw-best").total_cost == pytest.approx(outcome.cost_incurred)

    @pytest.mark.asyncio
    async def test_success_after_failure_stops(self, router, fake_adapter, metrics_store):
        """Verify routing stops at the first success after a failure."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.UNAVAILABLE)

        outcome = await router.execute(TEXT, "prompt")

        assert outcome.descriptor_used.id == "gw-good"
        assert outcome.attempts == ["gw-best", "gw-good"]
        assert outcome.fallback_used is True
        assert fake_adapter.calls == ["gw-best", "gw-good"]
        assert metrics_store.total_records == 2

    @pytest.mark.asyncio
    async def test_options_passed_to_adapter(self, registry, metrics_store):
        """Verify generation options reach the adapter."""
        seen = {}

        class RecordingAdapter(FakeAdapter):
            async def generate(self, descriptor, prompt, options):
                seen["prompt"] = prompt
                seen["options"] = options
                return "done"

        adapters = ProviderAdapters(adapters={kind: RecordingAdapter() for kind in ProviderKind})
        router = Router(registry, adapters, metrics=metrics_store)
        options = GenerationOptions(max_tokens=50, temperature=0.1, system_prompt="be brief")

        await router.execute(TEXT, "summarize", options)

        assert seen["prompt"] == "summarize"
        assert seen["options"] is options

    def test_plan_is_dry_run(self, router, fake_adapter, metrics_store):
        """Verify plan() makes no attempts and records nothing."""
        plan = router.plan(TEXT)

        assert plan.primary.id == "gw-best"
        assert fake_adapter.calls == []
        assert metrics_store.total_records == 0


class TestFallback:
    """Failure classification drives fallback."""

    @pytest.mark.asyncio
    async def test_exhaustion_after_primary_and_fallbacks(self, router, fake_adapter, metrics_store):
        """Verify exhaustion lists every attempt in order."""
        for descriptor_id in ("gw-best", "gw-good", "gw-basic", "local-llm"):
            fake_adapter.behaviors[descriptor_id] = failure(ErrorKind.UNAVAILABLE)

        with pytest.raises(AllModelsExhaustedError) as exc_info:
            await router.execute(TEXT, "prompt")

        err = exc_info.value
        assert err.attempts == ["gw-best", "gw-good", "gw-basic"]
        assert [f.kind for f in err.failures] == [ErrorKind.UNAVAILABLE] * 3
        # max_fallbacks=2 bounds the chain even though local-llm is eligible
        assert "local-llm" not in fake_adapter.calls

        records = metrics_store.get_recent()
        assert len(records) == 3
        assert all(not r.success for r in records)
        assert all(r.error_kind == ErrorKind.UNAVAILABLE for r in records)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind", [ErrorKind.UNAVAILABLE, ErrorKind.RATE_LIMITED, ErrorKind.TIMEOUT]
    )
    async def test_retryable_kinds_fall_back(self, router, fake_adapter, kind):
        """Verify each retryable kind moves to the next candidate."""
        fake_adapter.behaviors["gw-best"] = failure(kind)

        outcome = await router.execute(TEXT, "prompt")

        assert outcome.descriptor_used.id == "gw-good"

    @pytest.mark.asyncio
    async def test_invalid_request_short_circuits(self, router, fake_adapter, metrics_store):
        """Verify INVALID_REQUEST stops routing at the primary."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.INVALID_REQUEST, "gw-best")

        with pytest.raises(GenerationError) as exc_info:
            await router.execute(TEXT, "prompt")

        assert exc_info.value.kind == ErrorKind.INVALID_REQUEST
        assert fake_adapter.calls == ["gw-best"]

        records = metrics_store.get_recent()
        assert len(records) == 1
        assert records[0].error_kind == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_invalid_request_on_fallback_still_short_circuits(self, router, fake_adapter):
        """Verify INVALID_REQUEST on a fallback also stops routing."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.RATE_LIMITED)
        fake_adapter.behaviors["gw-good"] = failure(ErrorKind.INVALID_REQUEST)

        with pytest.raises(GenerationError):
            await router.execute(TEXT, "prompt")

        assert fake_adapter.calls == ["gw-best", "gw-good"]

    @pytest.mark.asyncio
    async def test_exhaustion_keeps_rate_limit_delays(self, router, fake_adapter):
        """Retry-After from each rate-limited attempt survives exhaustion."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.RATE_LIMITED, retry_after=30.0)
        fake_adapter.behaviors["gw-good"] = failure(ErrorKind.RATE_LIMITED, retry_after=5.0)
        fake_adapter.behaviors["gw-basic"] = failure(ErrorKind.RATE_LIMITED)

        with pytest.raises(AllModelsExhaustedError) as exc_info:
            await router.execute(TEXT, "prompt")

        err = exc_info.value
        assert [f.retry_after for f in err.failures] == [30.0, 5.0, None]
        assert err.failures[0].to_dict()["retry_after"] == 30.0
        assert err.retry_after == 30.0

    @pytest.mark.asyncio
    async def test_mixed_failures_have_no_overall_delay(self, router, fake_adapter):
        """A non-rate-limit failure in the chain means no single back-off applies."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.RATE_LIMITED, retry_after=30.0)
        fake_adapter.behaviors["gw-good"] = failure(ErrorKind.UNAVAILABLE)
        fake_adapter.behaviors["gw-basic"] = failure(ErrorKind.RATE_LIMITED, retry_after=10.0)

        with pytest.raises(AllModelsExhaustedError) as exc_info:
            await router.execute(TEXT, "prompt")

        assert exc_info.value.failures[0].retry_after == 30.0
        assert exc_info.value.retry_after is None

    @pytest.mark.asyncio
    async def test_no_eligible_model_makes_no_attempt(self, router, fake_adapter, metrics_store):
        """Verify no attempt is made when nothing is eligible."""
        with pytest.raises(NoEligibleModelError):
            await router.execute(TaskRequirement(modality=Modality.VIDEO), "prompt")

        assert fake_adapter.calls == []
        assert metrics_store.total_records == 0

    @pytest.mark.asyncio
    async def test_privacy_never_calls_remote(self, router, fake_adapter):
        """Verify private requests never reach remote adapters."""
        fake_adapter.behaviors["local-llm"] = failure(ErrorKind.UNAVAILABLE)
        req = TaskRequirement(modality=Modality.TEXT, privacy_required=True)

        with pytest.raises(AllModelsExhaustedError) as exc_info:
            await router.execute(req, "secret")

        assert fake_adapter.calls == ["local-llm"]
        assert exc_info.value.attempts == ["local-llm"]

    @pytest.mark.asyncio
    async def test_missing_adapter_counts_as_unavailable(self, registry, metrics_store):
        """Verify a kind without an adapter is an UNAVAILABLE attempt."""
        local = FakeAdapter("local")
        adapters = ProviderAdapters(adapters={ProviderKind.LOCAL: local})
        router = Router(registry, adapters, metrics=metrics_store, max_fallbacks=3)

        outcome = await router.execute(TEXT, "prompt")

        assert outcome.descriptor_used.id == "local-llm"
        assert outcome.attempts == ["gw-best", "gw-good", "gw-basic", "local-llm"]
        failed = [r for r in metrics_store.get_recent() if not r.success]
        assert len(failed) == 3
        assert all(r.error_kind == ErrorKind.UNAVAILABLE for r in failed)

    @pytest.mark.asyncio
    async def test_unclassified_exception_recorded_and_raised(
        self, router, fake_adapter, metrics_store
    ):
        """Verify an unexpected exception is recorded then raised."""
        fake_adapter.behaviors["gw-best"] = RuntimeError("adapter bug")

        with pytest.raises(RuntimeError, match="adapter bug"):
            await router.execute(TEXT, "prompt")

        assert fake_adapter.calls == ["gw-best"]
        assert metrics_store.summarize("gw-best").failure_count == 1

    def test_negative_max_fallbacks_rejected(self, registry, adapters):
        """Verify the router rejects negative max_fallbacks."""
        with pytest.raises(ValueError):
            Router(registry, adapters, max_fallbacks=-1)


class TestTimeoutsAndCancellation:
    """Per-attempt timeouts and caller cancellation."""

    @pytest.mark.asyncio
    async def test_slow_attempt_times_out_and_falls_back(
        self, registry, adapters, fake_adapter, metrics_store
    ):
        """Verify a slow attempt becomes a TIMEOUT and falls back."""
        fake_adapter.behaviors["gw-best"] = 5.0
        router = Router(registry, adapters, metrics=metrics_store, attempt_timeout_seconds=0.05)

        outcome = await router.execute(TEXT, "prompt")

        assert outcome.descriptor_used.id == "gw-good"
        first = metrics_store.get_recent()[0]
        assert first.descriptor_id == "gw-best"
        assert first.error_kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_options_timeout_overrides_router_default(
        self, registry, adapters, fake_adapter, metrics_store
    ):
        """Verify a per-request timeout overrides the router default."""
        fake_adapter.behaviors["gw-best"] = 5.0
        router = Router(registry, adapters, metrics=metrics_store, attempt_timeout_seconds=None)

        outcome = await router.execute(TEXT, "prompt", GenerationOptions(timeout_seconds=0.05))

        assert outcome.attempts == ["gw-best", "gw-good"]

    @pytest.mark.asyncio
    async def test_cancellation_propagates_without_record(self, router, fake_adapter, metrics_store):
        """Verify cancellation propagates without recording an attempt."""
        fake_adapter.behaviors["gw-best"] = 10.0

        task = asyncio.create_task(router.execute(TEXT, "prompt"))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert fake_adapter.calls == ["gw-best"]
        assert metrics_store.total_records == 0


class TestConcurrency:
    """Concurrent executes and registry refresh."""

    @pytest.mark.asyncio
    async def test_refresh_during_execute_keeps_plan(self, metrics_store):
        """Verify a registry refresh mid-request does not change the plan."""
        registry = CapabilityRegistry(
            [make_descriptor("a", provider_kind=ProviderKind.DIRECT), make_descriptor("b")]
        )

        class RefreshingAdapter(FakeAdapter):
            async def generate(self, descriptor, prompt, options):
                self.calls.append(descriptor.id)
                if descriptor.id == "a":
                    registry.replace([make_descriptor("c")])
                    raise GenerationError(ErrorKind.UNAVAILABLE, "gone")
                return f"ok:{descriptor.id}"

        adapter = RefreshingAdapter()
        router = Router(
            registry,
            ProviderAdapters(adapters={kind: adapter for kind in ProviderKind}),
            metrics=metrics_store,
        )
        req = TaskRequirement(modality=Modality.TEXT, preferred_provider_kind=ProviderKind.DIRECT)

        outcome = await router.execute(req, "prompt")

        assert outcome.attempts == ["a", "b"]
        assert registry.get_model_ids() == ["c"]

    @pytest.mark.asyncio
    async def test_concurrent_executes_record_every_attempt(self, registry):
        """Verify concurrent requests record every attempt."""
        metrics = MetricsStore(window_seconds=None)
        adapter = FakeAdapter(behaviors={"gw-best": failure(ErrorKind.RATE_LIMITED)})
        router = Router(
            registry,
            ProviderAdapters(adapters={kind: adapter for kind in ProviderKind}),
            metrics=metrics,
        )

        outcomes = await asyncio.gather(*(router.execute(TEXT, f"p{i}") for i in range(50)))

        assert all(o.descriptor_used.id == "gw-good" for o in outcomes)
        assert metrics.total_records == sum(len(o.attempts) for o in outcomes) == 100
        assert metrics.summarize("gw-best").failure_count == 50
        assert metrics.summarize("gw-good").success_count == 50
