#!/usr/bin/env python3
"""
Demo Runner Script

Runs a set of sample task requirements through the Visual Light Router
and reports which model each one would use.

This script:
1. Builds a registry from the configured catalog (and discovery sources)
2. Prints the selection plan for each scenario
3. Optionally executes each scenario against the real backends
4. Generates a summary report of attempts, latency and cost

Usage:
    python scripts/run_demo.py                      # Plans only
    python scripts/run_demo.py --modality image     # Filter by modality
    python scripts/run_demo.py --execute            # Call the backends
    python scripts/run_demo.py --no-discovery       # Built-in catalog only
    python scripts/run_demo.py --catalog models.json
"""

import argparse
import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lightrouter.config import configure_logging, get_settings
from lightrouter.exceptions import RoutingError
from lightrouter.factory import build_router, load_registry
from lightrouter.metrics.reporter import MetricsReporter
from lightrouter.registry.models import Modality, ProviderKind, Quality, Speed
from lightrouter.router.engine import Router
from lightrouter.router.selector import TaskRequirement


@dataclass
class Scenario:
    """A named requirement plus the prompt to send with it."""

    name: str
    requirement: TaskRequirement
    prompt: str


SCENARIOS: list[Scenario] = [
    Scenario(
        name="private-summary",
        requirement=TaskRequirement(modality=Modality.TEXT, privacy_required=True),
        prompt="Summarize our internal roadmap in three bullets.",
    ),
    Scenario(
        name="long-document",
        requirement=TaskRequirement(
            modality=Modality.TEXT,
            min_context_length=100_000,
            required_capabilities=frozenset({"long-context"}),
        ),
        prompt="Extract every action item from the attached transcript.",
    ),
    Scenario(
        name="fast-cheap-text",
        requirement=TaskRequirement(
            modality=Modality.TEXT,
            max_budget=0.001,
            speed_preference=Speed.FAST,
            preferred_provider_kind=ProviderKind.DIRECT,
        ),
        prompt="Write a one-line caption for a chart of monthly sales.",
    ),
    Scenario(
        name="hero-image",
        requirement=TaskRequirement(modality=Modality.IMAGE, quality_floor=Quality.HIGH),
        prompt="Isometric infographic of a data pipeline, flat colors",
    ),
    Scenario(
        name="explainer-video",
        requirement=TaskRequirement(modality=Modality.VIDEO, quality_floor=Quality.VERY_HIGH),
        prompt="Ten-second animated explainer of a bar chart growing",
    ),
    Scenario(
        name="background-music",
        requirement=TaskRequirement(modality=Modality.AUDIO),
        prompt="Calm ambient loop for a presentation",
    ),
]


def print_plan(router: Router, scenario: Scenario) -> None:
    print(f"\n[{scenario.name}] {scenario.requirement.modality.value}")
    try:
        plan = router.plan(scenario.requirement)
    except RoutingError as e:
        print(f"  no plan: {e}")
        return

    print(f"  primary:   {plan.primary.id} ({plan.primary.provider_kind.value})")
    for i, fallback in enumerate(plan.fallbacks, 1):
        print(f"  fallback {i}: {fallback.id} ({fallback.provider_kind.value})")


async def execute_scenario(router: Router, scenario: Scenario) -> None:
    try:
        outcome = await router.execute(scenario.requirement, scenario.prompt)
    except RoutingError as e:
        print(f"  FAILED: {e}")
        return
    except Exception as e:
        print(f"  ERROR: {e!r}")
        return

    preview = outcome.result[:80] + ("..." if len(outcome.result) > 80 else "")
    print(
        f"  OK via {outcome.descriptor_used.id} after {len(outcome.attempts)} attempt(s), "
        f"{outcome.latency_ms:.0f}ms, cost {outcome.cost_incurred:.6f}"
    )
    print(f"  result: {preview!r}")


def print_report(router: Router) -> None:
    """Print a formatted report of attempt metrics."""
    report = MetricsReporter(router.metrics, router.registry).generate_report()

    print("\n" + "=" * 60)
    print("VISUAL LIGHT ROUTER DEMO RESULTS")
    print("=" * 60)
    print(f"\nAttempts: {report.total_attempts} ({report.successful_attempts} succeeded)")
    print(f"Success rate: {report.overall_success_rate:.1%}")
    print(f"Avg latency: {report.avg_latency_ms:.1f}ms")
    print(f"Total cost: {report.total_cost:.6f}")

    if report.attempts_by_model:
        print(f"\n  {'Model':<24} {'Attempts':>8} {'OK':>4} {'Avg ms':>8}")
        print(f"  {'-'*24} {'-'*8} {'-'*4} {'-'*8}")
        for model_id, metrics in report.attempts_by_model.items():
            print(
                f"  {model_id:<24} {metrics.request_count:>8} "
                f"{metrics.success_count:>4} {metrics.avg_latency_ms:>8.1f}"
            )
    print("\n" + "=" * 60)


async def run_demo(args: argparse.Namespace) -> None:
    overrides = {}
    if args.catalog:
        overrides["catalog_path"] = args.catalog
    if args.no_discovery:
        overrides["discover_local_models"] = False
        overrides["discover_gateway_models"] = False
    settings = get_settings().model_copy(update=overrides)
    configure_logging(settings)

    router = build_router(settings)
    await load_registry(router.registry, settings)
    stats = router.registry.get_statistics()
    print(f"Registry: {stats['total_models']} models {stats['by_modality']}")

    scenarios = [
        s for s in SCENARIOS if args.modality is None or s.requirement.modality.value == args.modality
    ]

    try:
        for scenario in scenarios:
            print_plan(router, scenario)
            if args.execute:
                await execute_scenario(router, scenario)
    finally:
        await router.adapters.aclose()

    if args.execute:
        print_report(router)


def main():
    """Main entry point for the demo runner."""
    parser = argparse.ArgumentParser(
        description="Show (and optionally run) model selection for sample tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--modality",
        choices=[m.value for m in Modality],
        help="Only run scenarios of this modality",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Call the backends instead of only printing plans",
    )
    parser.add_argument("--catalog", help="Path to an extra JSON model catalog")
    parser.add_argument(
        "--no-discovery",
        action="store_true",
        help="Skip Ollama/OpenRouter model discovery",
    )

    args = parser.parse_args()

    print("=" * 60)
    print("Visual Light Router Demo Runner")
    print("=" * 60)

    asyncio.run(run_demo(args))


if __name__ == "__main__":
    main()
