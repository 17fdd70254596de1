"""
Selector - Rank eligible models for a task.

Given a TaskRequirement, a registry snapshot and (optionally) the metrics
store, produce a SelectionPlan: the best descriptor plus up to
max_fallbacks alternates, all of which satisfy every hard constraint.

Hard constraints (filter):
    privacy       privacy_required and the model is not local
    context       context_window defined and below min_context_length
    budget        cost_per_unit defined and above max_budget
    capabilities  a required capability tag is missing

Soft preferences (sort key, strict priority):
    a. preferred provider kind first
    b. quality floor satisfied first
    c. higher quality first
    d. observed success: models with successes by rate, then untried
       models, then models that only ever failed
    e. speed matching the preference first
    f. id ascending (total order, so plans are deterministic)

Selection is pure: the same registry, metrics and requirement always
yield the same plan.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from lightrouter.exceptions import NoEligibleModelError
from lightrouter.metrics.store import MetricsStore, ModelMetricsSummary
from lightrouter.registry.models import (
    Modality,
    ModelDescriptor,
    ProviderKind,
    Quality,
    Speed,
)

logger = logging.getLogger(__name__)

CONSTRAINT_MODALITY = "modality"
CONSTRAINT_PRIVACY = "privacy"
CONSTRAINT_CONTEXT = "context"
CONSTRAINT_BUDGET = "budget"
CONSTRAINT_CAPABILITIES = "capabilities"


class DescriptorLookup(Protocol):
    """Anything that lists descriptors by modality (registry or snapshot)."""

    def list_by_modality(self, modality: Modality) -> list[ModelDescriptor]: ...


@dataclass(frozen=True)
class TaskRequirement:
    """
    What the caller needs from a model.

    Attributes:
        modality: Output modality (required)
        min_context_length: Minimum context window in tokens
        max_budget: Maximum cost_per_unit the caller accepts
        privacy_required: Only local models may serve the task
        quality_floor: Preferred minimum quality (soft)
        speed_preference: Preferred speed class (soft)
        preferred_provider_kind: Preferred provider kind (soft)
        required_capabilities: Capability tags every candidate must carry
    """

    modality: Modality
    min_context_length: int | None = None
    max_budget: float | None = None
    privacy_required: bool = False
    quality_floor: Quality | None = None
    speed_preference: Speed | None = None
    preferred_provider_kind: ProviderKind | None = None
    required_capabilities: frozenset[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "modality": self.modality.value,
            "min_context_length": self.min_context_length,
            "max_budget": self.max_budget,
            "privacy_required": self.privacy_required,
            "quality_floor": self.quality_floor.value if self.quality_floor else None,
            "speed_preference": self.speed_preference.value if self.speed_preference else None,
            "preferred_provider_kind": (
                self.preferred_provider_kind.value if self.preferred_provider_kind else None
            ),
            "required_capabilities": sorted(self.required_capabilities),
        }


@dataclass(frozen=True)
class SelectionPlan:
    """Ranked models for one request: primary first, then fallbacks in order."""

    primary: ModelDescriptor
    fallbacks: tuple[ModelDescriptor, ...] = ()

    @property
    def candidates(self) -> tuple[ModelDescriptor, ...]:
        return (self.primary, *self.fallbacks)

    def to_dict(self) -> dict:
        return {
            "primary": self.primary.id,
            "fallbacks": [d.id for d in self.fallbacks],
        }


def check_eligibility(descriptor: ModelDescriptor, requirement: TaskRequirement) -> str | None:
    """
    Check the hard constraints for one descriptor.

    Returns:
        Name of the first violated constraint, or None when eligible
    """
    if requirement.privacy_required and not descriptor.is_local:
        return CONSTRAINT_PRIVACY

    if (
        requirement.min_context_length is not None
        and descriptor.context_window is not None
        and descriptor.context_window < requirement.min_context_length
    ):
        return CONSTRAINT_CONTEXT

    if (
        requirement.max_budget is not None
        and descriptor.cost_per_unit is not None
        and descriptor.cost_per_unit > requirement.max_budget
    ):
        return CONSTRAINT_BUDGET

    if not requirement.required_capabilities <= descriptor.capabilities:
        return CONSTRAINT_CAPABILITIES

    return None


def _success_tier(summary: ModelMetricsSummary | None) -> tuple[int, float]:
    if summary is None or not summary.has_data:
        return (1, 0.0)
    if summary.success_count > 0:
        return (0, -summary.success_rate)
    return (2, 0.0)


def _sort_key(
    descriptor: ModelDescriptor,
    requirement: TaskRequirement,
    summary: ModelMetricsSummary | None,
) -> tuple:
    preferred = requirement.preferred_provider_kind
    floor = requirement.quality_floor
    speed = requirement.speed_preference
    return (
        0 if preferred is None or descriptor.provider_kind == preferred else 1,
        0 if floor is None or descriptor.quality.rank >= floor.rank else 1,
        -descriptor.quality.rank,
        _success_tier(summary),
        0 if speed is None or descriptor.speed == speed else 1,
        descriptor.id,
    )


def rank_candidates(
    requirement: TaskRequirement,
    registry: DescriptorLookup,
    metrics: MetricsStore | None = None,
) -> list[ModelDescriptor]:
    """
    Filter and rank every eligible descriptor for a requirement.

    Raises:
        NoEligibleModelError: No descriptor passes the hard constraints
    """
    candidates = registry.list_by_modality(requirement.modality)
    if not candidates:
        raise NoEligibleModelError(requirement, [CONSTRAINT_MODALITY])

    eligible: list[ModelDescriptor] = []
    rejections: dict[str, str] = {}
    for descriptor in candidates:
        violation = check_eligibility(descriptor, requirement)
        if violation is None:
            eligible.append(descriptor)
        else:
            rejections[descriptor.id] = violation

    if not eligible:
        raise NoEligibleModelError(
            requirement, sorted(set(rejections.values())), rejections
        )

    summaries = (
        {d.id: metrics.summarize(d.id) for d in eligible} if metrics is not None else {}
    )
    return sorted(eligible, key=lambda d: _sort_key(d, requirement, summaries.get(d.id)))


def select_plan(
    requirement: TaskRequirement,
    registry: DescriptorLookup,
    metrics: MetricsStore | None = None,
    max_fallbacks: int = 2,
) -> SelectionPlan:
    """
    Choose a primary model and up to max_fallbacks alternates.

    Args:
        requirement: Task constraints and preferences
        registry: Registry or registry snapshot to select from
        metrics: Optional metrics store for the success-rate tie-breaker
        max_fallbacks: Number of alternates after the primary

    Returns:
        SelectionPlan with distinct, eligible descriptors

    Raises:
        NoEligibleModelError: No descriptor passes the hard constraints
    """
    if max_fallbacks < 0:
        raise ValueError("max_fallbacks must be >= 0")

    ranked = rank_candidates(requirement, registry, metrics)
    plan = SelectionPlan(primary=ranked[0], fallbacks=tuple(ranked[1 : max_fallbacks + 1]))

    logger.debug(
        f"Selected plan for {requirement.modality.value}: "
        f"primary={plan.primary.id}, fallbacks={[d.id for d in plan.fallbacks]}"
    )
    return plan
