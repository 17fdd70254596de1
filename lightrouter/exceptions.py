"""
Routing Error Taxonomy

Three failure families cross component boundaries:

- GenerationError: raised by provider adapters, classified by ErrorKind
- NoEligibleModelError: raised by the selector when no descriptor
  satisfies the hard constraints ("relax your constraints")
- AllModelsExhaustedError: raised by the router when every planned
  descriptor was tried and failed ("try again later")

The router only retries across descriptors for kinds where another
backend could succeed; INVALID_REQUEST always surfaces to the caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lightrouter.router.selector import TaskRequirement


class ErrorKind(str, Enum):
    """Classification of a failed generation attempt."""

    UNAVAILABLE = "unavailable"  # Backend unreachable, not running, or unsupported
    RATE_LIMITED = "rate_limited"  # Back off before retrying this descriptor
    INVALID_REQUEST = "invalid_request"  # Caller bug, never retried elsewhere
    TIMEOUT = "timeout"

    @property
    def allows_fallback(self) -> bool:
        """Whether the router may try the next descriptor after this failure."""
        return self is not ErrorKind.INVALID_REQUEST


class RoutingError(Exception):
    """Base class for every error raised by the routing core."""


class GenerationError(RoutingError):
    """
    A provider adapter failed to produce output.

    Attributes:
        kind: Classified failure kind
        message: Human-readable description from the backend
        descriptor_id: Descriptor being attempted, if known
        retry_after: Seconds the backend asked us to wait (rate limits only)
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        descriptor_id: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(f"[{kind.value}] {message}")
        self.kind = kind
        self.message = message
        self.descriptor_id = descriptor_id
        self.retry_after = retry_after


class NoEligibleModelError(RoutingError):
    """
    No registered descriptor satisfies the requirement's hard constraints.

    Attributes:
        requirement: The TaskRequirement that could not be satisfied
        unmet_constraints: Constraint names that eliminated candidates
            ("modality" when nothing of that modality is registered)
        rejections: Descriptor id -> first constraint it violated
    """

    def __init__(
        self,
        requirement: "TaskRequirement",
        unmet_constraints: list[str],
        rejections: dict[str, str] | None = None,
    ) -> None:
        self.requirement = requirement
        self.unmet_constraints = unmet_constraints
        self.rejections = rejections or {}
        super().__init__(
            f"No eligible {requirement.modality.value} model "
            f"(unmet constraints: {', '.join(unmet_constraints)})"
        )


@dataclass(frozen=True)
class AttemptFailure:
    """One failed attempt inside an exhausted fallback chain."""

    descriptor_id: str
    kind: ErrorKind
    message: str
    retry_after: float | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "descriptor_id": self.descriptor_id,
            "kind": self.kind.value,
            "message": self.message,
            "retry_after": self.retry_after,
        }


class AllModelsExhaustedError(RoutingError):
    """
    Every descriptor in the selection plan was attempted and failed.

    Attributes:
        failures: Ordered AttemptFailure per attempt (id, kind, message,
            retry_after)
    """

    def __init__(self, failures: list[AttemptFailure]) -> None:
        self.failures = failures
        summary = ", ".join(f"{f.descriptor_id}={f.kind.value}" for f in failures)
        super().__init__(f"All models exhausted after {len(failures)} attempts: {summary}")

    @property
    def attempts(self) -> list[str]:
        """Descriptor ids in the order they were attempted."""
        return [f.descriptor_id for f in self.failures]

    @property
    def retry_after(self) -> float | None:
        """
        Seconds to wait before retrying, when every attempt was rate limited.

        Uses the longest Retry-After any backend sent; None if some attempt
        failed for another reason or no backend gave a delay.
        """
        if not self.failures or any(f.kind != ErrorKind.RATE_LIMITED for f in self.failures):
            return None
        delays = [f.retry_after for f in self.failures if f.retry_after is not None]
        return max(delays) if delays else None
