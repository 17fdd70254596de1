"""
Provider Adapter Interface

Every backend (local inference server, hosted gateway, vendor-direct API)
is wrapped in a ProviderAdapter exposing one operation:

    generate(descriptor, prompt, options) -> str

Adapters dispatch on descriptor.modality, never on the caller's identity.
They classify backend failures into GenerationError kinds and propagate
them; they never touch the registry or the metrics store, and never retry
across descriptors (that is the router's job).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from lightrouter.exceptions import ErrorKind, GenerationError
from lightrouter.registry.models import Modality, ModelDescriptor

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    """
    Per-request generation parameters.

    Attributes:
        max_tokens: Output token ceiling for text models
        temperature: Sampling temperature
        system_prompt: Optional system instruction for chat models
        timeout_seconds: Per-attempt timeout (overrides the router default)
        extra: Adapter-specific parameters (e.g. image size)
    """

    max_tokens: int = 4000
    temperature: float = 0.7
    system_prompt: str | None = None
    timeout_seconds: float | None = None
    extra: dict = field(default_factory=dict)


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Subclasses implement generate() and list the modalities they serve.
    """

    name: str = "base"
    supported_modalities: frozenset[Modality] = frozenset()

    @abstractmethod
    async def generate(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        """
        Generate output for a prompt with the given model.

        Returns:
            Generated text, or a URL/data URI for media outputs

        Raises:
            GenerationError: Classified backend failure
        """

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    def ensure_supported(self, descriptor: ModelDescriptor) -> None:
        """Raise UNAVAILABLE when this backend cannot serve the descriptor's modality."""
        if descriptor.modality not in self.supported_modalities:
            raise GenerationError(
                ErrorKind.UNAVAILABLE,
                f"{self.name} adapter does not serve {descriptor.modality.value} models",
                descriptor_id=descriptor.id,
            )


def classify_status(status_code: int) -> ErrorKind:
    """
    Map an HTTP status code to an error kind.

    400/413/422 mean the request itself is malformed; every other error
    status means this backend cannot serve it right now.
    """
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (400, 413, 422):
        return ErrorKind.INVALID_REQUEST
    if status_code in (408, 504):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNAVAILABLE


def parse_retry_after(headers) -> float | None:
    """Read a Retry-After header in seconds, if present and numeric."""
    if headers is None:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


def error_from_status(
    status_code: int, headers, message: str, descriptor: ModelDescriptor
) -> GenerationError:
    """Build a classified GenerationError from an HTTP error response."""
    kind = classify_status(status_code)
    return GenerationError(
        kind,
        f"HTTP {status_code}: {message[:200]}",
        descriptor_id=descriptor.id,
        retry_after=parse_retry_after(headers) if kind == ErrorKind.RATE_LIMITED else None,
    )


def error_from_httpx(exc: httpx.HTTPError, descriptor: ModelDescriptor) -> GenerationError:
    """Translate an httpx exception into a classified GenerationError."""
    if isinstance(exc, httpx.TimeoutException):
        return GenerationError(
            ErrorKind.TIMEOUT, f"Request timed out: {exc}", descriptor_id=descriptor.id
        )
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return error_from_status(response.status_code, response.headers, response.text, descriptor)
    return GenerationError(
        ErrorKind.UNAVAILABLE, f"Backend unreachable: {exc}", descriptor_id=descriptor.id
    )


def require_output(value: str | None, descriptor: ModelDescriptor) -> str:
    """Reject empty backend output as an unavailable result."""
    if not value:
        raise GenerationError(
            ErrorKind.UNAVAILABLE,
            "Backend returned an empty result",
            descriptor_id=descriptor.id,
        )
    return value
