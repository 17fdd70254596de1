"""
Pydantic Schemas for the Routing API

This module defines the request and response models for the host service:
- GenerateRequest: prompt plus task constraints and generation options
- GenerateResponse / PlanResponse: routed result or dry-run plan
- Error responses, metrics, and health check schemas

Request models convert into the core types (TaskRequirement,
GenerationOptions) so the routing core never sees HTTP payloads.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lightrouter.dispatcher.base import GenerationOptions
from lightrouter.registry.models import (
    Modality,
    ModelDescriptor,
    ProviderKind,
    Quality,
    Speed,
)
from lightrouter.router.selector import TaskRequirement


# =============================================================================
# REQUEST MODELS
# =============================================================================


class TaskRequirementModel(BaseModel):
    """
    Task constraints and preferences.

    Hard constraints (privacy, context, budget, capabilities) filter the
    candidate pool; the rest only affect ranking.
    """

    modality: Modality = Field(..., description="Output modality")

    min_context_length: int | None = Field(
        default=None, gt=0, description="Minimum context window in tokens"
    )

    max_budget: float | None = Field(
        default=None, ge=0.0, description="Maximum cost_per_unit accepted"
    )

    privacy_required: bool = Field(
        default=False, description="Only local models may serve the task"
    )

    quality_floor: Quality | None = Field(default=None, description="Preferred minimum quality")

    speed_preference: Speed | None = Field(default=None, description="Preferred speed class")

    preferred_provider_kind: ProviderKind | None = Field(
        default=None, description="Preferred provider kind"
    )

    required_capabilities: list[str] = Field(
        default_factory=list, description="Capability tags every candidate must have"
    )

    model_config = ConfigDict(extra="forbid")

    def to_requirement(self) -> TaskRequirement:
        """Convert to the core TaskRequirement."""
        return TaskRequirement(
            modality=self.modality,
            min_context_length=self.min_context_length,
            max_budget=self.max_budget,
            privacy_required=self.privacy_required,
            quality_floor=self.quality_floor,
            speed_preference=self.speed_preference,
            preferred_provider_kind=self.preferred_provider_kind,
            required_capabilities=frozenset(self.required_capabilities),
        )


class GenerationOptionsModel(BaseModel):
    """Generation parameters passed through to the provider adapter."""

    max_tokens: int = Field(default=4000, gt=0, le=200_000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    system_prompt: str | None = Field(default=None, max_length=20_000)
    timeout_seconds: float | None = Field(default=None, gt=0.0)
    extra: dict = Field(
        default_factory=dict, description="Adapter-specific parameters (e.g. image size)"
    )

    def to_options(self) -> GenerationOptions:
        return GenerationOptions(
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system_prompt=self.system_prompt,
            timeout_seconds=self.timeout_seconds,
            extra=dict(self.extra),
        )


class GenerateRequest(TaskRequirementModel):
    """
    Request body for the /generate endpoint.

    Example:
        {
            "prompt": "Summarize the quarterly report in five bullets",
            "modality": "text",
            "privacy_required": true,
            "min_context_length": 8000
        }
    """

    prompt: str = Field(..., min_length=1, max_length=100_000, description="Prompt text")

    options: GenerationOptionsModel = Field(default_factory=GenerationOptionsModel)

    @field_validator("prompt")
    @classmethod
    def validate_prompt_not_whitespace(cls, v: str) -> str:
        """Ensure the prompt is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Prompt cannot be empty or whitespace only")
        return v

    def to_options(self) -> GenerationOptions:
        return self.options.to_options()

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "prompt": "Summarize the quarterly report in five bullets",
                    "modality": "text",
                    "privacy_required": True,
                },
                {
                    "prompt": "Isometric infographic of a data pipeline",
                    "modality": "image",
                    "quality_floor": "high",
                },
            ]
        },
    )


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class GenerateResponse(BaseModel):
    """
    Response from the /generate endpoint.

    Example:
        {
            "result": "1. Revenue grew ...",
            "descriptor_used": "llama3.1:8b",
            "provider_kind": "local",
            "attempts": ["llama3.1:8b"],
            "fallback_used": false,
            "latency_ms": 812.4,
            "cost_incurred": 0.0
        }
    """

    result: str = Field(..., description="Generated text, or a URL/data URI for media")
    descriptor_used: str = Field(..., description="Model that produced the result")
    provider_kind: ProviderKind
    attempts: list[str] = Field(..., description="Models tried, in order")
    fallback_used: bool = False
    latency_ms: float = Field(..., ge=0.0)
    cost_incurred: float = Field(default=0.0, ge=0.0)


class PlanResponse(BaseModel):
    """Response from the /plan endpoint (dry-run selection)."""

    primary: ModelDescriptor
    fallbacks: list[ModelDescriptor] = Field(default_factory=list)


class ModelsResponse(BaseModel):
    """Response from the /models endpoint."""

    models: list[ModelDescriptor]
    statistics: dict
    last_loaded_at: float | None = Field(
        default=None, description="Unix time of the last registry load"
    )


# =============================================================================
# ERROR MODELS
# =============================================================================


class ErrorCodes:
    """
    Standard error codes for API responses.

    These codes enable programmatic error handling by clients
    without parsing human-readable messages.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    NO_ELIGIBLE_MODEL = "NO_ELIGIBLE_MODEL"
    MODELS_EXHAUSTED = "MODELS_EXHAUSTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorDetail(BaseModel):
    """
    Detailed error information for API error responses.

    details carries machine-readable context: unmet constraints for
    NO_ELIGIBLE_MODEL, the attempted models for MODELS_EXHAUSTED.
    """

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(
        default=None, description="Field that caused the error (for validation errors)"
    )
    details: dict | None = Field(default=None, description="Structured error context")


class ErrorResponse(BaseModel):
    """
    Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "MODELS_EXHAUSTED",
                "message": "All models exhausted after 3 attempts",
                "details": {"attempts": [...]}
            }
        }
    """

    error: ErrorDetail


# =============================================================================
# METRICS MODELS
# =============================================================================


class ModelMetrics(BaseModel):
    """Aggregated attempt metrics for one model."""

    model_id: str
    request_count: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    avg_latency_ms: float = Field(default=0.0, ge=0.0)
    total_cost: float = Field(default=0.0, ge=0.0)


class MetricsResponse(BaseModel):
    """
    Response from the /metrics endpoint.

    Counts are attempts, not requests: one request that fell back twice
    contributes three attempts.
    """

    total_attempts: int = Field(default=0, ge=0)
    successful_attempts: int = Field(default=0, ge=0)
    overall_success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    total_cost: float = Field(default=0.0, ge=0.0)
    avg_latency_ms: float = Field(default=0.0, ge=0.0)
    attempts_by_model: dict[str, ModelMetrics] = Field(default_factory=dict)
    attempts_by_provider_kind: dict[str, int] = Field(default_factory=dict)


# =============================================================================
# HEALTH MODELS
# =============================================================================


class ComponentHealth(BaseModel):
    """Health status of an individual system component."""

    name: str = Field(..., description="Component name (e.g., 'registry', 'gateway')")
    status: Literal["healthy", "degraded", "unhealthy"]
    message: str | None = None


class HealthResponse(BaseModel):
    """
    Response from the /health endpoint.

    "degraded" means the service runs but some backends lack credentials
    or the registry is empty for a modality.
    """

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    components: list[ComponentHealth] = Field(default_factory=list)
    uptime_seconds: float = Field(default=0.0, ge=0.0)
