"""
Schemas module: Pydantic request/response models for the host service.
"""

from lightrouter.schemas.routing import (
    ComponentHealth,
    ErrorCodes,
    ErrorDetail,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationOptionsModel,
    HealthResponse,
    MetricsResponse,
    ModelMetrics,
    ModelsResponse,
    PlanResponse,
    TaskRequirementModel,
)

__all__ = [
    "TaskRequirementModel",
    "GenerationOptionsModel",
    "GenerateRequest",
    "GenerateResponse",
    "PlanResponse",
    "ModelsResponse",
    "ErrorCodes",
    "ErrorDetail",
    "ErrorResponse",
    "ModelMetrics",
    "MetricsResponse",
    "ComponentHealth",
    "HealthResponse",
]
