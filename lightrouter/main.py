"""
Visual Light Router: FastAPI Application Entry Point

This module builds the host service around the routing core:
- /health: Health check endpoint
- /config: Non-sensitive configuration values
- /models: Registry contents and statistics
- /models/refresh: Reload the registry from its sources
- /plan: Dry-run model selection
- /generate: Routed generation with fallback
- /metrics: Attempt statistics

The application uses a lifespan context manager to:
1. Load configuration and configure logging
2. Build the registry, adapters, metrics store and router
3. Load the registry from the catalog and discovery sources
4. Close adapter network clients on shutdown

Every component lives on app.state; nothing is a module-level singleton.
"""

from contextlib import asynccontextmanager
import logging
import math
import time

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from lightrouter import __version__
from lightrouter.config import Settings, configure_logging, get_settings
from lightrouter.exceptions import (
    AllModelsExhaustedError,
    ErrorKind,
    GenerationError,
    NoEligibleModelError,
)
from lightrouter.factory import build_router, load_registry
from lightrouter.metrics.reporter import MetricsReporter
from lightrouter.registry.models import ProviderKind
from lightrouter.router.engine import Router
from lightrouter.schemas.routing import (
    ComponentHealth,
    ErrorCodes,
    ErrorDetail,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    MetricsResponse,
    ModelsResponse,
    PlanResponse,
    TaskRequirementModel,
)

logger = logging.getLogger(__name__)


def get_router(request: Request) -> Router:
    return request.app.state.router


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _error(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump(exclude_none=True),
    )


def create_app(router: Router | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        router: Pre-built router (tests inject one with fake adapters).
                When omitted, the lifespan builds and loads one from settings.
        settings: Settings to use (defaults to get_settings())
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler for startup/shutdown events.

        On startup the router is built from settings unless one was
        injected, and the registry is loaded from its sources. On shutdown
        adapters built here are closed.
        """
        configure_logging(settings)

        logger.info("=" * 60)
        logger.info("Visual Light Router starting up...")
        logger.info("=" * 60)
        logger.info(f"Max fallbacks: {settings.max_fallbacks}")
        logger.info(f"Attempt timeout: {settings.attempt_timeout_seconds}s")
        logger.info(f"Cost tracking: {'enabled' if settings.track_costs else 'disabled'}")
        logger.info(
            f"OpenRouter API key: {'configured' if settings.openrouter_api_key else 'not configured'}"
        )
        logger.info(f"Groq API key: {'configured' if settings.groq_api_key else 'not configured'}")
        logger.info(
            f"Gemini API key: {'configured' if settings.gemini_api_key else 'not configured'}"
        )

        owns_router = app.state.router is None
        if owns_router:
            app.state.router = build_router(settings)
            await load_registry(app.state.router.registry, settings)

        stats = app.state.router.registry.get_statistics()
        logger.info(f"Registry ready with {stats['total_models']} models: {stats['by_modality']}")

        app.state.started_at = time.time()
        logger.info("Visual Light Router ready to accept requests")

        yield  # Application runs here

        logger.info("Visual Light Router shutting down...")
        if owns_router:
            await app.state.router.adapters.aclose()

    app = FastAPI(
        title="Visual Light Router",
        description="Model selection and fallback routing for generative AI backends",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.router = router
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    _register_exception_handlers(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Visual Light Router",
            "description": "Model selection and fallback routing",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "config": "/config",
        }

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health check",
        description="Check registry contents and which backends are configured.",
    )
    async def health_check(request: Request, router: Router = Depends(get_router)):
        """
        Health check endpoint for monitoring and orchestration.

        An empty registry is unhealthy; a provider kind without an adapter
        (usually a missing API key) degrades the service.
        """
        components = []
        overall_status = "healthy"

        model_count = len(router.registry.list_models())
        if model_count:
            components.append(
                ComponentHealth(
                    name="registry", status="healthy", message=f"{model_count} models registered"
                )
            )
        else:
            components.append(
                ComponentHealth(name="registry", status="unhealthy", message="No models registered")
            )
            overall_status = "unhealthy"

        for kind in ProviderKind:
            if router.adapters.get(kind) is not None:
                components.append(ComponentHealth(name=kind.value, status="healthy"))
            else:
                components.append(
                    ComponentHealth(
                        name=kind.value, status="degraded", message="No adapter configured"
                    )
                )
                if overall_status == "healthy":
                    overall_status = "degraded"

        return HealthResponse(
            status=overall_status,
            version=__version__,
            components=components,
            uptime_seconds=time.time() - request.app.state.started_at,
        )

    @app.get("/config")
    async def show_config(settings: Settings = Depends(get_app_settings)):
        """
        Returns non-sensitive configuration values.

        API keys are SecretStr and are NOT exposed in this endpoint.
        """
        return {
            "backends": {
                "ollama_base_url": settings.ollama_base_url,
                "comfyui_base_url": settings.comfyui_base_url,
                "openrouter_base_url": settings.openrouter_base_url,
            },
            "registry": {
                "catalog_path": settings.catalog_path,
                "use_default_catalog": settings.use_default_catalog,
                "discover_local_models": settings.discover_local_models,
                "discover_gateway_models": settings.discover_gateway_models,
            },
            "routing": {
                "max_fallbacks": settings.max_fallbacks,
                "attempt_timeout_seconds": settings.attempt_timeout_seconds,
            },
            "metrics": {
                "max_history": settings.metrics_max_history,
                "window_seconds": settings.metrics_window_seconds,
                "track_costs": settings.track_costs,
            },
            "server": {"host": settings.host, "port": settings.port, "debug": settings.debug},
            "logging": {"level": settings.log_level},
            "api_keys_configured": {
                "openrouter": settings.openrouter_api_key is not None,
                "groq": settings.groq_api_key is not None,
                "gemini": settings.gemini_api_key is not None,
            },
        }

    @app.get("/models", response_model=ModelsResponse)
    async def list_models(router: Router = Depends(get_router)):
        """List all registered model descriptors with catalog statistics."""
        registry = router.registry
        return ModelsResponse(
            models=registry.list_models(),
            statistics=registry.get_statistics(),
            last_loaded_at=registry.last_loaded_at,
        )

    @app.post("/models/refresh")
    async def refresh_models(router: Router = Depends(get_router)):
        """Reload the registry from its sources; in-flight requests keep their snapshot."""
        await router.registry.refresh()
        return router.registry.get_statistics()

    @app.post(
        "/plan",
        response_model=PlanResponse,
        responses={422: {"model": ErrorResponse}},
        summary="Dry-run selection",
    )
    async def plan(request: TaskRequirementModel, router: Router = Depends(get_router)):
        """Return the primary model and fallbacks /generate would use right now."""
        selection = router.plan(request.to_requirement())
        return PlanResponse(primary=selection.primary, fallbacks=list(selection.fallbacks))

    @app.post(
        "/generate",
        response_model=GenerateResponse,
        responses={
            400: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
        summary="Routed generation",
    )
    async def generate(request: GenerateRequest, router: Router = Depends(get_router)):
        """
        Generate with the best eligible model, falling back on failure.

        Flow:
        1. Convert the request into a TaskRequirement
        2. Select a plan from the current registry snapshot
        3. Try each planned model until one succeeds
        4. Return the result with the attempt trail
        """
        outcome = await router.execute(
            request.to_requirement(), request.prompt, request.to_options()
        )
        return GenerateResponse(
            result=outcome.result,
            descriptor_used=outcome.descriptor_used.id,
            provider_kind=outcome.descriptor_used.provider_kind,
            attempts=outcome.attempts,
            fallback_used=outcome.fallback_used,
            latency_ms=outcome.latency_ms,
            cost_incurred=outcome.cost_incurred,
        )

    @app.get(
        "/metrics",
        response_model=MetricsResponse,
        summary="Get metrics",
        description="Aggregated attempt counts, success rates, latency and cost.",
    )
    async def get_metrics(router: Router = Depends(get_router)):
        """Return aggregated metrics over the store's rolling window."""
        return MetricsReporter(router.metrics, router.registry).generate_report()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NoEligibleModelError)
    async def no_eligible_model_handler(
        request: Request, exc: NoEligibleModelError
    ) -> JSONResponse:
        """No model satisfies the constraints: the caller must relax them."""
        return _error(
            422,
            ErrorCodes.NO_ELIGIBLE_MODEL,
            str(exc),
            {"unmet_constraints": exc.unmet_constraints, "rejections": exc.rejections},
        )

    @app.exception_handler(AllModelsExhaustedError)
    async def exhausted_handler(request: Request, exc: AllModelsExhaustedError) -> JSONResponse:
        """
        Every planned model failed: the caller may retry later.

        When every attempt was rate limited the longest backend delay is
        passed on as a Retry-After header.
        """
        response = _error(
            503,
            ErrorCodes.MODELS_EXHAUSTED,
            str(exc),
            {
                "attempts": [failure.to_dict() for failure in exc.failures],
                "retry_after": exc.retry_after,
            },
        )
        if exc.retry_after is not None:
            response.headers["Retry-After"] = str(math.ceil(exc.retry_after))
        return response

    @app.exception_handler(GenerationError)
    async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
        if exc.kind == ErrorKind.INVALID_REQUEST:
            return _error(
                400,
                ErrorCodes.INVALID_REQUEST,
                exc.message,
                {"descriptor_id": exc.descriptor_id},
            )
        return _error(503, ErrorCodes.SERVICE_UNAVAILABLE, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle Pydantic validation errors.

        Returns the first validation error's details for client-side
        error handling.
        """
        errors = exc.errors()
        first_error = errors[0] if errors else {}

        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": ErrorCodes.VALIDATION_ERROR,
                    "message": first_error.get("msg", "Validation failed"),
                    "field": ".".join(str(loc) for loc in first_error.get("loc", [])),
                }
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent format."""
        detail = exc.detail
        if isinstance(detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": detail})
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": "HTTP_ERROR", "message": str(detail)}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Handle unexpected exceptions.

        Logs the full exception and returns a generic error response to
        avoid leaking implementation details.
        """
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCodes.INTERNAL_ERROR,
                    "message": "An unexpected error occurred",
                }
            },
        )


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "lightrouter.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
