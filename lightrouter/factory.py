"""
Component Factory

Builds the routing components from Settings. The host application calls
these once at startup and owns the results; nothing here is cached at
module level, so tests and embedding applications can build as many
independent routers as they need.
"""

import logging

from lightrouter.config import Settings
from lightrouter.dispatcher.handlers import ProviderAdapters
from lightrouter.metrics.cost import CostEstimator
from lightrouter.metrics.store import MetricsStore
from lightrouter.registry.catalog import DEFAULT_DESCRIPTORS, CatalogFileSource
from lightrouter.registry.discovery import OllamaDiscoverySource, OpenRouterDiscoverySource
from lightrouter.registry.models import CapabilityRegistry, DescriptorSource, StaticSource
from lightrouter.router.engine import Router

logger = logging.getLogger(__name__)


def build_sources(settings: Settings) -> list[DescriptorSource]:
    """
    Descriptor sources in precedence order.

    Earlier sources win on duplicate ids: an operator catalog overrides
    the built-in defaults, which override discovered entries.
    """
    sources: list[DescriptorSource] = []

    if settings.catalog_path:
        sources.append(CatalogFileSource(settings.catalog_path))

    if settings.use_default_catalog:
        sources.append(StaticSource(DEFAULT_DESCRIPTORS, name="defaults"))

    if settings.discover_local_models:
        sources.append(OllamaDiscoverySource(settings.ollama_base_url))

    if settings.discover_gateway_models:
        if settings.openrouter_api_key is None:
            logger.warning("Gateway discovery enabled but OPENROUTER_API_KEY is not set")
        else:
            sources.append(
                OpenRouterDiscoverySource(
                    settings.openrouter_base_url,
                    settings.openrouter_api_key.get_secret_value(),
                )
            )

    return sources


def build_metrics(settings: Settings) -> MetricsStore:
    return MetricsStore(
        max_history=settings.metrics_max_history,
        window_seconds=settings.metrics_window_seconds,
    )


def build_router(
    settings: Settings,
    registry: CapabilityRegistry | None = None,
    adapters: ProviderAdapters | None = None,
    metrics: MetricsStore | None = None,
) -> Router:
    """
    Assemble a Router from settings.

    The registry is returned empty unless one is passed in; call
    load_registry() (or registry.load()) before serving requests.
    """
    return Router(
        registry=registry if registry is not None else CapabilityRegistry(),
        adapters=adapters if adapters is not None else ProviderAdapters(settings),
        metrics=metrics if metrics is not None else build_metrics(settings),
        max_fallbacks=settings.max_fallbacks,
        attempt_timeout_seconds=settings.attempt_timeout_seconds,
        cost_estimator=CostEstimator() if settings.track_costs else None,
    )


async def load_registry(registry: CapabilityRegistry, settings: Settings) -> None:
    """Load every configured source into the registry."""
    sources = build_sources(settings)
    logger.info(f"Loading registry from {len(sources)} sources: {[s.name for s in sources]}")
    await registry.load(*sources)
