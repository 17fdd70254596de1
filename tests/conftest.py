"""
Pytest configuration and shared fixtures.

Provides descriptor factories, scripted fake adapters, and fresh
registry/metrics/router instances for the Visual Light Router test suite.

IMPORTANT: Environment variables must be set BEFORE importing lightrouter
modules that use pydantic-settings, as Settings validates on first use.
"""

import os

# Set test environment variables before importing lightrouter modules
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG"] = "false"
os.environ["DISCOVER_LOCAL_MODELS"] = "false"
os.environ["DISCOVER_GATEWAY_MODELS"] = "false"
os.environ.pop("OPENROUTER_API_KEY", None)
os.environ.pop("GROQ_API_KEY", None)
os.environ.pop("GEMINI_API_KEY", None)

# Now safe to import everything else
import pytest
from fastapi.testclient import TestClient

from lightrouter.config import Settings
from lightrouter.dispatcher.handlers import ProviderAdapters
from lightrouter.metrics.cost import CostEstimator
from lightrouter.metrics.store import MetricsStore
from lightrouter.registry.models import CapabilityRegistry, ProviderKind, Quality
from lightrouter.router.engine import Router
from tests.fixtures import FakeAdapter, make_descriptor


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line(
        "markers", "integration: mark test as requiring live backends"
    )
    config.addinivalue_line("markers", "slow: mark test as slow-running")


@pytest.fixture
def descriptor_factory():
    """
    Factory fixture for creating ModelDescriptor objects.

    Usage:
        d = descriptor_factory("m1", quality=Quality.HIGH)
    """
    return make_descriptor


@pytest.fixture
def metrics_store():
    """Fresh, unwindowed metrics store."""
    return MetricsStore(window_seconds=None)


@pytest.fixture
def text_descriptors():
    """Three gateway text models of decreasing quality plus one local model."""
    return [
        make_descriptor("gw-best", quality=Quality.VERY_HIGH, cost_per_unit=0.03),
        make_descriptor("gw-good", quality=Quality.HIGH, cost_per_unit=0.01),
        make_descriptor("gw-basic", quality=Quality.MEDIUM, cost_per_unit=0.001),
        make_descriptor(
            "local-llm",
            provider_kind=ProviderKind.LOCAL,
            quality=Quality.LOW,
            context_window=8192,
        ),
    ]


@pytest.fixture
def registry(text_descriptors):
    """Registry pre-filled with text_descriptors."""
    return CapabilityRegistry(text_descriptors)


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def adapters(fake_adapter):
    """ProviderAdapters routing every provider kind to one FakeAdapter."""
    return ProviderAdapters(adapters={kind: fake_adapter for kind in ProviderKind})


@pytest.fixture
def router(registry, adapters, metrics_store):
    """Router over the fake adapters with cost estimation enabled."""
    return Router(
        registry=registry,
        adapters=adapters,
        metrics=metrics_store,
        max_fallbacks=2,
        cost_estimator=CostEstimator(),
    )


@pytest.fixture
def test_settings():
    """Settings isolated from the environment's catalog and discovery."""
    return Settings(
        _env_file=None,
        discover_local_models=False,
        discover_gateway_models=False,
        log_level="WARNING",
    )


@pytest.fixture
def test_client(router, test_settings):
    """
    FastAPI test client around the fake-adapter router.

    Entered as a context manager so the lifespan runs.
    """
    from lightrouter.main import create_app

    app = create_app(router=router, settings=test_settings)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
