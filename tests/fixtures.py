"""
Test Fixtures

Shared test helpers for the Visual Light Router test suite: a descriptor
builder, a scripted fake adapter, and scripted failures.
"""

import asyncio

from lightrouter.dispatcher.base import GenerationOptions, ProviderAdapter
from lightrouter.exceptions import ErrorKind, GenerationError
from lightrouter.registry.models import (
    Modality,
    ModelDescriptor,
    ProviderKind,
    Quality,
    Speed,
)


def make_descriptor(
    id: str,
    modality: Modality = Modality.TEXT,
    provider_kind: ProviderKind = ProviderKind.GATEWAY,
    is_local: bool | None = None,
    cost_per_unit: float | None = None,
    context_window: int | None = None,
    quality: Quality = Quality.MEDIUM,
    speed: Speed = Speed.MEDIUM,
    capabilities: set[str] | frozenset[str] = frozenset(),
    vendor: str | None = None,
) -> ModelDescriptor:
    """Build a descriptor with sensible defaults (is_local follows provider_kind)."""
    return ModelDescriptor(
        id=id,
        modality=modality,
        provider_kind=provider_kind,
        is_local=provider_kind == ProviderKind.LOCAL if is_local is None else is_local,
        cost_per_unit=cost_per_unit,
        context_window=context_window,
        quality=quality,
        speed=speed,
        capabilities=frozenset(capabilities),
        vendor=vendor,
    )


class FakeAdapter(ProviderAdapter):
    """
    Scripted adapter for router tests.

    behaviors maps descriptor id to one of:
    - str: returned as the result
    - Exception: raised
    - float: seconds to sleep before returning "slow-result"
    Unscripted ids return "ok:<id>".
    """

    supported_modalities = frozenset(Modality)

    def __init__(self, name: str = "fake", behaviors: dict | None = None) -> None:
        self.name = name
        self.behaviors = dict(behaviors or {})
        self.calls: list[str] = []
        self.closed = False

    async def generate(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        self.calls.append(descriptor.id)
        behavior = self.behaviors.get(descriptor.id)
        if isinstance(behavior, BaseException):
            raise behavior
        if isinstance(behavior, float):
            await asyncio.sleep(behavior)
            return "slow-result"
        if isinstance(behavior, str):
            return behavior
        return f"ok:{descriptor.id}"

    async def aclose(self) -> None:
        self.closed = True


def failure(
    kind: ErrorKind, descriptor_id: str | None = None, retry_after: float | None = None
) -> GenerationError:
    return GenerationError(
        kind, f"scripted {kind.value}", descriptor_id=descriptor_id, retry_after=retry_after
    )
