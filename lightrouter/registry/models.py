"""
Capability Registry

This module defines the catalog of invocable models (descriptors) and the
registry that serves them to the selector:

- ModelDescriptor: immutable metadata for one model/endpoint
- DescriptorSource: anything that can produce descriptors (static config,
  a catalog file, a provider discovery call)
- RegistrySnapshot: an immutable, ordered view of one registry load
- CapabilityRegistry: holds the current snapshot and swaps it atomically

Readers never lock: a refresh builds a complete new snapshot and publishes
it with a single attribute assignment, so a concurrent reader sees either
the old set or the new set, never a mixture.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from enum import Enum
from types import MappingProxyType
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

logger = logging.getLogger(__name__)


class Modality(str, Enum):
    """Kind of content a model produces."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class ProviderKind(str, Enum):
    """Tag selecting the provider adapter that serves a descriptor."""

    LOCAL = "local"  # Self-hosted inference server (Ollama, ComfyUI)
    GATEWAY = "gateway"  # Hosted multi-vendor gateway (OpenRouter)
    DIRECT = "direct"  # Vendor-direct API (Groq)


class Quality(str, Enum):
    """Ordinal output quality."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"

    @property
    def rank(self) -> int:
        return _QUALITY_RANK[self]


class Speed(str, Enum):
    """Ordinal generation speed."""

    VERY_SLOW = "very-slow"
    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"

    @property
    def rank(self) -> int:
        return _SPEED_RANK[self]


_QUALITY_RANK = {q: i for i, q in enumerate(Quality)}
_SPEED_RANK = {s: i for i, s in enumerate(Speed)}


class ModelDescriptor(BaseModel):
    """
    Complete metadata for one invocable model.

    This class holds all information needed to:
    1. Decide eligibility for a task (modality, privacy, context, budget)
    2. Rank eligible models (quality, speed, provider preference)
    3. Dispatch the request to the right provider adapter

    Descriptors are frozen: a registry refresh replaces them, it never
    edits one in place.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(
        ...,
        min_length=1,
        description="Unique, stable identifier used in plans and metrics",
    )

    display_name: str = Field(
        default="",
        description="Human-readable model name (defaults to the id)",
    )

    modality: Modality = Field(
        ...,
        description="Kind of content the model produces",
    )

    provider_kind: ProviderKind = Field(
        ...,
        description="Adapter that serves this model",
    )

    vendor: str | None = Field(
        default=None,
        description="Vendor API behind a direct model ('groq' when unset, or 'gemini')",
    )

    api_model_name: str | None = Field(
        default=None,
        description="Model name sent to the backend (defaults to the id)",
    )

    is_local: bool = Field(
        default=False,
        description="True when execution incurs no network egress or cost",
    )

    cost_per_unit: float | None = Field(
        default=None,
        ge=0,
        description="Cost per 1K tokens or per generation; absent means free",
    )

    context_window: int | None = Field(
        default=None,
        gt=0,
        description="Maximum input size in tokens; absent means unlimited",
    )

    quality: Quality = Field(
        default=Quality.MEDIUM,
        description="Ordinal output quality",
    )

    speed: Speed = Field(
        default=Speed.MEDIUM,
        description="Ordinal generation speed",
    )

    capabilities: frozenset[str] = Field(
        default_factory=frozenset,
        description="Capability tags (e.g. 'vision', 'long-context', 'multilingual')",
    )

    @model_validator(mode="before")
    @classmethod
    def default_display_name(cls, data):
        """Fall back to the id when no display name is given."""
        if isinstance(data, dict) and not data.get("display_name"):
            data = {**data, "display_name": data.get("id", "")}
        return data

    @field_serializer("capabilities")
    def serialize_capabilities(self, capabilities: frozenset[str]) -> list[str]:
        """Serialize tags sorted so catalog files are stable."""
        return sorted(capabilities)

    @property
    def backend_model(self) -> str:
        """Model name to send to the provider."""
        return self.api_model_name or self.id

    @property
    def effective_cost(self) -> float:
        """Cost per unit with 'absent' treated as free."""
        return self.cost_per_unit or 0.0


class DescriptorSource(ABC):
    """
    Producer of descriptors for a registry load.

    Sources may perform I/O (a catalog file, a discovery call). A source
    that raises is treated by the registry as having produced nothing.
    """

    name: str = "source"

    @abstractmethod
    async def fetch(self) -> list[ModelDescriptor]:
        """Return the descriptors this source currently provides."""


class StaticSource(DescriptorSource):
    """Descriptors supplied directly in code or configuration."""

    def __init__(self, descriptors: Iterable[ModelDescriptor], name: str = "static") -> None:
        self._descriptors = tuple(descriptors)
        self.name = name

    async def fetch(self) -> list[ModelDescriptor]:
        return list(self._descriptors)


class RegistrySnapshot:
    """
    Immutable, insertion-ordered view of one registry load.

    Duplicate ids are dropped (first occurrence wins), so loading the
    same source twice yields the same set.
    """

    __slots__ = ("_models", "_ordered", "loaded_at")

    def __init__(self, descriptors: Iterable[ModelDescriptor], loaded_at: float | None = None) -> None:
        models: dict[str, ModelDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in models:
                if models[descriptor.id] != descriptor:
                    logger.debug(
                        f"Ignoring conflicting duplicate descriptor '{descriptor.id}'"
                    )
                continue
            models[descriptor.id] = descriptor

        self._models = MappingProxyType(models)
        self._ordered: tuple[ModelDescriptor, ...] = tuple(models.values())
        self.loaded_at = loaded_at if loaded_at is not None else time.time()

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, descriptor_id: object) -> bool:
        return descriptor_id in self._models

    def get(self, descriptor_id: str) -> ModelDescriptor | None:
        """
        Retrieve a descriptor by id.

        Args:
            descriptor_id: The unique identifier of the model

        Returns:
            ModelDescriptor if found, None otherwise
        """
        return self._models.get(descriptor_id)

    def list_models(self) -> list[ModelDescriptor]:
        """Return all descriptors in insertion order."""
        return list(self._ordered)

    def list_by_modality(self, modality: Modality) -> list[ModelDescriptor]:
        """Return descriptors of one modality in insertion order."""
        return [d for d in self._ordered if d.modality == modality]

    def get_model_ids(self) -> list[str]:
        """Return all registered ids in insertion order."""
        return [d.id for d in self._ordered]


class CapabilityRegistry:
    """
    Catalog of known model descriptors.

    The registry is explicitly constructed and owned by the host
    application; tests build a fresh one per case.

    Example:
        registry = CapabilityRegistry()
        await registry.load(StaticSource(DEFAULT_DESCRIPTORS), OllamaDiscoverySource(url))
        text_models = registry.list_by_modality(Modality.TEXT)
    """

    def __init__(self, descriptors: Iterable[ModelDescriptor] = ()) -> None:
        self._snapshot = RegistrySnapshot(descriptors)
        self._sources: tuple[DescriptorSource, ...] = ()

    async def load(self, *sources: DescriptorSource) -> None:
        """
        Replace the descriptor set with the union of the given sources.

        Sources are fetched concurrently and concatenated in argument
        order. A failing source is logged and contributes no descriptors,
        so one unreachable backend never blocks the whole registry.

        Args:
            sources: Descriptor sources to load from
        """
        batches = await asyncio.gather(*(self._fetch(source) for source in sources))
        self._sources = tuple(sources)
        self.replace(d for batch in batches for d in batch)

    async def refresh(self) -> None:
        """
        Re-run the sources of the most recent load().

        A registry that was only ever filled with replace() has no sources
        and is left unchanged.
        """
        if not self._sources:
            logger.info("Registry has no sources to refresh; keeping current snapshot")
            return
        await self.load(*self._sources)

    def replace(self, descriptors: Iterable[ModelDescriptor]) -> None:
        """Atomically publish a new descriptor set."""
        snapshot = RegistrySnapshot(descriptors)
        self._snapshot = snapshot
        logger.info(f"Registry loaded with {len(snapshot)} models")

    async def _fetch(self, source: DescriptorSource) -> list[ModelDescriptor]:
        try:
            descriptors = await source.fetch()
        except Exception as e:
            logger.warning(f"Descriptor source '{source.name}' failed, skipping: {e}")
            return []

        logger.debug(f"Source '{source.name}' provided {len(descriptors)} models")
        return list(descriptors)

    def snapshot(self) -> RegistrySnapshot:
        """Return the current immutable snapshot."""
        return self._snapshot

    def get(self, descriptor_id: str) -> ModelDescriptor | None:
        """Retrieve a descriptor by id from the current snapshot."""
        return self._snapshot.get(descriptor_id)

    def list_models(self) -> list[ModelDescriptor]:
        """Return all descriptors of the current snapshot."""
        return self._snapshot.list_models()

    def list_by_modality(self, modality: Modality) -> list[ModelDescriptor]:
        """Return descriptors of one modality in insertion order."""
        return self._snapshot.list_by_modality(modality)

    def get_model_ids(self) -> list[str]:
        """Return all registered ids."""
        return self._snapshot.get_model_ids()

    @property
    def last_loaded_at(self) -> float:
        """Unix timestamp of the current snapshot."""
        return self._snapshot.loaded_at

    def get_statistics(self) -> dict:
        """
        Summarize the current catalog.

        Returns:
            Dictionary with total_models and counts by provider kind,
            modality and quality
        """
        models = self._snapshot.list_models()
        return {
            "total_models": len(models),
            "by_provider_kind": dict(Counter(m.provider_kind.value for m in models)),
            "by_modality": dict(Counter(m.modality.value for m in models)),
            "by_quality": dict(Counter(m.quality.value for m in models)),
        }
