"""
Registry module: Model catalog and capability lookup.

This module contains:
- models.py: descriptor types and the snapshot-swapping CapabilityRegistry
- catalog.py: built-in model pool and JSON catalog files
- discovery.py: sources that enumerate models from live backends

Public API:
- Modality, ProviderKind, Quality, Speed: descriptor enums
- ModelDescriptor: immutable model metadata
- CapabilityRegistry: registry with atomic replace-on-refresh
- DescriptorSource, StaticSource, CatalogFileSource: load sources
- OllamaDiscoverySource, OpenRouterDiscoverySource: discovery sources
"""

from lightrouter.registry.models import (
    CapabilityRegistry,
    DescriptorSource,
    Modality,
    ModelDescriptor,
    ProviderKind,
    Quality,
    RegistrySnapshot,
    Speed,
    StaticSource,
)
from lightrouter.registry.catalog import (
    DEFAULT_DESCRIPTORS,
    CatalogFileSource,
    read_catalog,
    write_catalog,
)
from lightrouter.registry.discovery import (
    OllamaDiscoverySource,
    OpenRouterDiscoverySource,
)

__all__ = [
    "Modality",
    "ProviderKind",
    "Quality",
    "Speed",
    "ModelDescriptor",
    "RegistrySnapshot",
    "CapabilityRegistry",
    "DescriptorSource",
    "StaticSource",
    "CatalogFileSource",
    "DEFAULT_DESCRIPTORS",
    "read_catalog",
    "write_catalog",
    "OllamaDiscoverySource",
    "OpenRouterDiscoverySource",
]
