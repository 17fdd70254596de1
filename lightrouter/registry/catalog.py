"""
Model Catalog

Static configuration for the Capability Registry:

- DEFAULT_DESCRIPTORS: the built-in model pool (local, gateway, direct)
- read_catalog() / write_catalog(): JSON catalog files that round-trip
  every descriptor field
- CatalogFileSource: a DescriptorSource backed by a catalog file

Catalog format:
{
    "version": 1,
    "models": [ {ModelDescriptor fields}, ... ]
}

A bare JSON array of descriptors is also accepted.
"""

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, Field

from lightrouter.registry.models import (
    DescriptorSource,
    Modality,
    ModelDescriptor,
    ProviderKind,
    Quality,
    Speed,
)

logger = logging.getLogger(__name__)


CATALOG_VERSION = 1


DEFAULT_DESCRIPTORS: tuple[ModelDescriptor, ...] = (
    # Local inference: free, private, limited context
    ModelDescriptor(
        id="llama3.1:8b",
        display_name="Llama 3.1 8B (Ollama)",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.LOCAL,
        is_local=True,
        context_window=8192,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"text"}),
    ),
    ModelDescriptor(
        id="sdxl-base",
        display_name="Stable Diffusion XL (ComfyUI)",
        modality=Modality.IMAGE,
        provider_kind=ProviderKind.LOCAL,
        api_model_name="sd_xl_base_1.0.safetensors",
        is_local=True,
        quality=Quality.HIGH,
        speed=Speed.SLOW,
        capabilities=frozenset({"image-generation"}),
    ),
    # Hosted gateway: paid, broad modality coverage
    ModelDescriptor(
        id="glm-4.6",
        display_name="GLM-4.6",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="zhipuai/glm-4",
        cost_per_unit=0.003,
        context_window=8192,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"reasoning", "multilingual", "code", "chinese"}),
    ),
    ModelDescriptor(
        id="kimi-8k",
        display_name="Kimi 8K",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="moonshot-v1-8k",
        cost_per_unit=0.004,
        context_window=8000,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"long-context", "document-analysis"}),
    ),
    ModelDescriptor(
        id="kimi-128k",
        display_name="Kimi 128K",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="moonshot-v1-128k",
        cost_per_unit=0.03,
        context_window=128000,
        quality=Quality.HIGH,
        speed=Speed.SLOW,
        capabilities=frozenset(
            {"long-context", "ultra-long-context", "file-handling", "document-analysis"}
        ),
    ),
    ModelDescriptor(
        id="minimax-text",
        display_name="MiniMax Text",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="minimax-text-01",
        cost_per_unit=0.002,
        context_window=8192,
        quality=Quality.MEDIUM,
        speed=Speed.FAST,
        capabilities=frozenset({"chinese", "multilingual", "cost-effective"}),
    ),
    ModelDescriptor(
        id="glm-4.6v",
        display_name="GLM-4.6v (Vision)",
        modality=Modality.IMAGE,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="zhipuai/glm-4-v",
        cost_per_unit=0.015,
        context_window=4096,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"vision", "image-analysis", "multimodal", "chinese"}),
    ),
    ModelDescriptor(
        id="wan-2.2",
        display_name="WAN 2.2",
        modality=Modality.VIDEO,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="alibaba/wan-2.2",
        cost_per_unit=0.12,
        quality=Quality.HIGH,
        speed=Speed.SLOW,
        capabilities=frozenset({"video-generation", "text-to-video"}),
    ),
    ModelDescriptor(
        id="wan-2.2-hd",
        display_name="WAN 2.2 HD",
        modality=Modality.VIDEO,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="alibaba/wan-2.2-hd",
        cost_per_unit=0.25,
        quality=Quality.VERY_HIGH,
        speed=Speed.VERY_SLOW,
        capabilities=frozenset(
            {"video-generation", "text-to-video", "camera-control", "high-quality"}
        ),
    ),
    ModelDescriptor(
        id="minimax-music",
        display_name="MiniMax Music",
        modality=Modality.AUDIO,
        provider_kind=ProviderKind.GATEWAY,
        api_model_name="minimax-music-01",
        cost_per_unit=0.01,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"music-generation", "emotion-control"}),
    ),
    # Vendor-direct: Groq for low latency text, Gemini and Veo across modalities
    ModelDescriptor(
        id="llama-3.1-8b",
        display_name="Llama 3.1 8B Instant (Groq)",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.DIRECT,
        vendor="groq",
        api_model_name="llama-3.1-8b-instant",
        cost_per_unit=0.00005,
        context_window=131072,
        quality=Quality.MEDIUM,
        speed=Speed.FAST,
        capabilities=frozenset({"real-time", "long-context"}),
    ),
    ModelDescriptor(
        id="llama-4-maverick",
        display_name="Llama 4 Maverick 17B (Groq)",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.DIRECT,
        vendor="groq",
        api_model_name="meta-llama/llama-4-maverick-17b-128e-instruct",
        cost_per_unit=0.0002,
        context_window=131072,
        quality=Quality.HIGH,
        speed=Speed.FAST,
        capabilities=frozenset({"multilingual", "vision", "long-context"}),
    ),
    ModelDescriptor(
        id="gemini-3-pro-preview",
        display_name="Gemini 3 Pro (Text)",
        modality=Modality.TEXT,
        provider_kind=ProviderKind.DIRECT,
        vendor="gemini",
        cost_per_unit=0.002,
        context_window=8192,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"text", "search", "reasoning"}),
    ),
    ModelDescriptor(
        id="gemini-3-pro-image-preview",
        display_name="Gemini 3 Pro (Image)",
        modality=Modality.IMAGE,
        provider_kind=ProviderKind.DIRECT,
        vendor="gemini",
        cost_per_unit=0.04,
        quality=Quality.HIGH,
        speed=Speed.MEDIUM,
        capabilities=frozenset({"image-generation", "image-edit"}),
    ),
    ModelDescriptor(
        id="veo-3.1-fast-generate-preview",
        display_name="Veo 3.1 (Video)",
        modality=Modality.VIDEO,
        provider_kind=ProviderKind.DIRECT,
        vendor="gemini",
        cost_per_unit=0.15,
        quality=Quality.HIGH,
        speed=Speed.SLOW,
        capabilities=frozenset({"video-generation"}),
    ),
)


class CatalogFile(BaseModel):
    """On-disk catalog document."""

    version: int = Field(default=CATALOG_VERSION, ge=1)
    models: list[ModelDescriptor] = Field(default_factory=list)


def parse_catalog(data: object) -> list[ModelDescriptor]:
    """
    Validate decoded catalog JSON.

    Handles both the wrapper format and a bare array of descriptors.

    Raises:
        ValueError: If the document is neither a list nor a dict, or a
            descriptor fails validation
    """
    if isinstance(data, list):
        data = {"models": data}
    elif not isinstance(data, dict):
        raise ValueError(
            f"Invalid catalog format: expected list or dict, got {type(data).__name__}"
        )

    catalog = CatalogFile.model_validate(data)
    if catalog.version > CATALOG_VERSION:
        logger.warning(
            f"Catalog version {catalog.version} is newer than supported "
            f"version {CATALOG_VERSION}; unknown fields will be rejected"
        )
    return catalog.models


def read_catalog(path: str | Path) -> list[ModelDescriptor]:
    """
    Load descriptors from a JSON catalog file.

    Args:
        path: Path to the catalog file

    Returns:
        Descriptors in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file contains invalid JSON
        ValueError: If descriptor data is malformed
    """
    path = Path(path)
    logger.info(f"Loading model catalog from {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return parse_catalog(data)


def write_catalog(path: str | Path, descriptors: Iterable[ModelDescriptor]) -> None:
    """Write descriptors to a JSON catalog file."""
    catalog = CatalogFile(models=list(descriptors))
    Path(path).write_text(catalog.model_dump_json(indent=2), encoding="utf-8")


class CatalogFileSource(DescriptorSource):
    """Descriptors read from a JSON catalog file at load time."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self.name = f"catalog:{self._path.name}"

    @property
    def path(self) -> Path:
        return self._path

    async def fetch(self) -> list[ModelDescriptor]:
        return read_catalog(self._path)
