"""
Provider Discovery Sources

Descriptor sources that enumerate models from a live backend:

- OllamaDiscoverySource: models installed on a local Ollama server
- OpenRouterDiscoverySource: the hosted gateway's model list

Backends describe models only by name (plus pricing for the gateway), so
modality, quality, speed and capability tags are inferred from naming
conventions. Discovery errors propagate to the registry, which logs them
and loads zero descriptors from that source.
"""

import logging

import httpx

from lightrouter.registry.models import (
    DescriptorSource,
    Modality,
    ModelDescriptor,
    ProviderKind,
    Quality,
    Speed,
)

logger = logging.getLogger(__name__)

DISCOVERY_TIMEOUT_SECONDS = 5.0
LONG_CONTEXT_THRESHOLD = 100_000


def _contains_any(name: str, words: tuple[str, ...]) -> bool:
    return any(word in name for word in words)


# =============================================================================
# LOCAL (OLLAMA)
# =============================================================================


def infer_local_modality(model_name: str) -> Modality:
    """Guess the output modality of a locally installed model."""
    name = model_name.lower()
    if _contains_any(name, ("text-", "llama", "mixtral", "deepseek")):
        return Modality.TEXT
    if _contains_any(name, ("image-", "stable-diffusion", "flux")):
        return Modality.IMAGE
    if _contains_any(name, ("video-", "animate")):
        return Modality.VIDEO
    return Modality.TEXT


def infer_local_capabilities(model_name: str) -> frozenset[str]:
    name = model_name.lower()
    caps = {"text"}
    if "vision" in name:
        caps.add("vision")
    if "image" in name:
        caps.add("image-generation")
    if _contains_any(name, ("tool", "function")):
        caps.add("function-calling")
    if "multimodal" in name:
        caps.add("multimodal")
    return frozenset(caps)


def infer_local_speed(model_name: str) -> Speed:
    if "-turbo" in model_name:
        return Speed.FAST
    if "-large" in model_name:
        return Speed.SLOW
    return Speed.MEDIUM


def local_descriptor(model_name: str) -> ModelDescriptor:
    """Build a descriptor for a model reported by the local server."""
    return ModelDescriptor(
        id=model_name,
        display_name=model_name.split(":")[0],
        modality=infer_local_modality(model_name),
        provider_kind=ProviderKind.LOCAL,
        is_local=True,
        quality=Quality.HIGH,
        speed=infer_local_speed(model_name),
        capabilities=infer_local_capabilities(model_name),
    )


class OllamaDiscoverySource(DescriptorSource):
    """
    Enumerate models installed on an Ollama server via GET /api/tags.

    Args:
        base_url: Ollama server URL
        client: Optional shared httpx client (a short-lived one is used otherwise)
    """

    name = "ollama-discovery"

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client

    async def fetch(self) -> list[ModelDescriptor]:
        if self._client is not None:
            response = await self._client.get(f"{self._base_url}/api/tags")
        else:
            async with httpx.AsyncClient(timeout=DISCOVERY_TIMEOUT_SECONDS) as client:
                response = await client.get(f"{self._base_url}/api/tags")
        response.raise_for_status()

        names = [m.get("name", "") for m in response.json().get("models", [])]
        descriptors = [local_descriptor(name) for name in names if name]
        logger.info(f"Discovered {len(descriptors)} local models at {self._base_url}")
        return descriptors


# =============================================================================
# GATEWAY (OPENROUTER)
# =============================================================================


def infer_gateway_modality(model_id: str) -> Modality:
    name = model_id.lower()
    if _contains_any(name, ("image", "dall", "midjourney")):
        return Modality.IMAGE
    if _contains_any(name, ("video", "runway", "pika")):
        return Modality.VIDEO
    return Modality.TEXT


def infer_gateway_quality(model_id: str) -> Quality:
    name = model_id.lower()
    if _contains_any(name, ("claude-3-opus", "gpt-4")):
        return Quality.HIGH
    if _contains_any(name, ("claude-3-sonnet", "gpt-3.5")):
        return Quality.MEDIUM
    return Quality.LOW


def infer_gateway_speed(model_id: str) -> Speed:
    name = model_id.lower()
    if _contains_any(name, ("turbo", "flash")):
        return Speed.FAST
    if _contains_any(name, ("sonnet", "gpt-3.5")):
        return Speed.MEDIUM
    return Speed.SLOW


def infer_gateway_capabilities(model_id: str, context_length: int | None) -> frozenset[str]:
    name = model_id.lower()
    caps = {"text"}
    if _contains_any(name, ("vision", "claude-3")):
        caps.add("vision")
    if "image" in name:
        caps.add("image-generation")
    if _contains_any(name, ("tool", "function")):
        caps.add("function-calling")
    if context_length and context_length >= LONG_CONTEXT_THRESHOLD:
        caps.add("long-context")
    return frozenset(caps)


def _price_per_1k(pricing: dict | None) -> float | None:
    """Convert the gateway's per-token USD price string to cost per 1K tokens."""
    if not pricing or pricing.get("prompt") in (None, ""):
        return None
    try:
        per_token = float(pricing["prompt"])
    except (TypeError, ValueError):
        return None
    if per_token < 0:  # negative prices mark router pseudo-models
        return None
    return per_token * 1000


def gateway_descriptor(entry: dict) -> ModelDescriptor:
    """Build a descriptor from one entry of the gateway's /models listing."""
    model_id = entry["id"]
    context_length = entry.get("context_length") or None
    return ModelDescriptor(
        id=model_id,
        display_name=entry.get("name") or model_id,
        modality=infer_gateway_modality(model_id),
        provider_kind=ProviderKind.GATEWAY,
        is_local=False,
        cost_per_unit=_price_per_1k(entry.get("pricing")),
        context_window=context_length,
        quality=infer_gateway_quality(model_id),
        speed=infer_gateway_speed(model_id),
        capabilities=infer_gateway_capabilities(model_id, context_length),
    )


class OpenRouterDiscoverySource(DescriptorSource):
    """
    Enumerate models offered by the hosted gateway via GET /models.

    Args:
        base_url: Gateway API base URL (e.g. https://openrouter.ai/api/v1)
        api_key: Gateway API key
        client: Optional shared httpx client
    """

    name = "openrouter-discovery"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client

    async def fetch(self) -> list[ModelDescriptor]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        url = f"{self._base_url}/models"
        if self._client is not None:
            response = await self._client.get(url, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=DISCOVERY_TIMEOUT_SECONDS) as client:
                response = await client.get(url, headers=headers)
        response.raise_for_status()

        descriptors = []
        for entry in response.json().get("data", []):
            if not entry.get("id"):
                continue
            try:
                descriptors.append(gateway_descriptor(entry))
            except ValueError as e:
                logger.debug(f"Skipping malformed gateway model {entry.get('id')}: {e}")

        logger.info(f"Discovered {len(descriptors)} gateway models")
        return descriptors
