"""
Dispatcher Handlers - Provider kind to adapter lookup.

ProviderAdapters maps each ProviderKind to the adapter that serves it.
Adapters are created on first use so that a backend without credentials
never fails at startup; it simply has no adapter, and the router treats
its descriptors as unavailable.
"""

import logging

from lightrouter.config import Settings
from lightrouter.dispatcher.base import ProviderAdapter
from lightrouter.dispatcher.direct import DirectAdapter, GroqAdapter
from lightrouter.dispatcher.gemini import GeminiAdapter
from lightrouter.dispatcher.gateway import GatewayAdapter
from lightrouter.dispatcher.local import LocalAdapter
from lightrouter.registry.models import ProviderKind

logger = logging.getLogger(__name__)


class ProviderAdapters:
    """
    Lazy-initialized provider adapters, keyed by provider kind.

    Example:
        adapters = ProviderAdapters(settings)
        adapter = adapters.get(ProviderKind.LOCAL)
        text = await adapter.generate(descriptor, prompt, GenerationOptions())
        await adapters.aclose()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        adapters: dict[ProviderKind, ProviderAdapter] | None = None,
    ) -> None:
        """
        Args:
            settings: Settings used to build adapters on demand. Without
                      settings only explicitly registered adapters exist.
            adapters: Adapters to register up front (tests inject fakes here)
        """
        self._settings = settings
        self._adapters: dict[ProviderKind, ProviderAdapter] = dict(adapters or {})

    def register(self, kind: ProviderKind, adapter: ProviderAdapter) -> None:
        """Install or replace the adapter for a provider kind."""
        self._adapters[kind] = adapter

    def get(self, kind: ProviderKind) -> ProviderAdapter | None:
        """
        Get the adapter for a provider kind (lazy initialization).

        Returns:
            The adapter, or None when the backend is not configured.
        """
        adapter = self._adapters.get(kind)
        if adapter is None and self._settings is not None:
            adapter = self._build(kind)
            if adapter is not None:
                self._adapters[kind] = adapter
        return adapter

    def _build(self, kind: ProviderKind) -> ProviderAdapter | None:
        settings = self._settings

        match kind:
            case ProviderKind.LOCAL:
                adapter = LocalAdapter(
                    ollama_base_url=settings.ollama_base_url,
                    comfyui_base_url=settings.comfyui_base_url,
                    poll_interval_seconds=settings.comfyui_poll_interval_seconds,
                    max_polls=settings.comfyui_max_polls,
                )
            case ProviderKind.GATEWAY:
                if settings.openrouter_api_key is None:
                    logger.warning("OPENROUTER_API_KEY not set; gateway models unavailable")
                    return None
                adapter = GatewayAdapter(
                    api_key=settings.openrouter_api_key.get_secret_value(),
                    base_url=settings.openrouter_base_url,
                )
            case ProviderKind.DIRECT:
                vendors = self._build_direct_vendors()
                if not vendors:
                    logger.warning(
                        "Neither GROQ_API_KEY nor GEMINI_API_KEY set; direct models unavailable"
                    )
                    return None
                adapter = DirectAdapter(vendors)
            case _:
                logger.error(f"Unknown provider kind: {kind}")
                return None

        logger.info(f"Initialized {adapter.name} adapter")
        return adapter

    def _build_direct_vendors(self) -> dict[str, ProviderAdapter]:
        settings = self._settings
        vendors: dict[str, ProviderAdapter] = {}

        if settings.groq_api_key is not None:
            vendors["groq"] = GroqAdapter(api_key=settings.groq_api_key.get_secret_value())
        if settings.gemini_api_key is not None:
            vendors["gemini"] = GeminiAdapter(
                api_key=settings.gemini_api_key.get_secret_value(),
                poll_interval_seconds=settings.video_poll_interval_seconds,
                max_polls=settings.video_max_polls,
            )
        return vendors

    def configured_kinds(self) -> list[ProviderKind]:
        """Provider kinds that have, or could build, an adapter."""
        return [kind for kind in ProviderKind if self.get(kind) is not None]

    async def aclose(self) -> None:
        """Close every adapter that was created."""
        for adapter in self._adapters.values():
            await adapter.aclose()
        self._adapters.clear()
