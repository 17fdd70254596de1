"""
Direct Provider Adapters (vendor APIs)

Descriptors with provider_kind=direct are served by the vendor's own API.
DirectAdapter picks the vendor adapter from descriptor.vendor:

- groq (default): GroqAdapter, text through the Groq SDK
- gemini:         GeminiAdapter, text/image/video through google-genai
"""

import logging

import groq
from groq import AsyncGroq

from lightrouter.dispatcher.base import (
    GenerationOptions,
    ProviderAdapter,
    error_from_status,
    require_output,
)
from lightrouter.dispatcher.gateway import chat_messages
from lightrouter.exceptions import ErrorKind, GenerationError
from lightrouter.registry.models import Modality, ModelDescriptor

logger = logging.getLogger(__name__)

DEFAULT_VENDOR = "groq"


def error_from_groq(exc: groq.APIError, descriptor: ModelDescriptor) -> GenerationError:
    """Translate a Groq SDK exception into a classified GenerationError."""
    if isinstance(exc, groq.APITimeoutError):
        return GenerationError(
            ErrorKind.TIMEOUT, f"Groq request timed out: {exc}", descriptor_id=descriptor.id
        )
    if isinstance(exc, groq.APIConnectionError):
        return GenerationError(
            ErrorKind.UNAVAILABLE, f"Groq unreachable: {exc}", descriptor_id=descriptor.id
        )
    if isinstance(exc, groq.APIStatusError):
        return error_from_status(
            exc.status_code, exc.response.headers, exc.message, descriptor
        )
    return GenerationError(ErrorKind.UNAVAILABLE, str(exc), descriptor_id=descriptor.id)


class GroqAdapter(ProviderAdapter):
    """
    Adapter for Groq-hosted open models.

    Args:
        api_key: Groq API key
        client: Optional pre-built AsyncGroq client (tests pass a mock)
    """

    name = "groq"
    supported_modalities = frozenset({Modality.TEXT})

    def __init__(self, api_key: str | None = None, client: AsyncGroq | None = None) -> None:
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ValueError("GroqAdapter requires an API key")
            client = AsyncGroq(api_key=api_key, max_retries=1)
            logger.debug("Initialized Groq client")
        self._client = client

    async def generate(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        self.ensure_supported(descriptor)

        try:
            response = await self._client.chat.completions.create(
                model=descriptor.backend_model,
                messages=chat_messages(prompt, options),
                max_tokens=options.max_tokens,
                temperature=options.temperature,
            )
        except groq.APIError as e:
            raise error_from_groq(e, descriptor) from e

        text = response.choices[0].message.content if response.choices else None
        logger.debug(f"Groq generation completed: model={descriptor.id}")
        return require_output(text, descriptor)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()


class DirectAdapter(ProviderAdapter):
    """
    Vendor dispatch for provider_kind=direct.

    Args:
        vendors: Vendor name -> adapter, for every vendor with credentials
    """

    name = "direct"

    def __init__(self, vendors: dict[str, ProviderAdapter]) -> None:
        self._vendors = dict(vendors)
        self.supported_modalities = frozenset(
            modality
            for adapter in self._vendors.values()
            for modality in adapter.supported_modalities
        )

    @property
    def vendors(self) -> list[str]:
        return sorted(self._vendors)

    def vendor_adapter(self, vendor: str) -> ProviderAdapter | None:
        return self._vendors.get(vendor)

    async def generate(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        vendor = descriptor.vendor or DEFAULT_VENDOR
        adapter = self._vendors.get(vendor)
        if adapter is None:
            raise GenerationError(
                ErrorKind.UNAVAILABLE,
                f"No {vendor} credentials configured",
                descriptor_id=descriptor.id,
            )
        return await adapter.generate(descriptor, prompt, options)

    async def aclose(self) -> None:
        for adapter in self._vendors.values():
            await adapter.aclose()
