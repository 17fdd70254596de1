"""
Gateway Provider Adapter (OpenRouter)

OpenRouter speaks the OpenAI API, so the gateway is reached through the
OpenAI SDK pointed at a different base_url.

- text:        chat.completions
- image:       images.generate (URL, or a base64 data URI)
- video/audio: chat.completions; the model answers with a media URL
"""

import logging

import openai
from openai import AsyncOpenAI

from lightrouter.dispatcher.base import (
    GenerationOptions,
    ProviderAdapter,
    error_from_status,
    require_output,
)
from lightrouter.exceptions import ErrorKind, GenerationError
from lightrouter.registry.models import Modality, ModelDescriptor

logger = logging.getLogger(__name__)

APP_REFERER = "https://github.com/visual-light-router"
APP_TITLE = "Visual Light Router"


def error_from_openai(exc: openai.APIError, descriptor: ModelDescriptor) -> GenerationError:
    """Translate an OpenAI SDK exception into a classified GenerationError."""
    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(exc, openai.APITimeoutError):
        return GenerationError(
            ErrorKind.TIMEOUT, f"Gateway request timed out: {exc}", descriptor_id=descriptor.id
        )
    if isinstance(exc, openai.APIConnectionError):
        return GenerationError(
            ErrorKind.UNAVAILABLE, f"Gateway unreachable: {exc}", descriptor_id=descriptor.id
        )
    if isinstance(exc, openai.APIStatusError):
        return error_from_status(
            exc.status_code, exc.response.headers, exc.message, descriptor
        )
    return GenerationError(ErrorKind.UNAVAILABLE, str(exc), descriptor_id=descriptor.id)


def chat_messages(prompt: str, options: GenerationOptions) -> list[dict]:
    messages = []
    if options.system_prompt:
        messages.append({"role": "system", "content": options.system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


class GatewayAdapter(ProviderAdapter):
    """
    Adapter for hosted models reached through OpenRouter.

    Args:
        api_key: OpenRouter API key
        base_url: OpenAI-compatible gateway URL
        client: Optional pre-built AsyncOpenAI client (tests pass a mock)
    """

    name = "gateway"
    supported_modalities = frozenset(
        {Modality.TEXT, Modality.IMAGE, Modality.VIDEO, Modality.AUDIO}
    )

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://openrouter.ai/api/v1",
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ValueError("GatewayAdapter requires an API key")
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                max_retries=1,
                default_headers={"HTTP-Referer": APP_REFERER, "X-Title": APP_TITLE},
            )
            logger.debug(f"Initialized gateway client: base_url={base_url}")
        self._client = client

    async def generate(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        self.ensure_supported(descriptor)

        try:
            match descriptor.modality:
                case Modality.IMAGE:
                    result = await self._generate_image(descriptor, prompt, options)
                case _:
                    result = await self._chat(descriptor, prompt, options)
        except openai.APIError as e:
            raise error_from_openai(e, descriptor) from e

        logger.debug(f"Gateway generation completed: model={descriptor.id}")
        return require_output(result, descriptor)

    async def _chat(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str | None:
        response = await self._client.chat.completions.create(
            model=descriptor.backend_model,
            messages=chat_messages(prompt, options),
            max_tokens=options.max_tokens,
            temperature=options.temperature,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content

    async def _generate_image(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str | None:
        response = await self._client.images.generate(
            model=descriptor.backend_model,
            prompt=prompt,
            n=1,
            size=options.extra.get("size", "1024x1024"),
        )
        if not response.data:
            return None
        image = response.data[0]
        if image.url:
            return image.url
        if image.b64_json:
            return f"data:image/png;base64,{image.b64_json}"
        return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()
