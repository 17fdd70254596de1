"""
Gemini Provider Adapter (google-genai)

Vendor-direct Google models, served for provider_kind=direct descriptors
whose vendor is "gemini":

- text:  models.generate_content
- image: models.generate_content with IMAGE response modality; the inline
         image bytes come back as a base64 data URI
- video: models.generate_videos starts a long-running operation which is
         polled through operations.get until done

Like ComfyUI image jobs, video polling stays inside generate(): the router
sees one attempt however many polls it takes, and an operation that never
finishes is a TIMEOUT.
"""

import asyncio
import base64
import logging

import httpx
from google import genai
from google.genai import errors, types

from lightrouter.dispatcher.base import (
    GenerationOptions,
    ProviderAdapter,
    error_from_httpx,
    error_from_status,
    require_output,
)
from lightrouter.exceptions import ErrorKind, GenerationError
from lightrouter.registry.models import Modality, ModelDescriptor

logger = logging.getLogger(__name__)


def error_from_genai(exc: errors.APIError, descriptor: ModelDescriptor) -> GenerationError:
    """Translate a google-genai API error into a classified GenerationError."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    return error_from_status(exc.code or 500, headers, exc.message or str(exc), descriptor)


class GeminiAdapter(ProviderAdapter):
    """
    Adapter for Gemini text/image models and Veo video models.

    Args:
        api_key: Gemini API key
        poll_interval_seconds: Delay between video operation polls
        max_polls: Polls before a video job counts as timed out
        client: Optional pre-built genai.Client (tests pass a mock)
    """

    name = "gemini"
    supported_modalities = frozenset({Modality.TEXT, Modality.IMAGE, Modality.VIDEO})

    def __init__(
        self,
        api_key: str | None = None,
        poll_interval_seconds: float = 5.0,
        max_polls: int = 60,
        client: genai.Client | None = None,
    ) -> None:
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ValueError("GeminiAdapter requires an API key")
            client = genai.Client(api_key=api_key)
            logger.debug("Initialized Gemini client")
        self._client = client
        self._poll_interval = poll_interval_seconds
        self._max_polls = max_polls

    async def generate(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        self.ensure_supported(descriptor)

        try:
            match descriptor.modality:
                case Modality.TEXT:
                    result = await self._generate_text(descriptor, prompt, options)
                case Modality.IMAGE:
                    result = await self._generate_image(descriptor, prompt)
                case _:
                    result = await self._generate_video(descriptor, prompt, options)
        except errors.APIError as e:
            raise error_from_genai(e, descriptor) from e
        except httpx.HTTPError as e:
            raise error_from_httpx(e, descriptor) from e

        logger.debug(f"Gemini generation completed: model={descriptor.id}")
        return require_output(result, descriptor)

    async def _generate_text(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str | None:
        response = await self._client.aio.models.generate_content(
            model=descriptor.backend_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=options.system_prompt,
                max_output_tokens=options.max_tokens,
                temperature=options.temperature,
            ),
        )
        return response.text

    async def _generate_image(self, descriptor: ModelDescriptor, prompt: str) -> str | None:
        response = await self._client.aio.models.generate_content(
            model=descriptor.backend_model,
            contents=prompt,
            config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
        )
        for candidate in response.candidates or []:
            for part in (candidate.content.parts if candidate.content else None) or []:
                if part.inline_data and part.inline_data.data:
                    mime_type = part.inline_data.mime_type or "image/png"
                    encoded = base64.b64encode(part.inline_data.data).decode("ascii")
                    return f"data:{mime_type};base64,{encoded}"
        return None

    async def _generate_video(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str | None:
        operation = await self._client.aio.models.generate_videos(
            model=descriptor.backend_model,
            prompt=prompt,
            config=types.GenerateVideosConfig(
                number_of_videos=1,
                resolution=options.extra.get("resolution", "720p"),
                aspect_ratio=options.extra.get("aspect_ratio", "16:9"),
            ),
        )
        logger.debug(f"Veo job started: model={descriptor.id}, operation={operation.name}")

        for _ in range(self._max_polls):
            if operation.done:
                return self._video_uri(descriptor, operation)
            await asyncio.sleep(self._poll_interval)
            operation = await self._client.aio.operations.get(operation)

        if operation.done:
            return self._video_uri(descriptor, operation)
        raise GenerationError(
            ErrorKind.TIMEOUT,
            f"Video job {operation.name} did not finish after {self._max_polls} polls",
            descriptor_id=descriptor.id,
        )

    def _video_uri(self, descriptor: ModelDescriptor, operation) -> str | None:
        if operation.error:
            raise GenerationError(
                ErrorKind.UNAVAILABLE,
                f"Video job failed: {operation.error}",
                descriptor_id=descriptor.id,
            )
        videos = operation.response.generated_videos if operation.response else None
        if not videos or videos[0].video is None:
            return None
        return videos[0].video.uri

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aio.aclose()
