"""
Local Provider Adapter (Ollama + ComfyUI)

Serves descriptors with provider_kind=local:
- text:  Ollama  POST /api/generate (non-streaming)
- image: ComfyUI POST /prompt, then polls GET /history/{prompt_id}

Image jobs are asynchronous on the ComfyUI side; the polling loop lives
entirely inside generate(), so the router sees one attempt regardless of
how many polls it takes. A job that never completes is a TIMEOUT.
"""

import asyncio
import logging
import random
from urllib.parse import urlencode

import httpx

from lightrouter.dispatcher.base import (
    GenerationOptions,
    ProviderAdapter,
    error_from_httpx,
    require_output,
)
from lightrouter.exceptions import ErrorKind, GenerationError
from lightrouter.registry.models import Modality, ModelDescriptor

logger = logging.getLogger(__name__)

SAVE_IMAGE_NODE = "9"


def build_comfyui_workflow(
    checkpoint: str,
    prompt: str,
    width: int = 1024,
    height: int = 1024,
    negative_prompt: str = "",
    seed: int | None = None,
) -> dict:
    """Text-to-image workflow graph: checkpoint -> encode -> sample -> decode -> save."""
    return {
        "1": {
            "inputs": {"text": prompt, "clip": ["4", 1]},
            "class_type": "CLIPTextEncode",
        },
        "4": {
            "inputs": {"ckpt_name": checkpoint},
            "class_type": "CheckpointLoaderSimple",
        },
        "5": {
            "inputs": {"width": width, "height": height, "batch_size": 1},
            "class_type": "EmptyLatentImage",
        },
        "6": {
            "inputs": {"text": negative_prompt, "clip": ["4", 1]},
            "class_type": "CLIPTextEncode",
        },
        "7": {
            "inputs": {
                "seed": seed if seed is not None else random.randint(0, 999_999),
                "steps": 20,
                "cfg": 8,
                "sampler_name": "euler",
                "scheduler": "normal",
                "denoise": 1,
                "model": ["4", 0],
                "positive": ["1", 0],
                "negative": ["6", 0],
                "latent_image": ["5", 0],
            },
            "class_type": "KSampler",
        },
        "8": {
            "inputs": {"samples": ["7", 0], "vae": ["4", 2]},
            "class_type": "VAEDecode",
        },
        SAVE_IMAGE_NODE: {
            "inputs": {"filename_prefix": "infographic", "images": ["8", 0]},
            "class_type": "SaveImage",
        },
    }


class LocalAdapter(ProviderAdapter):
    """
    Adapter for self-hosted inference servers.

    Args:
        ollama_base_url: Ollama server URL
        comfyui_base_url: ComfyUI server URL
        poll_interval_seconds: Delay between ComfyUI history polls
        max_polls: Polls before an image job counts as timed out
        client: Optional httpx client (tests pass one with a MockTransport)
    """

    name = "local"
    supported_modalities = frozenset({Modality.TEXT, Modality.IMAGE})

    def __init__(
        self,
        ollama_base_url: str = "http://localhost:11434",
        comfyui_base_url: str = "http://localhost:8188",
        poll_interval_seconds: float = 1.0,
        max_polls: int = 60,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._ollama_url = ollama_base_url.rstrip("/")
        self._comfyui_url = comfyui_base_url.rstrip("/")
        self._poll_interval = poll_interval_seconds
        self._max_polls = max_polls
        self._owns_client = client is None
        # One transport-level retry on connection failure; the router handles the rest
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(300.0, connect=5.0),
            transport=httpx.AsyncHTTPTransport(retries=1),
        )

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
                    return await self._generate_text(descriptor, prompt, options)
                case _:
                    return await self._generate_image(descriptor, prompt, options)
        except httpx.HTTPError as e:
            raise error_from_httpx(e, descriptor) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GenerationError(
                ErrorKind.UNAVAILABLE,
                f"Malformed response from local backend: {e}",
                descriptor_id=descriptor.id,
            ) from e

    async def _generate_text(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        payload = {
            "model": descriptor.backend_model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
                "top_p": options.extra.get("top_p", 0.9),
                "repeat_penalty": options.extra.get("repeat_penalty", 1.1),
            },
        }
        if options.system_prompt:
            payload["system"] = options.system_prompt

        response = await self._client.post(f"{self._ollama_url}/api/generate", json=payload)
        response.raise_for_status()

        text = response.json().get("response")
        logger.debug(f"Ollama generation completed: model={descriptor.id}")
        return require_output(text, descriptor)

    async def _generate_image(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        options: GenerationOptions,
    ) -> str:
        workflow = build_comfyui_workflow(
            checkpoint=descriptor.backend_model,
            prompt=prompt,
            width=options.extra.get("width", 1024),
            height=options.extra.get("height", 1024),
            negative_prompt=options.extra.get("negative_prompt", ""),
            seed=options.extra.get("seed"),
        )
        response = await self._client.post(
            f"{self._comfyui_url}/prompt", json={"prompt": workflow}
        )
        response.raise_for_status()
        prompt_id = response.json()["prompt_id"]
        logger.debug(f"ComfyUI job queued: model={descriptor.id}, prompt_id={prompt_id}")

        return await self._wait_for_image(descriptor, prompt_id)

    async def _wait_for_image(self, descriptor: ModelDescriptor, prompt_id: str) -> str:
        for _ in range(self._max_polls):
            response = await self._client.get(f"{self._comfyui_url}/history/{prompt_id}")
            response.raise_for_status()

            job = response.json().get(prompt_id)
            outputs = (job or {}).get("outputs") or {}
            images = outputs.get(SAVE_IMAGE_NODE, {}).get("images")
            if images:
                image = images[0]
                query = urlencode(
                    {
                        "filename": image["filename"],
                        "subfolder": image.get("subfolder", ""),
                        "type": image.get("type", "output"),
                    }
                )
                return f"{self._comfyui_url}/view?{query}"

            await asyncio.sleep(self._poll_interval)

        raise GenerationError(
            ErrorKind.TIMEOUT,
            f"Image job {prompt_id} did not finish after {self._max_polls} polls",
            descriptor_id=descriptor.id,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
