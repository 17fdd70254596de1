"""
Dispatcher module: Provider adapters behind one generate() interface.

This module contains:
- base.py: ProviderAdapter ABC, GenerationOptions, error classification
- local.py: Ollama (text) and ComfyUI (image) over httpx
- gateway.py: OpenRouter through the OpenAI SDK
- direct.py: vendor dispatch for direct models; Groq through the Groq SDK
- gemini.py: Gemini text/image and Veo video through google-genai
- handlers.py: ProviderAdapters (provider kind -> adapter)
"""

from lightrouter.dispatcher.base import (
    GenerationOptions,
    ProviderAdapter,
    classify_status,
)
from lightrouter.dispatcher.direct import DirectAdapter, GroqAdapter
from lightrouter.dispatcher.gemini import GeminiAdapter
from lightrouter.dispatcher.gateway import GatewayAdapter
from lightrouter.dispatcher.handlers import ProviderAdapters
from lightrouter.dispatcher.local import LocalAdapter

__all__ = [
    "GenerationOptions",
    "ProviderAdapter",
    "classify_status",
    "LocalAdapter",
    "GatewayAdapter",
    "DirectAdapter",
    "GroqAdapter",
    "GeminiAdapter",
    "ProviderAdapters",
]
