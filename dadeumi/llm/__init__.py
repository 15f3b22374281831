"""LLM-facing abstractions for the translation conversation.

This package defines the generation service contract, the OpenAI and Anthropic
HTTP clients, provider routing, prompt templates, and model limit tables.
"""

from .anthropic_client import AnthropicMessagesClient
from .openai_client import OpenAIChatClient
from .prompts import PromptLibrary
from .router import ProviderRouter
from .service import GenerationOptions, GenerationResponse, GenerationService

__all__ = [
    "AnthropicMessagesClient",
    "GenerationOptions",
    "GenerationResponse",
    "GenerationService",
    "OpenAIChatClient",
    "PromptLibrary",
    "ProviderRouter",
]
