"""Provider routing for generation requests.

Responsibilities:
- Dispatch each request to the OpenAI or Anthropic client by model name.
- Fail fast with a fatal error when the required provider has no credentials.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import FailureClass, GenerationError
from ..models.datatypes import ConversationMessage
from .anthropic_client import AnthropicMessagesClient
from .openai_client import OpenAIChatClient
from .service import GenerationOptions, GenerationResponse, GenerationService, is_anthropic_model


class ProviderRouter:
    """Dispatch generation requests to the provider that serves the model."""

    def __init__(
        self,
        *,
        openai_api_key: str | None = None,
        anthropic_api_key: str | None = None,
        openai_client: GenerationService | None = None,
        anthropic_client: GenerationService | None = None,
    ) -> None:
        """Initialize provider clients, creating HTTP clients when none are injected."""

        openai_key = (openai_api_key or "").strip()
        anthropic_key = (anthropic_api_key or "").strip()
        self._openai_client = openai_client or OpenAIChatClient(api_key=openai_key)
        self._anthropic_client = anthropic_client or AnthropicMessagesClient(
            api_key=anthropic_key
        )
        self._has_openai = bool(openai_key) or openai_client is not None
        self._has_anthropic = bool(anthropic_key) or anthropic_client is not None

    def available_providers(self) -> dict[str, bool]:
        """Return which providers have credentials configured."""

        return {"openai": self._has_openai, "anthropic": self._has_anthropic}

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Route the request by model name and return the provider response."""

        if is_anthropic_model(options.model):
            if not self._has_anthropic:
                raise GenerationError(
                    "Anthropic provider not available. Set `ANTHROPIC_API_KEY` or pass "
                    "`--anthropic-api-key`.",
                    failure_kind="invalid_api_key",
                    classification=FailureClass.FATAL,
                    provider="Anthropic",
                )
            return self._anthropic_client.generate(messages, options)

        if not self._has_openai:
            raise GenerationError(
                "OpenAI provider not available. Set `OPENAI_API_KEY` or pass `--api-key`.",
                failure_kind="invalid_api_key",
                classification=FailureClass.FATAL,
                provider="OpenAI",
            )
        return self._openai_client.generate(messages, options)
