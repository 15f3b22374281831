"""Anthropic Messages API client.

Responsibilities:
- Send conversations to `/v1/messages` with the system prompt passed separately.
- Map non-assistant turns onto the `user` role the API accepts.
"""

from __future__ import annotations

from collections.abc import Sequence
import time
from typing import Any

from ..models.datatypes import ConversationMessage
from .http_base import _ProviderHTTPClient
from .service import GenerationOptions, GenerationResponse

ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicMessagesClient(_ProviderHTTPClient):
    """Minimal requests-based Anthropic client implementing `GenerationService`."""

    provider_name = "Anthropic"
    api_key_hint = (
        "Set `ANTHROPIC_API_KEY`, use `--anthropic-api-key`, or store one with "
        "`dadeumi credentials --provider anthropic`."
    )

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.anthropic.com/v1",
        timeout_seconds: float = 600.0,
    ) -> None:
        """Initialize Anthropic HTTP client settings."""

        super().__init__(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_API_VERSION}

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Return the generated text and usage for a conversation."""

        self._require_api_key()
        started = time.perf_counter()
        payload = self._post_json(
            endpoint_path="/messages",
            payload=self._messages_payload(messages, options),
        )
        content = self._extract_text(payload)
        usage = payload.get("usage")
        return GenerationResponse(
            content=content,
            input_tokens=self._usage_int(usage, "input_tokens"),
            output_tokens=self._usage_int(usage, "output_tokens"),
            model=options.model,
            duration_seconds=time.perf_counter() - started,
        )

    @staticmethod
    def _messages_payload(
        messages: Sequence[ConversationMessage], options: GenerationOptions
    ) -> dict[str, Any]:
        """Build a Messages API request body."""

        system_prompt: str | None = None
        turns = list(messages)
        if turns and turns[0].role == "system":
            system_prompt = turns[0].content
            turns = turns[1:]

        payload: dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_output_tokens,
            "temperature": options.temperature,
            "messages": [
                {
                    "role": "assistant" if message.role == "assistant" else "user",
                    "content": message.content,
                }
                for message in turns
            ],
        }
        if system_prompt is not None:
            payload["system"] = system_prompt
        return payload

    def _extract_text(self, payload: dict[str, Any]) -> str:
        """Join text blocks from a Messages API response."""

        blocks = payload.get("content")
        if not isinstance(blocks, list):
            raise self._error("Anthropic response missing `content` list.", "malformed_response")
        text = "".join(
            block["text"]
            for block in blocks
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ).strip()
        if not text:
            raise self._error("Anthropic response content is empty.", "empty_response")
        return text
