"""OpenAI HTTP client for the translation conversation.

Responsibilities:
- Send chat-completions requests for chat models and Responses API requests for
  reasoning models (`o1`, `o3`, `o4` families).
- Normalize text, usage, and timing extraction into `GenerationResponse`.
- Raise classified `GenerationError`s for step-level retry decisions.
"""

from __future__ import annotations

from collections.abc import Sequence
import time
from typing import Any

from ..models.datatypes import ConversationMessage
from .http_base import _ProviderHTTPClient
from .service import GenerationOptions, GenerationResponse


class OpenAIChatClient(_ProviderHTTPClient):
    """Minimal requests-based OpenAI client implementing `GenerationService`."""

    provider_name = "OpenAI"
    api_key_hint = (
        "Set `OPENAI_API_KEY`, use `--api-key`, or store one with `dadeumi credentials`."
    )
    _REASONING_MODEL_PREFIXES = ("o1", "o3", "o4")

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 600.0,
    ) -> None:
        """Initialize OpenAI HTTP client settings."""

        super().__init__(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        """Return bearer authentication headers."""

        return {"Authorization": f"Bearer {self.api_key}"}

    @classmethod
    def is_reasoning_model(cls, model: str) -> bool:
        """Return whether a model must be called through the Responses API."""

        return model.strip().lower().startswith(cls._REASONING_MODEL_PREFIXES)

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Return the generated text and usage for a conversation."""

        self._require_api_key()
        started = time.perf_counter()
        if self.is_reasoning_model(options.model):
            payload = self._post_json(
                endpoint_path="/responses",
                payload=self._responses_payload(messages, options),
            )
            content = self._extract_output_text(payload)
            usage = payload.get("usage")
            input_tokens = self._usage_int(usage, "input_tokens")
            output_tokens = self._usage_int(usage, "output_tokens")
        else:
            payload = self._post_json(
                endpoint_path="/chat/completions",
                payload=self._chat_payload(messages, options),
            )
            content = self._extract_message_text(payload)
            usage = payload.get("usage")
            input_tokens = self._usage_int(usage, "prompt_tokens")
            output_tokens = self._usage_int(usage, "completion_tokens")

        return GenerationResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=options.model,
            duration_seconds=time.perf_counter() - started,
        )

    @staticmethod
    def _chat_payload(
        messages: Sequence[ConversationMessage], options: GenerationOptions
    ) -> dict[str, Any]:
        """Build a chat-completions request body."""

        return {
            "model": options.model,
            "messages": [message.to_dict() for message in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_output_tokens,
        }

    @staticmethod
    def combined_prompt(messages: Sequence[ConversationMessage]) -> str:
        """Flatten a conversation into one prompt, keeping the system message as a preamble."""

        if messages and messages[0].role == "system":
            turns = "\n\n".join(f"{message.role}: {message.content}" for message in messages[1:])
            return f"{messages[0].content}\n\n---\n\n{turns}"
        return "\n\n".join(f"{message.role}: {message.content}" for message in messages)

    @classmethod
    def _responses_payload(
        cls, messages: Sequence[ConversationMessage], options: GenerationOptions
    ) -> dict[str, Any]:
        """Build a Responses API request body for reasoning models."""

        return {
            "model": options.model,
            "input": [{"role": "user", "content": cls.combined_prompt(messages)}],
            "reasoning": {"effort": options.reasoning_effort or "medium"},
            "max_output_tokens": options.max_output_tokens,
        }

    def _extract_message_text(self, payload: dict[str, Any]) -> str:
        """Extract first assistant message text from a chat-completions payload."""

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise self._error(
                "OpenAI response missing non-empty `choices` list.", "malformed_response"
            )

        first_choice = choices[0]
        if not isinstance(first_choice, dict):
            raise self._error("OpenAI response `choices[0]` is malformed.", "malformed_response")

        message = first_choice.get("message")
        if not isinstance(message, dict):
            raise self._error(
                "OpenAI response missing `choices[0].message` object.", "malformed_response"
            )

        text = self._message_content_to_text(message.get("content")).strip()
        if not text:
            raise self._error("OpenAI response message content is empty.", "empty_response")
        return text

    def _extract_output_text(self, payload: dict[str, Any]) -> str:
        """Extract concatenated output text from a Responses API payload."""

        direct = payload.get("output_text")
        if isinstance(direct, str) and direct.strip():
            return direct.strip()

        parts: list[str] = []
        output = payload.get("output")
        if isinstance(output, list):
            for item in output:
                if not isinstance(item, dict) or item.get("type") != "message":
                    continue
                parts.append(self._message_content_to_text(item.get("content")))
        text = "".join(parts).strip()
        if not text:
            raise self._error("OpenAI response output text is empty.", "empty_response")
        return text

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert OpenAI message content variants into a plain text string."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if not isinstance(item, dict):
                    continue
                if item.get("type") in {"text", "output_text"} and isinstance(
                    item.get("text"), str
                ):
                    parts.append(item["text"])
            return "".join(parts)
        return ""
