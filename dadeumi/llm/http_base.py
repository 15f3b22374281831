"""Shared requests-based HTTP plumbing for generation providers.

Responsibilities:
- POST JSON payloads and decode JSON responses with consistent error mapping.
- Classify provider failures as transient, context-length, or fatal.
- Redact key-like tokens and cap provider messages shown to users.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests

from ..errors import FailureClass, GenerationError

_FATAL_FAILURE_KINDS = frozenset(
    {"invalid_api_key", "insufficient_quota", "invalid_model", "bad_request"}
)
_CONTEXT_LENGTH_PHRASES = (
    "maximum context length",
    "context length",
    "context window",
    "prompt is too long",
    "too many tokens",
)


def classification_for(failure_kind: str) -> FailureClass:
    """Map a diagnostic failure kind onto its retry classification."""

    if failure_kind == "context_length":
        return FailureClass.CONTEXT_LENGTH
    if failure_kind in _FATAL_FAILURE_KINDS:
        return FailureClass.FATAL
    return FailureClass.TRANSIENT


class _ProviderHTTPClient:
    """Shared HTTP settings and helpers used by provider-specific clients."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    provider_name = "provider"
    api_key_hint = "Set the provider API key."

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        timeout_seconds: float = 600.0,
    ) -> None:
        """Initialize provider HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _error(
        self,
        message: str,
        failure_kind: str,
        *,
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> GenerationError:
        """Build a classified provider error."""

        return GenerationError(
            message,
            failure_kind=failure_kind,
            classification=classification_for(failure_kind),
            status_code=status_code,
            provider_code=provider_code,
            provider=self.provider_name,
        )

    def _require_api_key(self) -> None:
        """Require API key presence before issuing requests."""

        if not self.api_key:
            raise self._error(
                f"Missing {self.provider_name} API key. {self.api_key_hint}",
                "invalid_api_key",
            )

    def _auth_headers(self) -> dict[str, str]:
        """Return provider-specific authentication headers."""

        raise NotImplementedError

    def _post_json(self, *, endpoint_path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and return the decoded JSON object response."""

        endpoint = f"{self.base_url}{endpoint_path}"
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            response_bytes = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = f"{self.provider_name} request timed out."
            else:
                detail = (
                    f"{self.provider_name} request transport error: "
                    f"{self._short_message(self._redact_sensitive_tokens(str(exc)))}"
                )
            raise self._error(detail, failure_kind) from exc
        except TimeoutError as exc:
            raise self._error(f"{self.provider_name} request timed out.", "timeout") from exc

        if not response_bytes:
            raise self._error(f"{self.provider_name} response is empty.", "empty_response")
        try:
            decoded = json.loads(response_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise self._error(
                f"{self.provider_name} returned invalid JSON payload.", "malformed_response"
            ) from exc
        if not isinstance(decoded, dict):
            raise self._error(
                f"{self.provider_name} response must be a JSON object.", "malformed_response"
            )
        return decoded

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        content = getattr(response, "content", b"") or b""
        return bytes(content).decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider-facing message and optional provider error code."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                for code_key in ("code", "type"):
                    code_value = error_payload.get(code_key)
                    if isinstance(code_value, str) and code_value.strip():
                        provider_code = code_value.strip()
                        break
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if normalized_code == "context_length_exceeded" or any(
            phrase in message_lower for phrase in _CONTEXT_LENGTH_PHRASES
        ):
            return "context_length"
        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if normalized_code == "insufficient_quota" or (
            status_code == 429 and "quota" in message_lower
        ):
            return "insufficient_quota"
        if normalized_code in {"model_not_found", "not_found_error"} or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist"))
        ):
            return "invalid_model"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        if status_code == 429:
            return "rate_limited"
        if status_code >= 500:
            return "server_error"
        if 400 <= status_code < 500:
            return "bad_request"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, (TimeoutError, socket.timeout, requests.Timeout)):
            return "timeout"
        return "transport"

    def _http_error_to_provider_error(self, exc: requests.HTTPError) -> GenerationError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = self._decode_error_body(exc)
        provider_message, provider_code = self._extract_provider_message(body)
        failure_kind = self._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "context_length": f"{self.provider_name} context window exceeded",
            "invalid_api_key": f"{self.provider_name} authentication failed",
            "insufficient_quota": f"{self.provider_name} quota is insufficient for this request",
            "invalid_model": f"{self.provider_name} rejected the selected model",
            "timeout": f"{self.provider_name} request timed out",
            "rate_limited": f"{self.provider_name} rate limit reached",
        }.get(failure_kind, f"{self.provider_name} request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return self._error(
            detail,
            failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )

    @staticmethod
    def _usage_int(usage: object, key: str) -> int:
        """Read a non-negative integer usage counter, defaulting to zero."""

        if not isinstance(usage, dict):
            return 0
        value = usage.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            return 0
        return max(0, value)
