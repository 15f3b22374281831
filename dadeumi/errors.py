"""Domain exceptions for workflow and CLI diagnostics.

Responsibilities:
- Provide a stage-scoped error rendered by the CLI with an actionable hint.
- Provide a provider-neutral generation error carrying a retry classification.
"""

from __future__ import annotations

from enum import Enum


class PipelineStageError(RuntimeError):
    """Raised when a specific workflow stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped workflow error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class FailureClass(str, Enum):
    """Retry classification attached to generation failures."""

    TRANSIENT = "transient"
    CONTEXT_LENGTH = "context_length"
    FATAL = "fatal"


class GenerationError(RuntimeError):
    """Raised when a generation provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        classification: FailureClass = FailureClass.TRANSIENT,
        status_code: int | None = None,
        provider_code: str | None = None,
        provider: str | None = None,
    ) -> None:
        """Initialize provider error metadata for step-aware diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.classification = classification
        self.status_code = status_code
        self.provider_code = provider_code
        self.provider = provider

    @property
    def retryable(self) -> bool:
        """Return whether another attempt may succeed."""

        return self.classification is not FailureClass.FATAL
