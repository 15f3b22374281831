"""Structured run logging utilities.

Responsibilities:
- Emit concise, deterministic step-level runtime logs through `loguru`.
- Keep secrets and model payloads out of log lines.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


class RunLogger:
    """Emit deterministic phase logs for CLI-observable workflow activity."""

    def __init__(
        self,
        sink: TextIO | None = None,
        *,
        level: str = "INFO",
        configure: bool = True,
    ) -> None:
        """Initialize logger sink and configure deterministic formatting.

        With `configure=False` the global loguru handlers are left untouched, which
        lets library components log without hijacking the host application's setup.
        """

        if configure:
            _loguru_logger.remove()
            _loguru_logger.add(
                sink or sys.stderr, format="{message}", level=level, colorize=False
            )

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        line = f"[phase] level={level} stage={stage} event={event}{_format_context(context)}"
        _loguru_logger.log(level, line)

    def log_stage_start(self, stage: str, **context: object) -> None:
        """Emit a stage-start runtime event."""

        self._emit("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        """Emit a stage-complete runtime event."""

        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str) -> None:
        """Emit a stage-failure runtime event without sensitive payload details."""

        self._emit("ERROR", "failure", stage, error_type=error_type)

    def log_step_skipped(self, stage: str, reason: str) -> None:
        """Emit an event for a step that will not run."""

        self._emit("INFO", "skip", stage, reason=reason)

    def log_regression(self, stage: str, target_step: int, missing: list[int]) -> None:
        """Emit a warning when unmet prerequisites move the cursor backward."""

        self._emit(
            "WARNING",
            "regress",
            stage,
            target_step=target_step,
            missing=",".join(str(step_id) for step_id in missing),
        )

    def log_retry(
        self,
        stage: str,
        *,
        attempt: int,
        max_attempts: int,
        failure_kind: str,
        delay_seconds: float,
    ) -> None:
        """Emit a warning when a failed generation attempt will be retried."""

        self._emit(
            "WARNING",
            "retry",
            stage,
            attempt=f"{attempt}/{max_attempts}",
            failure_kind=failure_kind,
            delay_seconds=f"{delay_seconds:g}",
        )

    def log_context_trimmed(
        self, stage: str, *, mode: str, before_tokens: int, after_tokens: int
    ) -> None:
        """Emit a warning when the working conversation was reduced."""

        self._emit(
            "WARNING",
            "context_trim",
            stage,
            mode=mode,
            before_tokens=before_tokens,
            after_tokens=after_tokens,
        )

    def log_call_stats(
        self,
        stage: str,
        *,
        model: str,
        duration_seconds: float,
        input_tokens: int,
        output_tokens: int,
        cost_usd: float,
    ) -> None:
        """Emit per-call usage details at debug level."""

        tokens_per_second = (
            f"{output_tokens / duration_seconds:.2f}" if duration_seconds > 0 else "inf"
        )
        self._emit(
            "DEBUG",
            "call_stats",
            stage,
            model=model,
            duration_seconds=f"{duration_seconds:.2f}",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            output_tps=tokens_per_second,
            cost_usd=f"{cost_usd:.5f}",
        )

    def log_missing_pricing(self, model: str) -> None:
        """Emit a warning when no price is known for a model."""

        self._emit("WARNING", "pricing_unknown", "cost", model=model)

    def log_history_save_failure(self, target: str, error_type: str) -> None:
        """Emit a warning when a best-effort history write failed."""

        self._emit("WARNING", "save_failed", "history", target=target, error_type=error_type)

    def log_session_unreadable(self, target: str, error_type: str) -> None:
        """Emit a warning when a persisted session cannot be decoded."""

        self._emit("WARNING", "unreadable", "resume", target=target, error_type=error_type)

    def log_session_resumed(self, *, claimed_step: int, resolved_step: int) -> None:
        """Emit the outcome of resume reconciliation."""

        self._emit(
            "INFO",
            "resumed",
            "resume",
            claimed_step=claimed_step,
            resolved_step=resolved_step,
        )

    def log_best_effort_save(self, source: str | None, destination: str) -> None:
        """Emit the outcome of the best-effort final save."""

        if source is None:
            self._emit("WARNING", "no_artifact", "best_effort_save", destination=destination)
            return
        self._emit(
            "INFO", "saved", "best_effort_save", source=source, destination=destination
        )
