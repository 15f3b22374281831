"""Step telemetry helper methods for the translation workflow.

Responsibilities:
- Provide step index/total metadata for progress reporting.
- Emit step start/complete/failure events.
- Wrap step actions with consistent telemetry hooks.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from ..models.datatypes import StepDescriptor

_StepResult = TypeVar("_StepResult")


def stage_name(step: StepDescriptor) -> str:
    """Return the log stage token for a step."""

    return f"step_{step.step_id}"


class WorkflowTelemetryMixin:
    """Provide step-telemetry helper methods."""

    def _step_position(self, step: StepDescriptor) -> tuple[int, int]:
        """Return 1-based step index and total step count within the table."""

        step_ids = [int(candidate.step_id) for candidate in self.steps]
        return step_ids.index(int(step.step_id)) + 1, len(step_ids)

    def _on_step_start(self, step: StepDescriptor) -> None:
        """Emit start events to the progress callback and structured logger."""

        index, total = self._step_position(step)
        if self._step_progress_callback is not None:
            self._step_progress_callback(step.name, index, total)
        if self._run_logger is not None:
            self._run_logger.log_stage_start(stage_name(step), step=step.name)

    def _on_step_complete(self, step: StepDescriptor) -> None:
        """Emit step-complete event to the structured logger."""

        if self._run_logger is not None:
            self._run_logger.log_stage_complete(stage_name(step), step=step.name)

    def _on_step_failure(self, step: StepDescriptor, exc: Exception) -> None:
        """Emit step-failure event with sanitized exception metadata."""

        if self._run_logger is not None:
            self._run_logger.log_stage_failure(stage_name(step), type(exc).__name__)

    def _run_step(
        self,
        step: StepDescriptor,
        action: Callable[[], _StepResult],
    ) -> _StepResult:
        """Run one step and emit start/complete/failure telemetry events."""

        self._on_step_start(step)
        try:
            result = action()
        except Exception as exc:
            self._on_step_failure(step, exc)
            raise
        self._on_step_complete(step)
        return result
