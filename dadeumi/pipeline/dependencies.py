"""Prerequisite checks over persisted step artifacts.

Responsibilities:
- Decide whether a step is complete from its primary artifact on disk.
- Report which prerequisite steps of a step are not complete.

The checks only read the filesystem, so they are safe to repeat during forward
execution and resume reconciliation alike.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..io.storage import ArtifactStore
from ..models.datatypes import StepDescriptor


class DependencyValidator:
    """Check step completion and prerequisites against an artifact store."""

    def __init__(self, store: ArtifactStore, steps: Sequence[StepDescriptor]) -> None:
        """Index the step table for id lookups."""

        self._store = store
        self._steps = {int(step.step_id): step for step in steps}

    def step(self, step_id: int) -> StepDescriptor | None:
        """Return the descriptor for a step id, when present in the table."""

        return self._steps.get(int(step_id))

    def is_step_complete(self, step_id: int) -> bool:
        """Return whether the step's primary artifact exists and is non-empty."""

        step = self.step(step_id)
        if step is None:
            return False
        return self._store.is_non_empty(step.primary.filename)

    def missing_prerequisites(self, step_id: int) -> list[int]:
        """Return prerequisite step ids whose artifacts are missing or empty."""

        step = self.step(step_id)
        if step is None:
            return []
        return [
            int(prerequisite)
            for prerequisite in step.prerequisites
            if not self.is_step_complete(prerequisite)
        ]

    def is_satisfied(self, step_id: int) -> bool:
        """Return whether every prerequisite artifact of the step is present."""

        return not self.missing_prerequisites(step_id)
