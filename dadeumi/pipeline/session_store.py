"""Session persistence and resume reconciliation.

Responsibilities:
- Persist session snapshots as JSON plus a human-readable transcript.
- Rebuild a resumable session from disk, trusting artifacts over the stored counter.
- Copy the most refined available deliverable to the external output path.

History writes are best-effort: failures are logged and never abort a run, because
step artifacts on disk, not the transcript, are the source of truth for resume.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..io.storage import ArtifactStore
from ..models.datatypes import (
    ArtifactKey,
    ArtifactSpec,
    AttemptRecord,
    ConversationMessage,
    FinalArtifact,
    Session,
    StepDescriptor,
    TranslationMetrics,
)
from ..telemetry.logger import RunLogger
from .dependencies import DependencyValidator

HISTORY_JSON = "conversation_history.json"
HISTORY_TEXT = "conversation_history.txt"
METRICS_JSON = "translation_metrics.json"

_SECTION_RULE = "=" * 80
_MESSAGE_RULE = "-" * 80


def utc_timestamp() -> str:
    """Return the current UTC time in ISO-8601 form."""

    return datetime.now(timezone.utc).isoformat()


class SessionStore:
    """Load, save, and reconcile session state inside the intermediates directory."""

    def __init__(
        self,
        store: ArtifactStore,
        steps: Sequence[StepDescriptor],
        run_logger: RunLogger | None = None,
    ) -> None:
        """Bind the store to a step table and optional logger."""

        self._store = store
        self._steps = tuple(steps)
        self._validator = DependencyValidator(store, self._steps)
        self._run_logger = run_logger
        self._specs_by_filename: dict[str, ArtifactSpec] = {
            spec.filename: spec for step in self._steps for spec in step.outputs
        }

    @property
    def validator(self) -> DependencyValidator:
        """Return the dependency validator bound to this store."""

        return self._validator

    def exists(self) -> bool:
        """Return whether a persisted session snapshot is present."""

        return self._store.exists(HISTORY_JSON)

    def load(self) -> Session | None:
        """Return the reconciled persisted session, or `None` when absent or unreadable."""

        if not self.exists():
            return None
        try:
            payload = self._store.load_json(HISTORY_JSON)
            session = self._session_from_payload(payload)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            if self._run_logger is not None:
                self._run_logger.log_session_unreadable(HISTORY_JSON, type(exc).__name__)
            return None

        session.output_files = self.scan_output_files()
        session.translation_steps = [
            step.label for step in self._steps if self._validator.is_step_complete(step.step_id)
        ]
        self._load_metrics(session)

        claimed_step = session.step_counter
        session.step_counter = self.reconcile_step_counter(claimed_step)
        if self._run_logger is not None:
            self._run_logger.log_session_resumed(
                claimed_step=claimed_step, resolved_step=session.step_counter
            )
        return session

    def _session_from_payload(self, payload: object) -> Session:
        """Decode the JSON snapshot written by `save`."""

        if not isinstance(payload, Mapping):
            raise TypeError("Session snapshot must be a JSON object.")
        metadata = payload.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise TypeError("Session snapshot metadata must be a JSON object.")
        conversation = [
            ConversationMessage.from_dict(message)
            for message in payload.get("conversation") or []
        ]
        attempts = [AttemptRecord.from_dict(entry) for entry in payload.get("attempts") or []]
        return Session(
            conversation=conversation,
            step_counter=int(metadata.get("step", 0)),
            total_input_tokens=int(metadata.get("totalInputTokens", 0)),
            total_output_tokens=int(metadata.get("totalOutputTokens", 0)),
            estimated_cost=float(metadata.get("estimatedCost", 0.0)),
            attempts=attempts,
            source_hash=metadata.get("sourceHash"),
        )

    def scan_output_files(self) -> dict[ArtifactKey, Path]:
        """Map recognized, non-empty artifact files on disk to their keys."""

        output_files: dict[ArtifactKey, Path] = {}
        for filename in self._store.list_step_artifacts():
            spec = self._specs_by_filename.get(filename)
            if spec is not None and self._store.is_non_empty(filename):
                output_files[spec.key] = self._store.path_for(filename)
        return output_files

    def _load_metrics(self, session: Session) -> None:
        """Restore persisted metrics, ignoring an unreadable metrics file."""

        if not self._store.exists(METRICS_JSON):
            return
        try:
            payload = self._store.load_json(METRICS_JSON)
        except (OSError, ValueError) as exc:
            if self._run_logger is not None:
                self._run_logger.log_session_unreadable(METRICS_JSON, type(exc).__name__)
            return
        if not isinstance(payload, Mapping):
            return
        known_keys = {key.value: key for key in ArtifactKey}
        for name, value in payload.items():
            if not isinstance(value, Mapping):
                continue
            if name == "source":
                session.source_metrics = TranslationMetrics.from_dict(value)
            elif name in known_keys:
                session.metrics[known_keys[name]] = TranslationMetrics.from_dict(value)

    def reconcile_step_counter(self, claimed_step: int) -> int:
        """Correct a persisted step counter by one step against artifacts on disk.

        A claimed step whose primary artifact is missing or empty is moved back by one.
        Otherwise, when the next step's primary artifact was already written, the counter
        moves forward by one: the artifact write is the durability boundary, so a crash
        between that write and the counter save still counts the step as done.
        """

        step_ids = [int(step.step_id) for step in self._steps]
        counter = max(0, min(int(claimed_step), max(step_ids)))
        if counter > 0 and not self._validator.is_step_complete(counter):
            return counter - 1

        next_ids = [step_id for step_id in step_ids if step_id > counter]
        if next_ids:
            next_id = next_ids[0]
            if self._validator.is_step_complete(next_id) and self._validator.is_satisfied(
                next_id
            ):
                return next_id
        return counter

    def save(self, session: Session, label: str) -> bool:
        """Write the JSON snapshot and text transcript; return whether both succeeded."""

        timestamp = utc_timestamp()
        try:
            self._store.save_json(HISTORY_JSON, self.snapshot_payload(session, label, timestamp))
        except OSError as exc:
            self._log_save_failure(HISTORY_JSON, exc)
            return False
        try:
            self._store.save_text(HISTORY_TEXT, render_transcript(session, label, timestamp))
        except OSError as exc:
            self._log_save_failure(HISTORY_TEXT, exc)
            return False
        return True

    @staticmethod
    def snapshot_payload(session: Session, label: str, timestamp: str) -> dict[str, Any]:
        """Build the machine-readable session snapshot."""

        return {
            "metadata": {
                "timestamp": timestamp,
                "label": label,
                "step": session.step_counter,
                "totalTokens": session.total_tokens,
                "totalInputTokens": session.total_input_tokens,
                "totalOutputTokens": session.total_output_tokens,
                "estimatedCost": session.estimated_cost,
                "sourceHash": session.source_hash,
            },
            "conversation": [message.to_dict() for message in session.conversation],
            "attempts": [record.to_dict() for record in session.attempts],
        }

    def save_metrics(self, session: Session) -> bool:
        """Write `translation_metrics.json`; return whether the write succeeded."""

        payload: dict[str, object] = {}
        if session.source_metrics is not None:
            payload["source"] = session.source_metrics.to_dict()
        for key, metrics in session.metrics.items():
            payload[key.value] = metrics.to_dict()
        try:
            self._store.save_json(METRICS_JSON, payload)
        except OSError as exc:
            self._log_save_failure(METRICS_JSON, exc)
            return False
        return True

    def _log_save_failure(self, target: str, exc: Exception) -> None:
        if self._run_logger is not None:
            self._run_logger.log_history_save_failure(target, type(exc).__name__)

    def deliverables_latest_first(self) -> list[ArtifactSpec]:
        """Return deliverable artifact specs in reverse pipeline order."""

        return [
            spec
            for step in reversed(self._steps)
            for spec in reversed(step.outputs)
            if spec.deliverable
        ]

    def latest_deliverable(self) -> FinalArtifact | None:
        """Return the most refined non-empty deliverable on disk, if any."""

        for spec in self.deliverables_latest_first():
            if self._store.is_non_empty(spec.filename):
                return FinalArtifact(
                    key=spec.key,
                    path=self._store.path_for(spec.filename),
                    content=self._store.load_text(spec.filename),
                )
        return None

    def save_best_effort_final(self, destination: Path) -> Path | None:
        """Copy the most refined available deliverable to `destination`.

        Returns the destination path, or `None` when no deliverable exists or the copy
        could not be written.
        """

        artifact = self.latest_deliverable()
        if artifact is None:
            if self._run_logger is not None:
                self._run_logger.log_best_effort_save(None, str(destination))
            return None
        try:
            ArtifactStore(destination.parent).save_text(destination.name, artifact.content)
        except OSError as exc:
            self._log_save_failure(destination.name, exc)
            return None
        if self._run_logger is not None:
            self._run_logger.log_best_effort_save(artifact.path.name, str(destination))
        return destination


def render_transcript(session: Session, label: str, timestamp: str) -> str:
    """Render the human-readable conversation transcript."""

    lines = [
        "# Translation Conversation History",
        "",
        f"Last update: {timestamp}",
        f"Label: {label}",
        f"Step: {session.step_counter}",
        f"Total tokens used: {session.total_tokens:,}",
        f"Input tokens: {session.total_input_tokens:,}",
        f"Output tokens: {session.total_output_tokens:,}",
        f"Estimated total cost: ${session.estimated_cost:.4f}",
        "",
        _SECTION_RULE,
        "",
    ]
    blocks = [
        f"## {message.role.upper()}:\n\n{message.content}" for message in session.conversation
    ]
    text = "\n".join(lines) + "\n" + f"\n\n{_MESSAGE_RULE}\n\n".join(blocks)

    if session.attempts:
        attempt_lines = [_attempt_line(record) for record in session.attempts]
        text += f"\n\n{_SECTION_RULE}\n\n## ATTEMPT LOG:\n\n" + "\n".join(attempt_lines)
    return text + "\n"


def _attempt_line(record: AttemptRecord) -> str:
    status = "success" if record.succeeded else f"error ({record.failure_kind or 'unknown'})"
    line = f"- [{record.timestamp}] {record.label} - Attempt {record.attempt}: {status}"
    if record.detail and not record.succeeded:
        line += f" - {record.detail}"
    return line
