"""Core datatypes shared across Dadeumi modules.

Responsibilities:
- Represent the step table, artifacts, and session state exchanged between components.
- Provide explicit typing and camelCase serialization for persisted history and metrics.

Key types:
- `StepId`, `ArtifactKey`, `ArtifactSpec`, `StepDescriptor`, `PromptContext`.
- `ConversationMessage`, `TranslationMetrics`, `AttemptRecord`, `Session`.
- `StepState`, `StepTransition`, `FinalArtifact`, `RunSummary`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any


class StepId(IntEnum):
    """Ordinal ids of the built-in translation steps."""

    INITIAL_ANALYSIS = 1
    EXPRESSION_EXPLORATION = 2
    CULTURAL_DISCUSSION = 3
    TITLE_INSPIRATION = 4
    FIRST_TRANSLATION = 5
    SELF_CRITIQUE = 6
    SECOND_REFINEMENT = 7
    FINAL_TRANSLATION = 8
    EXTERNAL_REVIEW = 9
    FINAL_REFINEMENT = 10


class ArtifactKey(str, Enum):
    """Typed keys for every artifact a step can produce."""

    ANALYSIS = "analysis"
    EXPRESSION_EXPLORATION = "expression_exploration"
    CULTURAL_DISCUSSION = "cultural_discussion"
    TITLE_OPTIONS = "title_options"
    FIRST_TRANSLATION = "first_translation"
    CRITIQUE = "critique"
    IMPROVED_TRANSLATION = "improved_translation"
    SECOND_CRITIQUE = "second_critique"
    FURTHER_IMPROVED_TRANSLATION = "further_improved_translation"
    REVIEW = "review"
    FINAL_TRANSLATION = "final_translation"
    EXTERNAL_REVIEW = "external_review"
    REFINED_FINAL_TRANSLATION = "refined_final_translation"


@dataclass(frozen=True, slots=True)
class ArtifactSpec:
    """Static description of one persisted step output.

    Attributes:
        key: Typed artifact key.
        tag: Tag wrapping the payload in the model response.
        filename: `NN_<slug>.txt` file name inside the intermediates directory.
        label: Human-readable artifact label.
        deliverable: Whether the artifact is a full translation usable as final output.
    """

    key: ArtifactKey
    tag: str
    filename: str
    label: str
    deliverable: bool = False


@dataclass(frozen=True, slots=True)
class PromptContext:
    """Inputs available to step prompt builders."""

    target_language: str
    source_language: str | None
    source_text: str
    custom_instructions: str | None = None
    artifacts: Mapping[ArtifactKey, str] = field(default_factory=dict)


PromptBuilder = Callable[[PromptContext], str]


@dataclass(frozen=True, slots=True)
class StepDescriptor:
    """One row of the table-driven workflow.

    Attributes:
        step_id: Ordinal step id (1-based).
        name: Human-readable step name.
        build_prompt: Builds the user prompt from a `PromptContext`.
        outputs: Artifacts produced by the step; the last one is primary.
        prerequisites: Step ids whose primary artifacts must exist and be non-empty.
        inputs: Artifact keys loaded from storage and passed to the prompt builder.
        fresh_branch: Whether the step runs on a separate `[system, user]` conversation.
        optional: Whether failure is logged and tolerated instead of aborting the run.
        system_prompt: Optional step-specific system prompt builder.
        uses_review_model: Whether the review model replaces the main model.
    """

    step_id: int
    name: str
    build_prompt: PromptBuilder
    outputs: tuple[ArtifactSpec, ...]
    prerequisites: tuple[int, ...] = ()
    inputs: tuple[ArtifactKey, ...] = ()
    fresh_branch: bool = False
    optional: bool = False
    system_prompt: PromptBuilder | None = None
    uses_review_model: bool = False

    @property
    def primary(self) -> ArtifactSpec:
        """Return the artifact whose presence marks the step complete."""

        return self.outputs[-1]

    @property
    def label(self) -> str:
        """Return the label used for history snapshots and logs."""

        return f"Step {self.step_id} - {self.name}"


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    """A single chat message exchanged with a generation service."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        """Serialize to the persisted `{role, content}` form."""

        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ConversationMessage:
        """Deserialize from the persisted `{role, content}` form."""

        return cls(role=str(payload["role"]), content=str(payload.get("content", "")))


@dataclass(frozen=True, slots=True)
class TranslationMetrics:
    """Derived size metrics for one text relative to the source."""

    source_word_count: int = 0
    target_word_count: int = 0
    source_char_count: int = 0
    target_char_count: int = 0
    ratio: float = 0.0
    estimated_reading_time: float = 0.0

    def to_dict(self) -> dict[str, float | int]:
        """Serialize with camelCase keys."""

        return {
            "sourceWordCount": self.source_word_count,
            "targetWordCount": self.target_word_count,
            "sourceCharCount": self.source_char_count,
            "targetCharCount": self.target_char_count,
            "ratio": self.ratio,
            "estimatedReadingTime": self.estimated_reading_time,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TranslationMetrics:
        """Deserialize from camelCase keys, defaulting missing values to zero."""

        return cls(
            source_word_count=int(payload.get("sourceWordCount", 0)),
            target_word_count=int(payload.get("targetWordCount", 0)),
            source_char_count=int(payload.get("sourceCharCount", 0)),
            target_char_count=int(payload.get("targetCharCount", 0)),
            ratio=float(payload.get("ratio", 0.0)),
            estimated_reading_time=float(payload.get("estimatedReadingTime", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class CostBreakdown:
    """Estimated USD cost of one generation call."""

    input_cost: float = 0.0
    output_cost: float = 0.0

    @property
    def total_cost(self) -> float:
        """Return combined input and output cost."""

        return self.input_cost + self.output_cost


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    """Audit entry for one generation attempt of a step."""

    step_id: int
    label: str
    attempt: int
    succeeded: bool
    failure_kind: str | None = None
    detail: str | None = None
    timestamp: str = ""

    def to_dict(self) -> dict[str, object]:
        """Serialize with camelCase keys."""

        return {
            "step": self.step_id,
            "label": self.label,
            "attempt": self.attempt,
            "status": "success" if self.succeeded else "error",
            "failureKind": self.failure_kind,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> AttemptRecord:
        """Deserialize a persisted attempt entry."""

        return cls(
            step_id=int(payload.get("step", 0)),
            label=str(payload.get("label", "")),
            attempt=int(payload.get("attempt", 0)),
            succeeded=payload.get("status") == "success",
            failure_kind=payload.get("failureKind"),
            detail=payload.get("detail"),
            timestamp=str(payload.get("timestamp", "")),
        )


@dataclass(slots=True)
class Session:
    """Mutable, persistable run state owned by the workflow controller.

    Attributes:
        conversation: Ordered messages; the first one is always the system message.
        step_counter: Last completed step id (0 when none).
        total_input_tokens: Cumulative prompt tokens.
        total_output_tokens: Cumulative generated tokens.
        estimated_cost: Cumulative estimated USD cost.
        output_files: Artifact key to artifact path for artifacts present on disk.
        translation_steps: Human-readable labels of steps executed so far.
        metrics: Artifact key to derived metrics for deliverable artifacts.
        source_metrics: Metrics of the source text.
        attempts: Generation attempt audit log.
        source_hash: SHA-256 of the source text the session was started from.
    """

    conversation: list[ConversationMessage] = field(default_factory=list)
    step_counter: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    estimated_cost: float = 0.0
    output_files: dict[ArtifactKey, Path] = field(default_factory=dict)
    translation_steps: list[str] = field(default_factory=list)
    metrics: dict[ArtifactKey, TranslationMetrics] = field(default_factory=dict)
    source_metrics: TranslationMetrics | None = None
    attempts: list[AttemptRecord] = field(default_factory=list)
    source_hash: str | None = None

    @property
    def total_tokens(self) -> int:
        """Return combined input and output token count."""

        return self.total_input_tokens + self.total_output_tokens

    def attempts_for(self, step_id: int) -> list[AttemptRecord]:
        """Return recorded attempts for one step in order."""

        return [record for record in self.attempts if record.step_id == step_id]


class StepState(str, Enum):
    """Controller states recorded for each step transition."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    REGRESSED = "regressed"
    SKIPPED = "skipped"
    TERMINAL = "terminal"


@dataclass(frozen=True, slots=True)
class StepTransition:
    """One controller state transition."""

    step_id: int
    state: StepState
    detail: str = ""


@dataclass(frozen=True, slots=True)
class FinalArtifact:
    """The most refined deliverable produced by a run."""

    key: ArtifactKey
    path: Path
    content: str


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """Result of one successful step execution."""

    step_id: int
    artifacts: dict[ArtifactKey, Path]
    attempts: int
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Report of a completed workflow run."""

    final_output_path: Path
    final_artifact: FinalArtifact
    step_counter: int
    total_input_tokens: int
    total_output_tokens: int
    estimated_cost: float
    executed_steps: tuple[int, ...] = ()
    transitions: tuple[StepTransition, ...] = ()
    metrics: Mapping[ArtifactKey, TranslationMetrics] = field(default_factory=dict)
    source_metrics: TranslationMetrics | None = None
    output_files: Mapping[ArtifactKey, Path] = field(default_factory=dict)
    run_usage: Mapping[str, float | int] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        """Return combined input and output token count."""

        return self.total_input_tokens + self.total_output_tokens
