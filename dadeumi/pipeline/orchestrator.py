"""Workflow controller for resumable translation runs.

Responsibilities:
- Walk the step table in order, skipping completed steps and regressing on
  missing prerequisites.
- Persist the session after every completed step so a killed run can resume.
- Deliver the most refined translation, or a best-effort copy on failure.

Key types:
- `TranslationWorkflow`: orchestration facade for one output directory.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from hashlib import sha256
import os
from pathlib import Path
import time

from ..config import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MODEL,
    DEFAULT_REASONING_EFFORT,
    DEFAULT_RETRY_DELAY_SECONDS,
    INTERMEDIATES_DIRNAME,
    RuntimeConfigSources,
    TranslationConfig,
)
from ..errors import GenerationError, PipelineStageError
from ..io.storage import ArtifactStore
from ..llm.limits import clamp_max_output_tokens
from ..llm.prompts import PromptLibrary
from ..llm.router import ProviderRouter
from ..llm.service import GenerationService
from ..models.datatypes import (
    ConversationMessage,
    FinalArtifact,
    RunSummary,
    Session,
    StepDescriptor,
    StepState,
    StepTransition,
)
from ..telemetry.cost_tracker import CostTracker
from ..telemetry.logger import RunLogger
from ..text.metrics import calculate_metrics
from .context import ContextManager
from .executor import StepExecutor
from .session_store import SessionStore
from .steps import build_default_steps, validate_step_table
from .telemetry import WorkflowTelemetryMixin, stage_name

_RESUME_HINT = "Rerun the same command to resume from the last completed step."


class TranslationWorkflow(WorkflowTelemetryMixin):
    """Coordinate all steps for a single translation run."""

    def __init__(
        self,
        config: TranslationConfig,
        *,
        generation_service: GenerationService | None = None,
        steps: Sequence[StepDescriptor] | None = None,
        run_logger: RunLogger | None = None,
        step_progress_callback: Callable[[str, int, int], None] | None = None,
        sleeper: Callable[[float], None] = time.sleep,
        prompts: PromptLibrary | None = None,
        cost_tracker: CostTracker | None = None,
        context_manager: ContextManager | None = None,
    ) -> None:
        """Validate configuration and wire collaborators for one output directory."""

        config.validate()
        self.config = config
        self._prompts = prompts or PromptLibrary()
        self.steps: tuple[StepDescriptor, ...] = (
            tuple(steps)
            if steps is not None
            else build_default_steps(
                skip_external_review=config.skip_external_review, prompts=self._prompts
            )
        )
        validate_step_table(self.steps)

        self.runtime = config.resolved_provider_runtime()
        self._generation_service = generation_service or ProviderRouter(
            openai_api_key=self.runtime.openai_api_key,
            anthropic_api_key=self.runtime.anthropic_api_key,
        )
        self._run_logger = run_logger
        self._step_progress_callback = step_progress_callback
        self._sleeper = sleeper
        self.store = ArtifactStore(config.intermediates_dir)
        self.session_store = SessionStore(self.store, self.steps, run_logger)
        self.cost_tracker = cost_tracker or CostTracker(run_logger=run_logger)
        self._context_manager = context_manager or ContextManager()
        self._source_text: str | None = None
        self.transitions: list[StepTransition] = []
        self.executed_steps: list[int] = []
        self._session_ready = False

    def load_source_text(self) -> str:
        """Read the input text, failing with an actionable error when unusable."""

        path = self.config.input_path
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PipelineStageError(
                stage="input",
                detail=f"Could not read input file `{path}`: {exc}",
                hint="Check that the input path exists and is a UTF-8 text file.",
            ) from exc
        if not text.strip():
            raise PipelineStageError(
                stage="input",
                detail=f"Input file `{path}` is empty.",
                hint="Provide a text file with content to translate.",
            )
        self._source_text = text
        return text

    def system_message(self) -> ConversationMessage:
        """Return the system message anchoring the main conversation."""

        return ConversationMessage(
            role="system",
            content=self._prompts.system_prompt(
                self.config.target_language,
                self.config.source_language,
                self.config.custom_instructions,
            ),
        )

    def prepare_session(self) -> Session:
        """Load and reconcile a persisted session, or start and persist a new one.

        Raises:
            PipelineStageError: When the persisted session was started from another text.
        """

        source_text = self.load_source_text()
        source_hash = sha256(source_text.encode("utf-8")).hexdigest()
        source_metrics = calculate_metrics(
            source_text, self.config.source_language, is_source=True
        )
        session = self.session_store.load()
        if session is None:
            session = Session(
                conversation=[self.system_message()],
                source_metrics=source_metrics,
                source_hash=source_hash,
            )
            self.session_store.save(session, "Initial system prompt")
            self._session_ready = True
            return session

        if session.source_hash is not None and session.source_hash != source_hash:
            raise PipelineStageError(
                stage="resume",
                detail=(
                    f"The saved session in `{self.config.intermediates_dir}` was started from "
                    f"a different source text than `{self.config.input_path}`."
                ),
                hint=(
                    "Use a different output directory, or remove the intermediates "
                    "directory to start over."
                ),
            )
        session.source_hash = source_hash
        if not session.conversation or session.conversation[0].role != "system":
            session.conversation.insert(0, self.system_message())
        if session.source_metrics is None:
            session.source_metrics = source_metrics
        self._session_ready = True
        return session

    def _build_executor(self) -> StepExecutor:
        """Create the step executor bound to this run's collaborators."""

        source_text = self._source_text if self._source_text is not None else (
            self.load_source_text()
        )
        return StepExecutor(
            config=self.config,
            source_text=source_text,
            generation_service=self._generation_service,
            store=self.store,
            session_store=self.session_store,
            steps=self.steps,
            model=self.runtime.model,
            review_model=self.runtime.review_model,
            cost_tracker=self.cost_tracker,
            context_manager=self._context_manager,
            run_logger=self._run_logger,
            sleeper=self._sleeper,
        )

    def _transition(self, step_id: int, state: StepState, detail: str = "") -> None:
        self.transitions.append(StepTransition(step_id=step_id, state=state, detail=detail))

    def execute(self, session: Session) -> FinalArtifact:
        """Run every pending step and return the most refined deliverable.

        Completed steps are skipped. A step with missing prerequisite artifacts moves the
        cursor back to the highest missing prerequisite instead of failing.
        """

        executor = self._build_executor()
        validator = self.session_store.validator
        positions = {int(step.step_id): index for index, step in enumerate(self.steps)}
        skipped: set[int] = (
            {int(step.step_id) for step in self.steps if step.optional}
            if self.config.skip_external_review
            else set()
        )
        regressions = 0
        index = 0
        self._transition(int(self.steps[0].step_id), StepState.PENDING)

        while index < len(self.steps):
            step = self.steps[index]
            step_id = int(step.step_id)

            if step_id in skipped or any(
                prerequisite in skipped for prerequisite in step.prerequisites
            ):
                skipped.add(step_id)
                if self._run_logger is not None:
                    self._run_logger.log_step_skipped(stage_name(step), "optional_step_disabled")
                self._transition(step_id, StepState.SKIPPED, "optional step disabled")
                index += 1
                continue

            if session.step_counter >= step_id and validator.is_step_complete(step_id):
                if self._run_logger is not None:
                    self._run_logger.log_step_skipped(stage_name(step), "already_complete")
                self._transition(step_id, StepState.COMPLETE, "resumed")
                index += 1
                continue

            missing = validator.missing_prerequisites(step_id)
            if missing:
                regressions += 1
                if regressions > len(self.steps):
                    raise PipelineStageError(
                        stage="dependencies",
                        detail=(
                            f"{step.label} still lacks prerequisite artifacts for steps "
                            f"{', '.join(str(item) for item in missing)} after "
                            f"{regressions - 1} regression(s)."
                        ),
                        hint="Remove the intermediates directory to start a fresh run.",
                    )
                target = max(missing)
                if self._run_logger is not None:
                    self._run_logger.log_regression(stage_name(step), target, missing)
                self._transition(step_id, StepState.REGRESSED, f"{step_id}->{target}")
                session.step_counter = min(session.step_counter, target - 1)
                index = positions[target]
                continue

            self._transition(step_id, StepState.RUNNING)
            try:
                self._run_step(step, lambda: executor.execute(step, session))
            except GenerationError as exc:
                if step.optional:
                    skipped.add(step_id)
                    if self._run_logger is not None:
                        self._run_logger.log_step_skipped(
                            stage_name(step), f"failed_{exc.failure_kind}"
                        )
                    self._transition(step_id, StepState.SKIPPED, f"failed: {exc.failure_kind}")
                    index += 1
                    continue
                raise PipelineStageError(
                    stage=stage_name(step),
                    detail=(
                        f"{step.label} failed after "
                        f"{len(session.attempts_for(step_id))} attempt(s): {exc}"
                    ),
                    hint=_RESUME_HINT,
                ) from exc
            except OSError as exc:
                raise PipelineStageError(
                    stage=stage_name(step),
                    detail=f"Could not persist artifacts for {step.label}: {exc}",
                    hint="Check that the output directory is writable, then rerun to resume.",
                ) from exc

            session.step_counter = step_id
            self.executed_steps.append(step_id)
            self.session_store.save(session, f"{step.label} - Complete")
            self.session_store.save_metrics(session)
            self._transition(step_id, StepState.COMPLETE)
            index += 1

        final_artifact = self.session_store.latest_deliverable()
        if final_artifact is None:
            raise PipelineStageError(
                stage="finalize",
                detail="No translation artifact was produced by the configured steps.",
                hint="Include at least one step that produces a translation.",
            )
        self._transition(int(self.steps[-1].step_id), StepState.TERMINAL)
        return final_artifact

    def run(self) -> RunSummary:
        """Prepare or resume the session, execute all steps, and write the deliverable."""

        session = self.prepare_session()
        final_artifact = self.execute(session)
        destination = self.config.final_output_path
        output_path = ArtifactStore(destination.parent).save_text(
            destination.name, final_artifact.content
        )
        self.session_store.save(session, "Translation complete")
        if self._run_logger is not None:
            self._run_logger.log_stage_complete(
                "finalize", artifact=final_artifact.path.name, output=output_path.name
            )
        return RunSummary(
            final_output_path=output_path,
            final_artifact=final_artifact,
            step_counter=session.step_counter,
            total_input_tokens=session.total_input_tokens,
            total_output_tokens=session.total_output_tokens,
            estimated_cost=session.estimated_cost,
            executed_steps=tuple(self.executed_steps),
            transitions=tuple(self.transitions),
            metrics=dict(session.metrics),
            source_metrics=session.source_metrics,
            output_files=dict(session.output_files),
            run_usage=self.cost_tracker.summary(),
        )

    def save_best_effort_final(self) -> Path | None:
        """Copy the most refined available deliverable to the final output path.

        Nothing is copied until `prepare_session` has accepted the intermediates for the
        current source text, so a rejected resume never delivers another text's output.
        """

        if not self._session_ready:
            return None
        return self.session_store.save_best_effort_final(self.config.final_output_path)


def next_pending_step(
    session: Session, session_store: SessionStore, steps: Sequence[StepDescriptor]
) -> StepDescriptor | None:
    """Return the first step a resumed run would execute, if any."""

    for step in steps:
        complete = session_store.validator.is_step_complete(step.step_id)
        if not (session.step_counter >= step.step_id and complete):
            return step
    return None


def inspect_session(
    output_dir: Path,
    steps: Sequence[StepDescriptor] | None = None,
    run_logger: RunLogger | None = None,
) -> tuple[Session | None, StepDescriptor | None]:
    """Load a reconciled session from `output_dir` and the step that would run next."""

    table = tuple(steps) if steps is not None else build_default_steps()
    session_store = SessionStore(
        ArtifactStore(output_dir / INTERMEDIATES_DIRNAME), table, run_logger
    )
    session = session_store.load()
    if session is None:
        return None, table[0] if table else None
    return session, next_pending_step(session, session_store, table)


def translate_text(
    text: str,
    target_language: str,
    *,
    output_dir: Path | str = ".",
    source_language: str | None = None,
    model: str = DEFAULT_MODEL,
    review_model: str | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    skip_external_review: bool = False,
    custom_instructions: str | None = None,
    reasoning_effort: str = DEFAULT_REASONING_EFFORT,
    max_output_tokens: int | None = None,
    openai_api_key: str | None = None,
    anthropic_api_key: str | None = None,
    generation_service: GenerationService | None = None,
    run_logger: RunLogger | None = None,
    sleeper: Callable[[float], None] = time.sleep,
) -> str:
    """Translate `text` and return the final translation.

    The text is kept as `translation.txt` in the run's intermediates directory, so nothing
    the caller owns in `output_dir` is overwritten. The deliverable lands at
    `<output_dir>/translation-<target_language>.txt`. On failure the most refined
    available artifact is still copied there before the error propagates.
    """

    output_path = Path(output_dir)
    input_path = ArtifactStore(output_path / INTERMEDIATES_DIRNAME).save_text(
        "translation.txt", text
    )
    output_budget, _ = clamp_max_output_tokens(
        model,
        DEFAULT_MAX_OUTPUT_TOKENS if max_output_tokens is None else max_output_tokens,
        explicit=max_output_tokens is not None,
    )
    cli_sources = {
        key: value
        for key, value in (
            ("openai_api_key", openai_api_key),
            ("anthropic_api_key", anthropic_api_key),
        )
        if value
    }
    config = TranslationConfig(
        input_path=input_path,
        output_dir=output_path,
        target_language=target_language,
        source_language=source_language,
        model=model,
        review_model=review_model,
        max_retries=max_retries,
        retry_delay_seconds=retry_delay_seconds,
        skip_external_review=skip_external_review,
        custom_instructions=custom_instructions,
        reasoning_effort=reasoning_effort,
        max_output_tokens=output_budget,
        runtime_sources=RuntimeConfigSources(
            cli=cli_sources,
            env={
                key: os.environ[key]
                for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY")
                if key in os.environ
            },
        ),
    )
    workflow = TranslationWorkflow(
        config,
        generation_service=generation_service,
        run_logger=run_logger,
        sleeper=sleeper,
    )
    try:
        summary = workflow.run()
    except BaseException:
        workflow.save_best_effort_final()
        raise
    return summary.final_artifact.content
