"""Single-step execution with bounded retries.

Responsibilities:
- Build a step prompt from persisted artifacts and append it to the conversation.
- Call the generation service with a fixed-delay, bounded retry loop.
- Extract tagged payloads, write artifacts, and update tokens, cost, and metrics.

Key types:
- `StepExecutor`: runs one `StepDescriptor` against a mutable `Session`.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import time

from ..config import TranslationConfig
from ..errors import FailureClass, GenerationError
from ..io.storage import ArtifactStore
from ..llm.service import GenerationOptions, GenerationResponse, GenerationService
from ..llm.tags import extract_tag_content
from ..models.datatypes import (
    ArtifactKey,
    AttemptRecord,
    ConversationMessage,
    PromptContext,
    Session,
    StepDescriptor,
    StepOutcome,
)
from ..telemetry.cost_tracker import CostTracker
from ..telemetry.logger import RunLogger
from ..text.metrics import calculate_metrics
from .context import ContextManager
from .session_store import SessionStore, utc_timestamp
from .steps import artifact_specs


class StepExecutor:
    """Run individual steps: prompt, generate with retries, persist artifacts."""

    def __init__(
        self,
        *,
        config: TranslationConfig,
        source_text: str,
        generation_service: GenerationService,
        store: ArtifactStore,
        session_store: SessionStore,
        steps: tuple[StepDescriptor, ...],
        model: str,
        review_model: str,
        cost_tracker: CostTracker | None = None,
        context_manager: ContextManager | None = None,
        run_logger: RunLogger | None = None,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        """Bind collaborators used for every step of one run."""

        self._config = config
        self._source_text = source_text
        self._service = generation_service
        self._store = store
        self._session_store = session_store
        self._specs = artifact_specs(steps)
        self._model = model
        self._review_model = review_model
        self._cost_tracker = cost_tracker or CostTracker(run_logger=run_logger)
        self._context_manager = context_manager or ContextManager()
        self._run_logger = run_logger
        self._sleeper = sleeper

    @property
    def max_attempts(self) -> int:
        """Return the number of generation attempts allowed per step."""

        return self._config.max_retries + 1

    def model_for(self, step: StepDescriptor) -> str:
        """Return the model serving a step."""

        return self._review_model if step.uses_review_model else self._model

    def prompt_context(self, step: StepDescriptor) -> PromptContext:
        """Load the step's input artifacts from storage into a prompt context."""

        artifacts: dict[ArtifactKey, str] = {}
        for key in step.inputs:
            artifacts[key] = self._store.load_text(self._specs[key].filename)
        return PromptContext(
            target_language=self._config.target_language,
            source_language=self._config.source_language,
            source_text=self._source_text,
            custom_instructions=self._config.custom_instructions,
            artifacts=artifacts,
        )

    def execute(self, step: StepDescriptor, session: Session) -> StepOutcome:
        """Run one step and return its persisted outputs.

        Raises:
            GenerationError: When the call fails fatally or retries are exhausted.
            OSError: When an artifact cannot be written.
        """

        context = self.prompt_context(step)
        prompt = step.build_prompt(context)
        model = self.model_for(step)

        if step.fresh_branch:
            system_text = (
                step.system_prompt(context)
                if step.system_prompt is not None
                else session.conversation[0].content
            )
            messages = [
                ConversationMessage(role="system", content=system_text),
                ConversationMessage(role="user", content=prompt),
            ]
        else:
            if step.system_prompt is not None:
                session.conversation[0] = ConversationMessage(
                    role="system", content=step.system_prompt(context)
                )
            last = session.conversation[-1]
            # A run that failed on this step persisted its prompt as the final turn.
            if last.role == "user" and last.content == prompt:
                session.conversation.pop()
            self._trim(step, session.conversation, model)
            session.conversation.append(ConversationMessage(role="user", content=prompt))
            messages = session.conversation

        self._session_store.save(session, f"{step.label} - Prompt Sent")
        response, attempts = self._generate_with_retries(step, session, messages, model)

        breakdown = self._cost_tracker.record(
            model, response.input_tokens, response.output_tokens
        )
        session.total_input_tokens += response.input_tokens
        session.total_output_tokens += response.output_tokens
        session.estimated_cost += breakdown.total_cost
        if self._run_logger is not None:
            self._run_logger.log_call_stats(
                f"step_{step.step_id}",
                model=model,
                duration_seconds=response.duration_seconds,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                cost_usd=breakdown.total_cost,
            )

        if not step.fresh_branch:
            session.conversation.append(
                ConversationMessage(role="assistant", content=response.content)
            )
        if step.label not in session.translation_steps:
            session.translation_steps.append(step.label)
        self._session_store.save(session, f"{step.label} - Response Received")

        artifacts = self._write_artifacts(step, session, response.content)
        return StepOutcome(
            step_id=int(step.step_id),
            artifacts=artifacts,
            attempts=attempts,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )

    def _trim(
        self, step: StepDescriptor, conversation: list[ConversationMessage], model: str
    ) -> None:
        """Proactively trim the main conversation when it nears the context limit."""

        before = self._context_manager.estimate_tokens(conversation)
        if self._context_manager.trim(conversation, model) and self._run_logger is not None:
            self._run_logger.log_context_trimmed(
                f"step_{step.step_id}",
                mode="proactive",
                before_tokens=before,
                after_tokens=self._context_manager.estimate_tokens(conversation),
            )

    def _generate_with_retries(
        self,
        step: StepDescriptor,
        session: Session,
        messages: list[ConversationMessage],
        model: str,
    ) -> tuple[GenerationResponse, int]:
        """Call the service up to `max_attempts` times; return the response and attempt."""

        options = GenerationOptions(
            model=model,
            max_output_tokens=self._config.max_output_tokens,
            temperature=self._config.temperature,
            reasoning_effort=self._config.reasoning_effort,
        )
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._service.generate(list(messages), options)
                if not response.content.strip():
                    raise GenerationError(
                        f"{step.label} returned empty content.",
                        failure_kind="empty_response",
                    )
            except GenerationError as exc:
                self._record_attempt(session, step, attempt, error=exc)
                self._session_store.save(
                    session, f"API Call Error - {step.label} - Attempt {attempt}"
                )
                if not exc.retryable or attempt >= self.max_attempts:
                    raise
                if exc.classification is FailureClass.CONTEXT_LENGTH:
                    self._prune(step, messages)
                if self._run_logger is not None:
                    self._run_logger.log_retry(
                        f"step_{step.step_id}",
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        failure_kind=exc.failure_kind,
                        delay_seconds=self._config.retry_delay_seconds,
                    )
                self._sleeper(self._config.retry_delay_seconds)
                continue

            self._record_attempt(session, step, attempt)
            return response, attempt

    def _prune(self, step: StepDescriptor, messages: list[ConversationMessage]) -> None:
        """Reduce the working messages to `[system, latest user]` after an overflow."""

        before = self._context_manager.estimate_tokens(messages)
        messages[:] = self._context_manager.prune_for_overflow(messages)
        if self._run_logger is not None:
            self._run_logger.log_context_trimmed(
                f"step_{step.step_id}",
                mode="overflow",
                before_tokens=before,
                after_tokens=self._context_manager.estimate_tokens(messages),
            )

    @staticmethod
    def _record_attempt(
        session: Session,
        step: StepDescriptor,
        attempt: int,
        *,
        error: GenerationError | None = None,
    ) -> None:
        session.attempts.append(
            AttemptRecord(
                step_id=int(step.step_id),
                label=step.label,
                attempt=attempt,
                succeeded=error is None,
                failure_kind=None if error is None else error.failure_kind,
                detail=None if error is None else str(error),
                timestamp=utc_timestamp(),
            )
        )

    def _write_artifacts(
        self, step: StepDescriptor, session: Session, content: str
    ) -> dict[ArtifactKey, Path]:
        """Write secondary outputs first and the primary artifact last."""

        written: dict[ArtifactKey, Path] = {}
        for spec in step.outputs:
            text = extract_tag_content(content, spec.tag)
            path = self._store.save_text(spec.filename, text)
            session.output_files[spec.key] = path
            written[spec.key] = path
            if spec.deliverable:
                session.metrics[spec.key] = calculate_metrics(
                    text,
                    self._config.target_language,
                    source_metrics=session.source_metrics,
                )
        return written
