"""Integration tests for end-to-end workflow scenarios with scripted providers."""

from __future__ import annotations

from collections.abc import Callable
import json

import pytest

from dadeumi.config import TranslationConfig
from dadeumi.errors import FailureClass, GenerationError, PipelineStageError
from dadeumi.models.datatypes import ArtifactKey, StepState
from dadeumi.pipeline import TranslationWorkflow
from dadeumi.pipeline.session_store import HISTORY_JSON, HISTORY_TEXT
from dadeumi.pipeline.steps import build_default_steps


def _transient(kind: str = "rate_limited") -> GenerationError:
    return GenerationError(f"provider said {kind}", failure_kind=kind)


def _fatal(kind: str = "auth") -> GenerationError:
    return GenerationError(
        f"provider said {kind}", failure_kind=kind, classification=FailureClass.FATAL
    )


def test_transient_failures_retry_until_the_step_succeeds(
    make_config: Callable[..., TranslationConfig],
    service_factory,
) -> None:
    """Two transient failures on step 3 should be retried within the attempt budget."""

    config = make_config(source_text=" ".join(["word"] * 500), max_retries=3)
    delays: list[float] = []
    service = service_factory({"cultural_discussion": [_transient(), _transient()]})
    workflow = TranslationWorkflow(
        config,
        generation_service=service,
        steps=build_default_steps()[:5],
        sleeper=delays.append,
    )

    summary = workflow.run()

    history = json.loads((config.intermediates_dir / HISTORY_JSON).read_text(encoding="utf-8"))
    step_three = [entry for entry in history["attempts"] if entry["step"] == 3]
    assert history["metadata"]["step"] == 5
    assert [entry["status"] for entry in step_three] == ["error", "error", "success"]
    assert [entry["failureKind"] for entry in step_three[:2]] == ["rate_limited"] * 2
    assert delays == [0.0, 0.0]
    assert len(service.calls) == 7
    assert summary.final_artifact.key is ArtifactKey.FIRST_TRANSLATION
    assert summary.source_metrics is not None
    assert summary.source_metrics.source_word_count == 500
    assert summary.total_input_tokens == 500
    assert "## ATTEMPT LOG:" in (config.intermediates_dir / HISTORY_TEXT).read_text(
        encoding="utf-8"
    )


def test_exhausted_retries_raise_stage_error_with_resume_hint(
    make_config: Callable[..., TranslationConfig],
    service_factory,
    no_sleep: Callable[[float], None],
) -> None:
    """A required step that keeps failing should abort with attempt count and hint."""

    config = make_config(max_retries=1)
    service = service_factory({"expression_exploration": [_transient(), _transient("timeout")]})
    workflow = TranslationWorkflow(config, generation_service=service, sleeper=no_sleep)

    with pytest.raises(PipelineStageError) as exc_info:
        workflow.run()

    assert exc_info.value.stage == "step_2"
    assert "Step 2 - Expression Exploration failed after 2 attempt(s)" in exc_info.value.detail
    assert "provider said timeout" in exc_info.value.detail
    assert exc_info.value.hint == "Rerun the same command to resume from the last completed step."


def test_optional_external_review_failure_is_not_fatal(
    make_config: Callable[..., TranslationConfig],
    service_factory,
    no_sleep: Callable[[float], None],
) -> None:
    """A failed external review should skip both review steps and keep step 8's output."""

    config = make_config()
    service = service_factory({"external_review": [_fatal()]})
    workflow = TranslationWorkflow(config, generation_service=service, sleeper=no_sleep)

    summary = workflow.run()

    states = {(item.step_id, item.state) for item in summary.transitions}
    assert (9, StepState.SKIPPED) in states
    assert (10, StepState.SKIPPED) in states
    assert summary.executed_steps == (1, 2, 3, 4, 5, 6, 7, 8)
    assert summary.final_artifact.key is ArtifactKey.FINAL_TRANSLATION
    assert config.final_output_path.read_text(encoding="utf-8") == (
        "final translation text from call 8"
    )
    assert not (config.intermediates_dir / "13_refined_final_translation.txt").exists()


def test_external_review_uses_review_model_on_a_fresh_branch(
    make_config: Callable[..., TranslationConfig],
    scripted_service,
    no_sleep: Callable[[float], None],
) -> None:
    """Step 9 should call the review model with only a reviewer system prompt and one user turn."""

    config = make_config(review_model="gpt-4o-mini")
    workflow = TranslationWorkflow(config, generation_service=scripted_service, sleeper=no_sleep)

    summary = workflow.run()

    review_messages, review_options = scripted_service.calls[8]
    refine_messages, refine_options = scripted_service.calls[9]
    assert review_options.model == "gpt-4o-mini"
    assert [message.role for message in review_messages] == ["system", "user"]
    assert "critically review a translation from English to Korean" in (
        review_messages[0].content
    )
    assert refine_options.model == "gpt-4o"
    assert all("<external_review> tags" not in message.content for message in refine_messages)
    assert "external review text from call 9" in refine_messages[-1].content
    assert summary.final_artifact.key is ArtifactKey.REFINED_FINAL_TRANSLATION


def test_skip_external_review_runs_eight_steps(
    make_config: Callable[..., TranslationConfig],
    scripted_service,
    no_sleep: Callable[[float], None],
) -> None:
    """Disabling the external review should stop after the final translation step."""

    config = make_config(skip_external_review=True)
    progress: list[tuple[str, int, int]] = []
    workflow = TranslationWorkflow(
        config,
        generation_service=scripted_service,
        sleeper=no_sleep,
        step_progress_callback=lambda name, index, total: progress.append((name, index, total)),
    )

    summary = workflow.run()

    assert len(scripted_service.calls) == 8
    assert progress[0] == ("Initial Analysis", 1, 8)
    assert progress[-1] == ("Final Translation", 8, 8)
    assert summary.final_output_path == config.output_dir / "story-Korean.txt"
    assert set(summary.metrics) == {
        ArtifactKey.FIRST_TRANSLATION,
        ArtifactKey.IMPROVED_TRANSLATION,
        ArtifactKey.FURTHER_IMPROVED_TRANSLATION,
        ArtifactKey.FINAL_TRANSLATION,
    }


def test_fatal_failure_saves_latest_deliverable_as_best_effort(
    make_config: Callable[..., TranslationConfig],
    service_factory,
    no_sleep: Callable[[float], None],
) -> None:
    """A fatal error at step 7 should leave step 6's improved translation as output."""

    config = make_config()
    service = service_factory({"second_critique": [_fatal("invalid_request")]})
    workflow = TranslationWorkflow(config, generation_service=service, sleeper=no_sleep)

    with pytest.raises(PipelineStageError) as exc_info:
        workflow.run()
    saved = workflow.save_best_effort_final()

    assert exc_info.value.stage == "step_7"
    assert "failed after 1 attempt(s)" in exc_info.value.detail
    assert len(service.calls) == 7
    assert saved == config.final_output_path
    assert saved.read_text(encoding="utf-8") == "improved translation text from call 6"


def test_fatal_failure_before_any_translation_saves_nothing(
    make_config: Callable[..., TranslationConfig],
    service_factory,
    no_sleep: Callable[[float], None],
) -> None:
    """Without a translation deliverable there is nothing to copy to the output path."""

    config = make_config()
    service = service_factory({"analysis": [_fatal()]})
    workflow = TranslationWorkflow(config, generation_service=service, sleeper=no_sleep)

    with pytest.raises(PipelineStageError):
        workflow.run()

    assert workflow.save_best_effort_final() is None
    assert not config.final_output_path.exists()


def test_empty_input_file_fails_before_any_generation(
    make_config: Callable[..., TranslationConfig],
    scripted_service,
    no_sleep: Callable[[float], None],
) -> None:
    """A blank source text should be rejected with an input-stage error."""

    config = make_config(source_text="  \n\n")
    workflow = TranslationWorkflow(config, generation_service=scripted_service, sleeper=no_sleep)

    with pytest.raises(PipelineStageError) as exc_info:
        workflow.run()

    assert exc_info.value.stage == "input"
    assert scripted_service.calls == []
