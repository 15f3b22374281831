"""Integration tests for the `translate_text` library entry point."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from dadeumi import translate_text
from dadeumi.errors import FailureClass, GenerationError, PipelineStageError
from dadeumi.pipeline import inspect_session


def test_translate_text_returns_final_translation(
    tmp_path: Path, scripted_service, no_sleep: Callable[[float], None]
) -> None:
    """The returned text should match the deliverable written next to `translation.txt`."""

    result = translate_text(
        "Snow fell on the quiet harbor.",
        "Korean",
        output_dir=tmp_path,
        source_language="English",
        skip_external_review=True,
        generation_service=scripted_service,
        sleeper=no_sleep,
    )

    assert result == "final translation text from call 8"
    assert (tmp_path / ".translation-intermediates" / "translation.txt").read_text(
        encoding="utf-8"
    ) == "Snow fell on the quiet harbor."
    assert (tmp_path / "translation-Korean.txt").read_text(encoding="utf-8") == result
    session, next_step = inspect_session(tmp_path, steps=None)
    assert session is not None
    assert session.step_counter == 8
    assert next_step is not None
    assert next_step.label == "Step 9 - External Review"


def test_translate_text_passes_options_to_every_call(
    tmp_path: Path, scripted_service, no_sleep: Callable[[float], None]
) -> None:
    """Model, output budget, and reasoning effort should reach the generation service."""

    translate_text(
        "Snow fell on the quiet harbor.",
        "Japanese",
        output_dir=tmp_path,
        model="gpt-4o-mini",
        reasoning_effort="high",
        max_output_tokens=2000,
        skip_external_review=True,
        custom_instructions="Keep the tone melancholic.",
        generation_service=scripted_service,
        sleeper=no_sleep,
    )

    options = {call_options for _, call_options in scripted_service.calls}
    assert len(options) == 1
    only = next(iter(options))
    assert only.model == "gpt-4o-mini"
    assert only.max_output_tokens == 2000
    assert only.reasoning_effort == "high"
    first_messages, _ = scripted_service.calls[0]
    assert "Keep the tone melancholic." in first_messages[0].content


def test_translate_text_saves_best_effort_output_and_reraises(
    tmp_path: Path, service_factory, no_sleep: Callable[[float], None]
) -> None:
    """Failures should still leave the most refined deliverable in place."""

    failure = GenerationError(
        "model not found", failure_kind="not_found", classification=FailureClass.FATAL
    )
    service = service_factory({"review": [failure]})

    with pytest.raises(PipelineStageError) as exc_info:
        translate_text(
            "Snow fell on the quiet harbor.",
            "Korean",
            output_dir=tmp_path,
            generation_service=service,
            sleeper=no_sleep,
        )

    assert exc_info.value.stage == "step_8"
    assert (tmp_path / "translation-Korean.txt").read_text(encoding="utf-8") == (
        "further improved translation text from call 7"
    )


def test_translate_text_leaves_callers_translation_file_untouched(
    tmp_path: Path, scripted_service, no_sleep: Callable[[float], None]
) -> None:
    """An existing `translation.txt` in the output directory belongs to the caller."""

    own_file = tmp_path / "translation.txt"
    own_file.write_text("my own notes", encoding="utf-8")

    translate_text(
        "Snow fell.",
        "Korean",
        output_dir=tmp_path,
        skip_external_review=True,
        generation_service=scripted_service,
        sleeper=no_sleep,
    )

    assert own_file.read_text(encoding="utf-8") == "my own notes"


def test_translate_text_refuses_to_resume_another_texts_session(
    tmp_path: Path, service_factory, no_sleep: Callable[[float], None]
) -> None:
    """A different text in a reused output directory must not get the old translation."""

    translate_text(
        "Snow fell.",
        "Korean",
        output_dir=tmp_path,
        skip_external_review=True,
        generation_service=service_factory(),
        sleeper=no_sleep,
    )
    second_service = service_factory()

    with pytest.raises(PipelineStageError) as exc_info:
        translate_text(
            "A completely different text.",
            "Korean",
            output_dir=tmp_path,
            skip_external_review=True,
            generation_service=second_service,
            sleeper=no_sleep,
        )

    assert exc_info.value.stage == "resume"
    assert "different source text" in exc_info.value.detail
    assert second_service.calls == []
    assert (tmp_path / "translation-Korean.txt").read_text(encoding="utf-8") == (
        "final translation text from call 8"
    )
