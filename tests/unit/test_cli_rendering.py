"""Unit tests for CLI output and error rendering helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
import typer

from dadeumi.cli_rendering import (
    echo_cost_summary,
    echo_journey,
    echo_session_status,
    exit_with_command_error,
)
from dadeumi.errors import PipelineStageError
from dadeumi.models.datatypes import (
    ArtifactKey,
    AttemptRecord,
    FinalArtifact,
    RunSummary,
    Session,
    TranslationMetrics,
)
from dadeumi.pipeline.steps import build_default_steps


def _summary(**overrides: object) -> RunSummary:
    values: dict[str, object] = {
        "final_output_path": Path("out/story-Korean.txt"),
        "final_artifact": FinalArtifact(
            key=ArtifactKey.FINAL_TRANSLATION,
            path=Path("out/.translation-intermediates/11_final_translation.txt"),
            content="번역",
        ),
        "step_counter": 8,
        "total_input_tokens": 12000,
        "total_output_tokens": 3456,
        "estimated_cost": 0.123456,
    }
    values.update(overrides)
    return RunSummary(**values)  # type: ignore[arg-type]


def test_exit_with_command_error_renders_stage_error_with_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print stage diagnostics and hint before exiting with code 1."""

    error = PipelineStageError(
        stage="step_5",
        detail="Step 5 - First Translation failed after 4 attempt(s): rate limited",
        hint="Rerun the same command to resume from the last completed step.",
    )

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("translate", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "translate failed at stage `step_5`" in captured.err
    assert "Hint: Rerun the same command to resume from the last completed step." in captured.err


def test_exit_with_command_error_renders_interrupt_and_fallback(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should report interrupts and non-stage failures concisely."""

    with pytest.raises(typer.Exit):
        exit_with_command_error("translate", KeyboardInterrupt())
    assert "translate interrupted." in capsys.readouterr().err

    with pytest.raises(typer.Exit):
        exit_with_command_error("status", RuntimeError("unexpected session error"))
    assert "status failed: unexpected session error" in capsys.readouterr().err


def test_echo_cost_summary_prints_token_totals(capsys: pytest.CaptureFixture[str]) -> None:
    """Cost summary should show thousands separators and four-decimal USD cost."""

    echo_cost_summary(_summary())

    assert capsys.readouterr().out.splitlines() == [
        "Total tokens: 15,456",
        "Input tokens: 12,000",
        "Output tokens: 3,456",
        "Estimated cost (USD): 0.1235",
    ]


def test_echo_journey_lists_deliverables_against_source(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Journey output should compare each deliverable's word count to the source."""

    source = TranslationMetrics(
        source_word_count=100, target_word_count=100, estimated_reading_time=0.5
    )
    summary = _summary(
        source_metrics=source,
        metrics={
            ArtifactKey.FIRST_TRANSLATION: TranslationMetrics(
                source_word_count=100, target_word_count=110, ratio=1.1
            ),
        },
    )

    echo_journey(summary)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Translation journey:"
    assert lines[1] == "  Source: 100 words, 30 seconds reading time"
    assert lines[2].startswith("  first_translation: 110 words (+10.0%) ")
    assert lines[2].endswith("▓" * 20 + " +10%")


def test_echo_journey_is_silent_without_metrics(capsys: pytest.CaptureFixture[str]) -> None:
    """No journey should be printed when metrics are unavailable."""

    echo_journey(_summary())

    assert capsys.readouterr().out == ""


def test_echo_session_status_reports_progress_and_next_step(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Status output should summarize the session and name the next step."""

    steps = build_default_steps()
    session = Session(
        step_counter=5,
        total_input_tokens=900,
        total_output_tokens=100,
        estimated_cost=0.02,
        output_files={
            ArtifactKey.FIRST_TRANSLATION: Path("05_first_translation.txt"),
            ArtifactKey.ANALYSIS: Path("01_initial_analysis.txt"),
        },
        attempts=[AttemptRecord(5, "Step 5 - First Translation", 1, True)],
    )

    echo_session_status(session, steps[5])

    assert capsys.readouterr().out.splitlines() == [
        "Last completed step: 5",
        "Total tokens: 1,000",
        "Estimated cost (USD): 0.0200",
        "Recorded attempts: 1",
        "  analysis: 01_initial_analysis.txt",
        "  first_translation: 05_first_translation.txt",
        "Next step: Step 6 - Self-Critique & First Refinement",
    ]


def test_echo_session_status_without_session(capsys: pytest.CaptureFixture[str]) -> None:
    """A missing session should be reported along with the first step."""

    echo_session_status(None, None)

    assert capsys.readouterr().out.splitlines() == [
        "No saved session found.",
        "Next step: (none, run complete)",
    ]


def test_echo_cost_summary_adds_current_run_usage(capsys: pytest.CaptureFixture[str]) -> None:
    """Usage recorded by this invocation should follow the cumulative session totals."""

    echo_cost_summary(
        _summary(
            run_usage={
                "calls": 3,
                "input_tokens": 2000,
                "output_tokens": 456,
                "total_cost_usd": 0.01234,
            }
        )
    )

    assert capsys.readouterr().out.splitlines()[-1] == (
        "This run: 3 generation call(s), 2,456 tokens, 0.0123 USD"
    )
