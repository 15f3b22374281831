"""Unit tests for structured run log lines."""

from __future__ import annotations

from io import StringIO

from dadeumi.telemetry.logger import RunLogger


def _lines(sink: StringIO) -> list[str]:
    return [line for line in sink.getvalue().splitlines() if line]


def test_run_logger_emits_sorted_sanitized_context() -> None:
    """Log lines should carry level, stage, event, and sorted shell-safe context."""

    sink = StringIO()
    run_logger = RunLogger(sink)

    run_logger.log_stage_start("step_1", step="Initial Analysis", attempt=1)
    run_logger.log_stage_failure("step_5", error_type="GenerationError")

    assert _lines(sink) == [
        "[phase] level=INFO stage=step_1 event=start attempt=1 step=Initial_Analysis",
        "[phase] level=ERROR stage=step_5 event=failure error_type=GenerationError",
    ]


def test_run_logger_filters_debug_call_stats_unless_verbose() -> None:
    """Per-call statistics should only appear at debug level."""

    quiet_sink = StringIO()
    RunLogger(quiet_sink).log_call_stats(
        "step_2",
        model="gpt-4o",
        duration_seconds=2.0,
        input_tokens=100,
        output_tokens=50,
        cost_usd=0.00075,
    )
    assert _lines(quiet_sink) == []

    verbose_sink = StringIO()
    RunLogger(verbose_sink, level="DEBUG").log_call_stats(
        "step_2",
        model="gpt-4o",
        duration_seconds=2.0,
        input_tokens=100,
        output_tokens=50,
        cost_usd=0.00075,
    )
    (line,) = _lines(verbose_sink)
    assert "event=call_stats" in line
    assert "output_tps=25.00" in line
    assert "cost_usd=0.00075" in line


def test_run_logger_reports_retry_regression_and_resume_events() -> None:
    """Workflow control events should be rendered with their key context."""

    sink = StringIO()
    run_logger = RunLogger(sink)

    run_logger.log_retry(
        "step_3", attempt=1, max_attempts=4, failure_kind="rate_limit", delay_seconds=0.5
    )
    run_logger.log_regression("step_8", target_step=6, missing=[6, 7])
    run_logger.log_session_resumed(claimed_step=6, resolved_step=5)
    run_logger.log_best_effort_save(None, "out/story-Korean.txt")

    lines = _lines(sink)
    assert "attempt=1/4" in lines[0]
    assert "delay_seconds=0.5" in lines[0]
    assert lines[1].endswith("missing=6_7 target_step=6")
    assert lines[2] == (
        "[phase] level=INFO stage=resume event=resumed claimed_step=6 resolved_step=5"
    )
    assert "event=no_artifact" in lines[3]
