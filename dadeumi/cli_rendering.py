"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
run cost summaries, session status, and the translation journey.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import PipelineStageError
from .models.datatypes import RunSummary, Session, StepDescriptor
from .text.formatting import calculate_change, format_time, progress_bar


def exit_with_command_error(command_name: str, exc: BaseException) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, KeyboardInterrupt):
        typer.secho(f"{command_name} interrupted.", fg=typer.colors.RED, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_cost_summary(summary: RunSummary) -> None:
    """Print run-level token totals and cost in USD."""

    typer.echo(f"Total tokens: {summary.total_tokens:,}")
    typer.echo(f"Input tokens: {summary.total_input_tokens:,}")
    typer.echo(f"Output tokens: {summary.total_output_tokens:,}")
    typer.echo(f"Estimated cost (USD): {summary.estimated_cost:.4f}")
    # Session totals span resumed runs; `run_usage` covers this invocation only.
    if summary.run_usage:
        usage = summary.run_usage
        typer.echo(
            f"This run: {usage['calls']} generation call(s), "
            f"{usage['input_tokens'] + usage['output_tokens']:,} tokens, "
            f"{usage['total_cost_usd']:.4f} USD"
        )


def echo_journey(summary: RunSummary) -> None:
    """Print per-artifact word counts and change versus the source text."""

    source = summary.source_metrics
    if source is None or not summary.metrics:
        return
    valid_source = source.source_word_count > 0
    typer.echo("Translation journey:")
    typer.echo(
        f"  Source: {source.source_word_count:,} words, "
        f"{format_time(source.estimated_reading_time)} reading time"
    )
    for key, metrics in summary.metrics.items():
        typer.echo(
            f"  {key.value}: {metrics.target_word_count:,} words "
            f"({calculate_change(source.source_word_count, metrics.target_word_count)}) "
            f"{progress_bar(metrics.ratio, valid_source)}"
        )


def echo_session_status(session: Session | None, next_step: StepDescriptor | None) -> None:
    """Print a persisted session's progress and the step that would run next."""

    if session is None:
        typer.echo("No saved session found.")
    else:
        typer.echo(f"Last completed step: {session.step_counter}")
        typer.echo(f"Total tokens: {session.total_tokens:,}")
        typer.echo(f"Estimated cost (USD): {session.estimated_cost:.4f}")
        typer.echo(f"Recorded attempts: {len(session.attempts)}")
        for key, path in sorted(session.output_files.items(), key=lambda item: item[1].name):
            typer.echo(f"  {key.value}: {path.name}")
    if next_step is None:
        typer.echo("Next step: (none, run complete)")
    else:
        typer.echo(f"Next step: {next_step.label}")
