"""Command-line interface for Dadeumi.

Responsibilities:
- Expose user-facing commands for translation runs, session status, and credentials.
- Convert CLI arguments into `TranslationConfig` and execute the workflow.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
import signal
from typing import Annotated, Any

from dotenv import load_dotenv
import typer

from .cli_rendering import (
    echo_cost_summary,
    echo_journey,
    echo_session_status,
    exit_with_command_error,
)
from .cli_runtime import (
    resolve_custom_instructions,
    resolve_max_output_tokens,
    resolve_provider_runtime_sources,
)
from .config import ConfigLoader, RuntimeConfigSources, TranslationConfig
from .credentials import SUPPORTED_PROVIDERS, create_credential_store
from .errors import PipelineStageError
from .parsing import normalize_optional_string, parse_reasoning_effort
from .pipeline import TranslationWorkflow, build_default_steps, inspect_session
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="dadeumi",
    no_args_is_help=True,
    help="Dadeumi: resumable multi-step AI translation.",
)


class StepProgressIndicator:
    """Render deterministic per-step progress lines for long-running commands."""

    _SPINNER_FRAMES = "|/-\\"

    def __init__(self, command_name: str) -> None:
        """Initialize progress indicator metadata for a command invocation."""

        self._command_name = command_name

    def on_step_start(self, step_name: str, step_index: int, step_total: int) -> None:
        """Print one progress line for a step start transition."""

        spinner = self._SPINNER_FRAMES[(step_index - 1) % len(self._SPINNER_FRAMES)]
        typer.echo(
            f"[progress] command={self._command_name} "
            f"{spinner} {step_index}/{step_total} step={step_name}"
        )


def _raise_on_sigterm(signum: int, frame: Any) -> None:
    """Turn SIGTERM into `KeyboardInterrupt` so the best-effort save runs."""

    raise KeyboardInterrupt(f"terminated by signal {signum}")


def _load_yaml_config(config_path: Path | None) -> TranslationConfig | None:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return None

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except OSError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify file permissions.",
        ) from exc


def _resolve_command_base_config(
    config_file: Path | None,
    input_path: Path | None,
    out: Path | None,
    target: str | None,
    overrides: dict[str, Any],
) -> TranslationConfig:
    """Resolve effective command config from YAML defaults and explicit CLI overrides."""

    loaded_config = _load_yaml_config(config_file)
    explicit = {key: value for key, value in overrides.items() if value is not None}

    try:
        if loaded_config is None:
            if input_path is None:
                raise PipelineStageError(
                    stage="config",
                    detail="Input path is required when `--config` is not provided.",
                    hint="Pass `<input.txt>` or use `--config <path.yaml>` with `input_path`.",
                )
            if normalize_optional_string(target) is None:
                raise PipelineStageError(
                    stage="config",
                    detail="Target language is required when `--config` is not provided.",
                    hint="Pass `--target <language>`.",
                )
            config = TranslationConfig(
                input_path=input_path,
                output_dir=out if out is not None else Path("."),
                target_language=target.strip(),
                **explicit,
            )
        else:
            if input_path is not None:
                explicit["input_path"] = input_path
            if out is not None:
                explicit["output_dir"] = out
            if normalize_optional_string(target) is not None:
                explicit["target_language"] = target.strip()
            config = dataclasses.replace(loaded_config, **explicit)
        config.validate()
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Fix the option value and rerun.",
        ) from exc
    return config


def _apply_runtime_sources(
    base_config: TranslationConfig,
    runtime_cli_values: dict[str, str],
    runtime_secure_values: dict[str, str],
    max_output_tokens: int | None,
) -> TranslationConfig:
    """Attach runtime source mappings and fit the output budget to the resolved model."""

    runtime_sources = RuntimeConfigSources(
        cli=runtime_cli_values,
        secure=runtime_secure_values,
        env=os.environ,
    )
    config = dataclasses.replace(base_config, runtime_sources=runtime_sources)
    model = config.resolved_provider_runtime().model
    requested = max_output_tokens if max_output_tokens is not None else config.max_output_tokens
    return dataclasses.replace(
        config,
        max_output_tokens=resolve_max_output_tokens(
            model, requested, explicit=max_output_tokens is not None
        ),
    )


@app.command("translate")
def translate_command(
    input_path: Annotated[
        Path | None,
        typer.Argument(help="Path to the source text. Required unless provided by `--config`."),
    ] = None,
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Output directory (overrides config file value)."),
    ] = None,
    target: Annotated[
        str | None,
        typer.Option("--target", help="Target language, e.g. `Korean`."),
    ] = None,
    source: Annotated[
        str | None,
        typer.Option("--source", help="Source language; inferred from the text when omitted."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", help="Model id for the main translation conversation."),
    ] = None,
    review_model: Annotated[
        str | None,
        typer.Option("--review-model", help="Model id for the external review step."),
    ] = None,
    retries: Annotated[
        int | None,
        typer.Option("--retries", min=0, help="Extra attempts per generation call."),
    ] = None,
    retry_delay: Annotated[
        float | None,
        typer.Option("--retry-delay", min=0.0, help="Delay in seconds between attempts."),
    ] = None,
    skip_external_review: Annotated[
        bool | None,
        typer.Option(
            "--skip-external-review/--with-external-review",
            help="Skip the optional external review and final refinement steps.",
        ),
    ] = None,
    instructions: Annotated[
        str | None,
        typer.Option("--instructions", help="Custom instructions for the translator."),
    ] = None,
    instructions_file: Annotated[
        Path | None,
        typer.Option(
            "--instructions-file",
            help="File with custom instructions; takes precedence over `--instructions`.",
        ),
    ] = None,
    reasoning_effort: Annotated[
        str | None,
        typer.Option(
            "--reasoning-effort",
            help="Reasoning effort for reasoning models: `low`, `medium`, or `high`.",
        ),
    ] = None,
    max_output_tokens: Annotated[
        int | None,
        typer.Option("--max-output-tokens", min=1, help="Max generated tokens per call."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="OpenAI API key override."),
    ] = None,
    anthropic_api_key: Annotated[
        str | None,
        typer.Option("--anthropic-api-key", help="Anthropic API key override."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log per-call timing, token, and cost details."),
    ] = False,
) -> None:
    """Run or resume a translation."""

    load_dotenv()
    workflow: TranslationWorkflow | None = None
    previous_handler = signal.signal(signal.SIGTERM, _raise_on_sigterm)
    try:
        runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
            model=model,
            review_model=review_model,
            api_key=api_key,
            anthropic_api_key=anthropic_api_key,
        )
        overrides: dict[str, Any] = {
            "source_language": normalize_optional_string(source),
            "model": normalize_optional_string(model),
            "review_model": normalize_optional_string(review_model),
            "max_retries": retries,
            "retry_delay_seconds": retry_delay,
            "skip_external_review": skip_external_review,
            "custom_instructions": resolve_custom_instructions(instructions, instructions_file),
            "reasoning_effort": (
                None if reasoning_effort is None else parse_reasoning_effort(reasoning_effort)
            ),
            "verbose": verbose or None,
        }
        base_config = _resolve_command_base_config(
            config_file=config_file,
            input_path=input_path,
            out=out,
            target=target,
            overrides=overrides,
        )
        config = _apply_runtime_sources(
            base_config=base_config,
            runtime_cli_values=runtime_cli_values,
            runtime_secure_values=runtime_secure_values,
            max_output_tokens=max_output_tokens,
        )
        progress = StepProgressIndicator(command_name="translate")
        workflow = TranslationWorkflow(
            config,
            run_logger=RunLogger(level="DEBUG" if config.verbose else "INFO"),
            step_progress_callback=progress.on_step_start,
        )
        summary = workflow.run()
    except (Exception, KeyboardInterrupt) as exc:
        if workflow is not None:
            saved_path = workflow.save_best_effort_final()
            if saved_path is not None:
                typer.echo(f"Best available translation saved to: {saved_path}", err=True)
        exit_with_command_error("translate", exc)
    finally:
        signal.signal(signal.SIGTERM, previous_handler)

    typer.echo(f"Final translation: {summary.final_output_path}")
    typer.echo(f"Final artifact: {summary.final_artifact.path.name}")
    typer.echo(f"Completed step: {summary.step_counter}")
    echo_cost_summary(summary)
    echo_journey(summary)


@app.command("status")
def status_command(
    output_dir: Annotated[Path, typer.Argument(help="Output directory of a translation run.")],
    skip_external_review: Annotated[
        bool,
        typer.Option(
            "--skip-external-review",
            help="Inspect against the step table without optional review steps.",
        ),
    ] = False,
) -> None:
    """Show the saved session of an output directory and the next step to run."""

    try:
        session, next_step = inspect_session(
            output_dir, build_default_steps(skip_external_review=skip_external_review)
        )
    except Exception as exc:
        exit_with_command_error("status", exc)

    echo_session_status(session, next_step)


@app.command("credentials")
def credentials_command(
    provider: Annotated[
        str,
        typer.Option(
            "--provider",
            help=f"Provider whose key is managed: {', '.join(SUPPORTED_PROVIDERS)}.",
        ),
    ] = "openai",
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored provider credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    try:
        credential_store = create_credential_store(provider)
    except ValueError as exc:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail=str(exc),
                hint="Pass `--provider openai` or `--provider anthropic`.",
            ),
        )

    provider_label = provider.strip().lower()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                f"{provider_label} API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo(f"{provider_label} API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo(f"Stored {provider_label} API key cleared from secure credential storage.")
        else:
            typer.echo(f"No stored {provider_label} API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored {provider_label} API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
