"""CLI provider runtime resolution helpers.

This module isolates runtime source assembly, custom-instruction loading, and
output-token budgeting from the command wiring layer.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol

import typer

from .credentials import SUPPORTED_PROVIDERS, create_credential_store
from .llm.limits import clamp_max_output_tokens
from .parsing import normalize_optional_string


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by CLI runtime resolution."""

    def get_api_key(self) -> str | None:
        """Return currently stored API key, if available."""


def _set_runtime_cli_value(
    runtime_cli_values: dict[str, str],
    key: str,
    value: str | None,
) -> None:
    """Set a normalized runtime CLI value when user input is present."""

    normalized = normalize_optional_string(value)
    if normalized is not None:
        runtime_cli_values[key] = normalized


def resolve_provider_runtime_sources(
    model: str | None,
    review_model: str | None,
    api_key: str | None,
    anthropic_api_key: str | None,
    credential_store_factory: Callable[[str], CredentialStoreProtocol] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime source mappings for provider configuration."""

    runtime_cli_values: dict[str, str] = {}
    _set_runtime_cli_value(runtime_cli_values, "model", model)
    _set_runtime_cli_value(runtime_cli_values, "review_model", review_model)
    _set_runtime_cli_value(runtime_cli_values, "openai_api_key", api_key)
    _set_runtime_cli_value(runtime_cli_values, "anthropic_api_key", anthropic_api_key)

    runtime_secure_values: dict[str, str] = {}
    for provider in SUPPORTED_PROVIDERS:
        key = f"{provider}_api_key"
        if key in runtime_cli_values:
            continue
        stored_api_key = credential_store_factory(provider).get_api_key()
        if stored_api_key is not None:
            runtime_secure_values[key] = stored_api_key

    return runtime_cli_values, runtime_secure_values


def resolve_custom_instructions(
    inline_instructions: str | None, instructions_file: Path | None
) -> str | None:
    """Return custom instructions, preferring the file over inline text.

    A missing or unreadable file prints a warning and falls back to inline text.
    """

    if instructions_file is not None:
        try:
            file_text = normalize_optional_string(
                instructions_file.read_text(encoding="utf-8")
            )
        except (OSError, UnicodeDecodeError) as exc:
            typer.secho(
                f"Warning: could not read instructions file `{instructions_file}` "
                f"({type(exc).__name__}); using inline instructions instead.",
                fg=typer.colors.YELLOW,
                err=True,
            )
        else:
            if file_text is not None:
                return file_text
    return normalize_optional_string(inline_instructions)


def resolve_max_output_tokens(model: str, requested: int, *, explicit: bool) -> int:
    """Return the output-token budget for `model`, warning when it exceeds the limit.

    Only the built-in default is lowered to the model limit; a value the user chose is
    kept and merely warned about.
    """

    budget, warning = clamp_max_output_tokens(model, requested, explicit=explicit)
    if warning is not None:
        typer.secho(f"Warning: {warning}", fg=typer.colors.YELLOW, err=True)
    return budget
