"""Configuration model and loaders for Dadeumi.

Responsibilities:
- Define workflow configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider keys and model ids.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `TranslationConfig`: normalized settings for one translation run.
- `ProviderRuntimeConfig`: resolved provider keys and model identifiers.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `TranslationConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_non_negative_number,
    parse_permissive_boolean,
    parse_reasoning_effort,
    parse_required_boolean,
)


DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 5.0
DEFAULT_REASONING_EFFORT = "medium"
DEFAULT_MAX_OUTPUT_TOKENS = 30000
DEFAULT_TEMPERATURE = 0.7
INTERMEDIATES_DIRNAME = ".translation-intermediates"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved provider credentials and model identifiers for one run.

    Attributes:
        model: Model identifier for the main translation conversation.
        review_model: Model identifier for the independent external review.
        openai_api_key: Optional OpenAI API key (never persisted).
        anthropic_api_key: Optional Anthropic API key (never persisted).
    """

    model: str
    review_model: str
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None

    def as_metadata(self) -> dict[str, str]:
        """Return non-secret runtime metadata safe to print or persist."""

        return {
            "model": self.model,
            "review_model": self.review_model,
            "openai_api_key": "set" if self.openai_api_key else "unset",
            "anthropic_api_key": "set" if self.anthropic_api_key else "unset",
        }


@dataclass(slots=True)
class TranslationConfig:
    """Runtime configuration for one translation run.

    Attributes:
        input_path: Path to the source text file.
        output_dir: Directory receiving the final translation and intermediates.
        target_language: Language the text is translated into.
        source_language: Optional source language; inferred by the model when omitted.
        model: Generation model identifier for the main conversation.
        review_model: Optional model for the external review (defaults to `model`).
        max_retries: Extra attempts allowed per generation call.
        retry_delay_seconds: Fixed delay between attempts.
        skip_external_review: Whether optional review/refinement steps are skipped.
        custom_instructions: Optional extra guidance appended to the system prompt.
        reasoning_effort: Effort level passed to reasoning-capable models.
        max_output_tokens: Upper bound on generated tokens per call.
        temperature: Sampling temperature for chat models.
        verbose: Whether per-call timing and cost details are logged.
        runtime_sources: Optional runtime source overrides injected by CLI.
    """

    input_path: Path
    output_dir: Path
    target_language: str
    source_language: str | None = None
    model: str = DEFAULT_MODEL
    review_model: str | None = None
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    skip_external_review: bool = False
    custom_instructions: str | None = None
    reasoning_effort: str = DEFAULT_REASONING_EFFORT
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    verbose: bool = False
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)

    @property
    def intermediates_dir(self) -> Path:
        """Return the per-run directory holding step artifacts and history."""

        return self.output_dir / INTERMEDIATES_DIRNAME

    @property
    def final_output_path(self) -> Path:
        """Return the single user-facing deliverable path."""

        return self.output_dir / (
            f"{self.input_path.stem}-{self.target_language}{self.input_path.suffix}"
        )

    def validate(self) -> None:
        """Validate configuration values before workflow execution."""

        self._require_non_empty(self.target_language, "target_language")
        self._require_non_empty(self.model, "model")
        if self.review_model is not None:
            self._require_non_empty(self.review_model, "review_model")
        if isinstance(self.max_retries, bool) or self.max_retries < 0:
            raise ValueError("`max_retries` must be a non-negative integer.")
        if self.retry_delay_seconds < 0:
            raise ValueError("`retry_delay_seconds` must be a non-negative number.")
        if self.max_output_tokens <= 0:
            raise ValueError("`max_output_tokens` must be a positive integer.")
        parse_reasoning_effort(self.reasoning_effort)

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider keys and model ids with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        model = self._resolve_runtime_value(
            key="model",
            env_key="DADEUMI_MODEL",
            default_value=self.model,
            sources=resolved_sources,
        )
        review_model = self._resolve_runtime_value(
            key="review_model",
            env_key="DADEUMI_REVIEW_MODEL",
            default_value=self.review_model or model,
            sources=resolved_sources,
        )
        openai_api_key = self._resolve_optional_runtime_value(
            key="openai_api_key",
            env_key="OPENAI_API_KEY",
            sources=resolved_sources,
        )
        anthropic_api_key = self._resolve_optional_runtime_value(
            key="anthropic_api_key",
            env_key="ANTHROPIC_API_KEY",
            sources=resolved_sources,
        )
        return ProviderRuntimeConfig(
            model=model,
            review_model=review_model,
            openai_api_key=openai_api_key,
            anthropic_api_key=anthropic_api_key,
        )

    def _resolve_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a runtime value from sources in deterministic precedence order."""

        resolved = self._resolve_optional_runtime_value(key, env_key, sources)
        if resolved is not None:
            return resolved

        normalized_default = normalize_optional_string(default_value)
        if normalized_default is None:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or defaults."
            )
        return normalized_default

    def _resolve_optional_runtime_value(
        self,
        key: str,
        env_key: str,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value, returning `None` when no source has it."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            value = self._normalized_lookup(mapping, lookup_key)
            if value is not None:
                return value
        return None

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `TranslationConfig` from external sources."""

    _REQUIRED_YAML_KEYS = frozenset({"input_path", "output_dir", "target_language"})
    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "input_path",
            "output_dir",
            "target_language",
            "source_language",
            "model",
            "review_model",
            "max_retries",
            "retry_delay_seconds",
            "skip_external_review",
            "custom_instructions",
            "reasoning_effort",
            "max_output_tokens",
            "temperature",
            "verbose",
        }
    )
    _RUNTIME_ENV_KEYS = frozenset(
        {
            "DADEUMI_MODEL",
            "DADEUMI_REVIEW_MODEL",
            "OPENAI_API_KEY",
            "ANTHROPIC_API_KEY",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> TranslationConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = ConfigLoader._parse_yaml_payload(path_text, path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> TranslationConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env

        input_path = ConfigLoader._required_env_string(env_map, "DADEUMI_INPUT")
        target_language = ConfigLoader._required_env_string(env_map, "DADEUMI_TARGET_LANGUAGE")
        output_dir = ConfigLoader._optional_env_string(env_map, "DADEUMI_OUTPUT_DIR") or "."
        max_retries = ConfigLoader._optional_env_int(env_map, "DADEUMI_MAX_RETRIES", minimum=0)
        retry_delay = ConfigLoader._optional_env_string(env_map, "DADEUMI_RETRY_DELAY_SECONDS")
        max_output_tokens = ConfigLoader._optional_env_int(
            env_map, "DADEUMI_MAX_OUTPUT_TOKENS", minimum=1
        )
        skip_review = ConfigLoader._optional_env_boolean(env_map, "DADEUMI_SKIP_EXTERNAL_REVIEW")
        reasoning_effort = ConfigLoader._optional_env_string(env_map, "DADEUMI_REASONING_EFFORT")

        runtime_env = {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_string(value) is not None
        }

        config = TranslationConfig(
            input_path=Path(input_path),
            output_dir=Path(output_dir),
            target_language=target_language,
            source_language=ConfigLoader._optional_env_string(env_map, "DADEUMI_SOURCE_LANGUAGE"),
            model=ConfigLoader._optional_env_string(env_map, "DADEUMI_MODEL") or DEFAULT_MODEL,
            review_model=ConfigLoader._optional_env_string(env_map, "DADEUMI_REVIEW_MODEL"),
            max_retries=DEFAULT_MAX_RETRIES if max_retries is None else max_retries,
            retry_delay_seconds=(
                DEFAULT_RETRY_DELAY_SECONDS
                if retry_delay is None
                else parse_non_negative_number(retry_delay, "DADEUMI_RETRY_DELAY_SECONDS")
            ),
            skip_external_review=bool(skip_review),
            custom_instructions=ConfigLoader._optional_env_string(env_map, "DADEUMI_INSTRUCTIONS"),
            reasoning_effort=(
                DEFAULT_REASONING_EFFORT
                if reasoning_effort is None
                else parse_reasoning_effort(reasoning_effort, "DADEUMI_REASONING_EFFORT")
            ),
            max_output_tokens=(
                DEFAULT_MAX_OUTPUT_TOKENS if max_output_tokens is None else max_output_tokens
            ),
            runtime_sources=RuntimeConfigSources(env=runtime_env),
        )
        config.validate()
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` is not valid YAML: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> TranslationConfig:
        """Build a validated config from a normalized mapping payload."""

        ConfigLoader._validate_yaml_keys(payload, source_label)

        input_path = ConfigLoader._required_string(payload, "input_path", source_label)
        output_dir = ConfigLoader._required_string(payload, "output_dir", source_label)
        target_language = ConfigLoader._required_string(payload, "target_language", source_label)
        reasoning_effort = ConfigLoader._optional_non_empty_string(payload, "reasoning_effort")

        config = TranslationConfig(
            input_path=Path(input_path),
            output_dir=Path(output_dir),
            target_language=target_language,
            source_language=ConfigLoader._optional_non_empty_string(payload, "source_language"),
            model=ConfigLoader._optional_non_empty_string(payload, "model") or DEFAULT_MODEL,
            review_model=ConfigLoader._optional_non_empty_string(payload, "review_model"),
            max_retries=ConfigLoader._optional_int(
                payload, "max_retries", source_label, default=DEFAULT_MAX_RETRIES, minimum=0
            ),
            retry_delay_seconds=ConfigLoader._optional_number(
                payload, "retry_delay_seconds", source_label, default=DEFAULT_RETRY_DELAY_SECONDS
            ),
            skip_external_review=ConfigLoader._optional_boolean(
                payload, "skip_external_review", source_label, default=False
            ),
            custom_instructions=ConfigLoader._optional_non_empty_string(
                payload, "custom_instructions"
            ),
            reasoning_effort=(
                DEFAULT_REASONING_EFFORT
                if reasoning_effort is None
                else parse_reasoning_effort(reasoning_effort)
            ),
            max_output_tokens=ConfigLoader._optional_int(
                payload,
                "max_output_tokens",
                source_label,
                default=DEFAULT_MAX_OUTPUT_TOKENS,
                minimum=1,
            ),
            temperature=ConfigLoader._optional_number(
                payload, "temperature", source_label, default=DEFAULT_TEMPERATURE
            ),
            verbose=ConfigLoader._optional_boolean(payload, "verbose", source_label, default=False),
        )
        config.validate()
        return config

    @staticmethod
    def _validate_yaml_keys(payload: Mapping[str, Any], source_label: str) -> None:
        """Validate supported and required YAML keys."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

        missing = sorted(
            key for key in ConfigLoader._REQUIRED_YAML_KEYS if key not in payload
        )
        if missing:
            key_list = ", ".join(missing)
            raise ValueError(f"{source_label} is missing required key(s): {key_list}.")

    @staticmethod
    def _required_string(payload: Mapping[str, Any], key: str, source_label: str) -> str:
        """Read a required non-empty string field from a payload."""

        value = ConfigLoader._optional_non_empty_string(payload, key)
        if value is None:
            raise ValueError(f"{source_label} requires non-empty `{key}`.")
        return value

    @staticmethod
    def _optional_non_empty_string(payload: Mapping[str, Any], key: str) -> str | None:
        """Read an optional string field and normalize blank values to `None`."""

        if key not in payload:
            return None
        return normalize_optional_string(payload[key])

    @staticmethod
    def _optional_int(
        payload: Mapping[str, Any],
        key: str,
        source_label: str,
        default: int,
        minimum: int,
    ) -> int:
        """Read and validate an integer payload field with a lower bound."""

        if key not in payload:
            return default

        raw_value = payload[key]
        message = f"{source_label} field `{key}` must be an integer >= {minimum}."
        if isinstance(raw_value, bool):
            raise ValueError(message)
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ValueError(message) from exc

        if parsed < minimum:
            raise ValueError(message)
        return parsed

    @staticmethod
    def _optional_number(
        payload: Mapping[str, Any], key: str, source_label: str, default: float
    ) -> float:
        """Read and validate a non-negative numeric payload field."""

        if key not in payload or payload[key] is None:
            return default
        try:
            return parse_non_negative_number(payload[key], key)
        except ValueError as exc:
            raise ValueError(f"{source_label} field {exc}") from exc

    @staticmethod
    def _optional_boolean(
        payload: Mapping[str, Any], key: str, source_label: str, default: bool
    ) -> bool:
        """Read and validate a boolean field from a payload."""

        if key not in payload:
            return default

        parsed = parse_permissive_boolean(payload[key])
        if parsed is None:
            raise ValueError(
                f"{source_label} field `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed

    @staticmethod
    def _required_env_string(env: Mapping[str, str], key: str) -> str:
        """Read a required non-empty value from environment mapping."""

        value = ConfigLoader._optional_env_string(env, key)
        if value is None:
            raise ValueError(f"Environment variable `{key}` is required.")
        return value

    @staticmethod
    def _optional_env_string(env: Mapping[str, str], key: str) -> str | None:
        """Read and normalize optional string environment variable values."""

        if key not in env:
            return None
        return normalize_optional_string(env.get(key))

    @staticmethod
    def _optional_env_int(env: Mapping[str, str], key: str, minimum: int) -> int | None:
        """Read an optional bounded integer from environment mapping."""

        raw_value = ConfigLoader._optional_env_string(env, key)
        if raw_value is None:
            return None
        message = f"Environment variable `{key}` must be an integer >= {minimum}."
        try:
            parsed = int(raw_value)
        except ValueError as exc:
            raise ValueError(message) from exc
        if parsed < minimum:
            raise ValueError(message)
        return parsed

    @staticmethod
    def _optional_env_boolean(env: Mapping[str, str], key: str) -> bool | None:
        """Read an optional boolean from environment mapping."""

        raw_value = ConfigLoader._optional_env_string(env, key)
        if raw_value is None:
            return None
        return parse_required_boolean(raw_value, key)
