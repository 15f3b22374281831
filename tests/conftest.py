"""Shared pytest fixtures for the full Dadeumi test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
import re

import pytest

from dadeumi.config import TranslationConfig
from dadeumi.errors import GenerationError
from dadeumi.llm.service import GenerationOptions, GenerationResponse
from dadeumi.models.datatypes import ConversationMessage

_REQUESTED_TAG = re.compile(r"<([a-z_]+)> tags")


class ScriptedGenerationService:
    """Deterministic generation service answering every requested tag.

    Scripted failures are keyed by the first tag a prompt asks for and are raised,
    in order, before that prompt gets a successful response.
    """

    def __init__(
        self,
        failures: dict[str, list[GenerationError]] | None = None,
        *,
        input_tokens: int = 100,
        output_tokens: int = 50,
    ) -> None:
        """Initialize scripted failures and per-call usage."""

        self.calls: list[tuple[list[ConversationMessage], GenerationOptions]] = []
        self._failures = {tag: list(errors) for tag, errors in (failures or {}).items()}
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Record the call and answer with one tagged block per requested tag."""

        self.calls.append((list(messages), options))
        tags = _REQUESTED_TAG.findall(messages[-1].content)
        pending = self._failures.get(tags[0]) if tags else None
        if pending:
            raise pending.pop(0)
        content = "\n".join(
            f"<{tag}>{tag.replace('_', ' ')} text from call {len(self.calls)}</{tag}>"
            for tag in tags
        )
        return GenerationResponse(
            content=content or "untagged response",
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            model=options.model,
            duration_seconds=0.5,
        )

    def requested_tags(self) -> list[str]:
        """Return the first requested tag of every recorded call."""

        tags: list[str] = []
        for messages, _ in self.calls:
            found = _REQUESTED_TAG.findall(messages[-1].content)
            tags.append(found[0] if found else "")
        return tags


@pytest.fixture
def scripted_service() -> ScriptedGenerationService:
    """Provide a scripted generation service without failures."""

    return ScriptedGenerationService()


@pytest.fixture
def service_factory() -> type[ScriptedGenerationService]:
    """Provide the scripted service class for tests that script failures."""

    return ScriptedGenerationService


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    """Provide a sleeper so retry delays never block tests."""

    delays: list[float] = []
    return delays.append


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., TranslationConfig]:
    """Provide a factory writing a source text and returning a workflow config."""

    def _make_config(
        source_text: str = "The river remembers every stone it has carried.\n",
        **overrides: object,
    ) -> TranslationConfig:
        input_path = tmp_path / "story.txt"
        input_path.write_text(source_text, encoding="utf-8")
        values: dict[str, object] = {
            "input_path": input_path,
            "output_dir": tmp_path / "out",
            "target_language": "Korean",
            "source_language": "English",
            "model": "gpt-4o",
            "retry_delay_seconds": 0.0,
        }
        values.update(overrides)
        return TranslationConfig(**values)  # type: ignore[arg-type]

    return _make_config
