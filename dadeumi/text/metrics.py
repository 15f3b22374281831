"""Word, character, and reading-time metrics for source and translated text.

Responsibilities:
- Count words with a per-language strategy (character-based for CJK languages).
- Derive source-relative ratios used in journey reporting.
"""

from __future__ import annotations

import re

from ..models.datatypes import TranslationMetrics

_WHITESPACE = re.compile(r"\s+")
_CHARACTER_COUNTED_LANGUAGES = frozenset({"korean", "japanese", "chinese"})
WORDS_PER_MINUTE = 200


def count_characters(text: str) -> int:
    """Count characters excluding all whitespace."""

    return len(_WHITESPACE.sub("", text))


def count_words(text: str, language: str | None = None) -> int:
    """Count words, approximating by `chars / 2` for Korean, Japanese, and Chinese."""

    if (language or "").strip().lower() in _CHARACTER_COUNTED_LANGUAGES:
        return (count_characters(text) + 1) // 2
    return len([token for token in _WHITESPACE.split(text) if token])


def calculate_metrics(
    text: str,
    language: str | None = None,
    *,
    source_metrics: TranslationMetrics | None = None,
    is_source: bool = False,
) -> TranslationMetrics:
    """Compute metrics for `text`, relative to `source_metrics` unless `is_source`."""

    if not text:
        return TranslationMetrics()

    char_count = count_characters(text)
    word_count = count_words(text, language)
    if is_source:
        source_words, source_chars = word_count, char_count
    elif source_metrics is not None:
        source_words = source_metrics.source_word_count
        source_chars = source_metrics.source_char_count
    else:
        source_words, source_chars = 0, 0

    return TranslationMetrics(
        source_word_count=source_words,
        target_word_count=word_count,
        source_char_count=source_chars,
        target_char_count=char_count,
        ratio=word_count / source_words if source_words > 0 else 0.0,
        estimated_reading_time=word_count / WORDS_PER_MINUTE,
    )
