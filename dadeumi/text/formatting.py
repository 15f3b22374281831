"""Human-readable formatting for durations, ratios, and percentage changes."""

from __future__ import annotations

import math

_PROGRESS_WIDTH = 20


def _round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""

    return math.floor(value + 0.5)


def format_time(minutes: float) -> str:
    """Format a reading time given in minutes."""

    if minutes < 1:
        return f"{_round_half_up(minutes * 60)} seconds"
    whole_minutes = math.floor(minutes)
    seconds = _round_half_up((minutes - whole_minutes) * 60)
    return f"{whole_minutes} min {seconds} sec"


def format_duration(seconds: float) -> str:
    """Format an elapsed duration given in seconds."""

    if seconds < 60:
        return f"{_round_half_up(seconds)} seconds"
    if seconds < 3600:
        minutes = math.floor(seconds / 60)
        return f"{minutes} min {_round_half_up(seconds % 60)} sec"
    hours = math.floor(seconds / 3600)
    minutes = math.floor((seconds % 3600) / 60)
    return f"{hours} hr {minutes} min {_round_half_up(seconds % 60)} sec"


def progress_bar(ratio: float, valid_source: bool = True) -> str:
    """Render a 20-cell bar for a target/source ratio, with overflow as `+N%`."""

    if not valid_source:
        return "N/A (source metrics unavailable)"
    if ratio > 1:
        return "▓" * _PROGRESS_WIDTH + f" +{_round_half_up((ratio - 1) * 100)}%"
    if ratio >= 0:
        filled = _round_half_up(ratio * _PROGRESS_WIDTH)
        return "▓" * filled + "░" * (_PROGRESS_WIDTH - filled)
    return "Invalid ratio"


def calculate_change(from_value: float, to_value: float) -> str:
    """Return the signed percentage change between two values."""

    if from_value == 0:
        return "N/A"
    change = (to_value - from_value) / from_value * 100
    if change > 0:
        return f"+{change:.1f}%"
    if change < 0:
        return f"{change:.1f}%"
    return "0%"
