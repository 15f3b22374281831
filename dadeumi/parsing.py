"""Value normalization shared by the config loaders and the CLI.

Every helper accepts loosely typed input (YAML scalars, environment strings, or CLI
option values) and either returns a clean value or raises `ValueError` naming the field.
"""

from __future__ import annotations

REASONING_EFFORT_LEVELS = ("low", "medium", "high")
_BOOLEAN_TOKENS = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}


def normalize_optional_string(value: object) -> str | None:
    """Return `value` as a stripped string, or `None` when it is missing or blank."""

    text = "" if value is None else str(value).strip()
    return text or None


def parse_permissive_boolean(value: object) -> bool | None:
    """Map a boolean or a yes/no style token to `bool`; unknown tokens give `None`."""

    if isinstance(value, bool):
        return value
    token = normalize_optional_string(value)
    return None if token is None else _BOOLEAN_TOKENS.get(token.lower())


def parse_required_boolean(value: str, field_name: str) -> bool:
    """Like `parse_permissive_boolean`, but reject unknown tokens.

    Raises:
        ValueError: If `value` is not one of the accepted boolean tokens.
    """

    parsed = parse_permissive_boolean(value)
    if parsed is None:
        raise ValueError(
            f"`{field_name}` must be a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)."
        )
    return parsed


def parse_reasoning_effort(value: object, field_name: str = "reasoning_effort") -> str:
    """Normalize a reasoning-effort token to one of `low`, `medium`, `high`."""

    normalized = normalize_optional_string(value)
    if normalized is not None and normalized.lower() in REASONING_EFFORT_LEVELS:
        return normalized.lower()
    supported = ", ".join(REASONING_EFFORT_LEVELS)
    raise ValueError(f"`{field_name}` must be one of: {supported}.")


def parse_non_negative_number(value: object, field_name: str) -> float:
    """Parse a non-negative float from a number or numeric string."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        try:
            parsed = float(str(value).strip())
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be a non-negative number.") from exc
    if parsed < 0:
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    return parsed
