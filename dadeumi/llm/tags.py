"""Tagged-payload extraction from model responses."""

from __future__ import annotations

import re


def extract_tag_content(text: str, tag: str) -> str:
    """Return the trimmed content of the first `<tag>...</tag>` block.

    The full response is returned when the tag is absent or wraps only whitespace,
    so malformed output is kept rather than lost.
    """

    escaped = re.escape(tag)
    match = re.search(rf"<{escaped}>(.*?)</{escaped}>", text, flags=re.DOTALL)
    if match:
        content = match.group(1).strip()
        if content:
            return content
    return text
