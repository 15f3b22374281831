"""Conversation size management against model context windows.

Responsibilities:
- Estimate conversation size with a fixed characters-per-token ratio.
- Proactively trim to `[system] + last K messages` near the model limit.
- Aggressively prune to `[system, latest user]` after a context-length failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import math

from ..llm.limits import context_limit_for
from ..models.datatypes import ConversationMessage


@dataclass(frozen=True, slots=True)
class ContextManager:
    """Keep conversations within a fraction of the model's context window."""

    chars_per_token: int = 4
    trim_threshold: float = 0.8
    keep_last_messages: int = 4

    def estimate_tokens(self, messages: Sequence[ConversationMessage]) -> int:
        """Return a coarse token estimate for a message list."""

        total_chars = sum(len(message.content) for message in messages)
        return math.ceil(total_chars / self.chars_per_token)

    def model_context_limit(self, model: str) -> int:
        return context_limit_for(model)

    def needs_trim(self, messages: Sequence[ConversationMessage], model: str) -> bool:
        """Return whether the estimate exceeds the trim threshold for `model`."""

        budget = self.model_context_limit(model) * self.trim_threshold
        return self.estimate_tokens(messages) > budget

    def trim(self, conversation: list[ConversationMessage], model: str) -> bool:
        """Trim `conversation` in place when over budget and report whether it changed.

        The leading system message is always kept. Conversations already at or below
        `1 + keep_last_messages` entries are left alone, so repeated calls are no-ops.
        """

        if len(conversation) <= 1 + self.keep_last_messages:
            return False
        if not self.needs_trim(conversation, model):
            return False
        conversation[:] = [conversation[0], *conversation[-self.keep_last_messages :]]
        return True

    @staticmethod
    def prune_for_overflow(
        messages: Sequence[ConversationMessage],
    ) -> list[ConversationMessage]:
        """Return `[system, latest user]` from a message list."""

        if not messages:
            return []
        pruned = [messages[0]] if messages[0].role == "system" else []
        latest_user = next(
            (message for message in reversed(messages) if message.role == "user"), None
        )
        if latest_user is not None and (not pruned or latest_user is not messages[0]):
            pruned.append(latest_user)
        return pruned
