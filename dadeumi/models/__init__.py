"""Shared typed data models for Dadeumi.

This package contains dataclasses used across workflow modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    ArtifactKey,
    ArtifactSpec,
    ConversationMessage,
    FinalArtifact,
    PromptContext,
    RunSummary,
    Session,
    StepDescriptor,
    StepId,
    TranslationMetrics,
)

__all__ = [
    "ArtifactKey",
    "ArtifactSpec",
    "ConversationMessage",
    "FinalArtifact",
    "PromptContext",
    "RunSummary",
    "Session",
    "StepDescriptor",
    "StepId",
    "TranslationMetrics",
]
