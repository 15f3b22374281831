"""Filesystem storage helpers for workflow artifacts."""

from .storage import ArtifactStore

__all__ = ["ArtifactStore"]
