"""Dadeumi pipeline package.

This package contains the step table, dependency checks, context trimming, session
persistence, step execution, and the resumable workflow controller.
"""

from .orchestrator import TranslationWorkflow, inspect_session, translate_text
from .steps import build_default_steps

__all__ = ["TranslationWorkflow", "build_default_steps", "inspect_session", "translate_text"]
