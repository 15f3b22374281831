"""Top-level package for Dadeumi.

This package drives a resumable, multi-step AI translation workflow that refines a
text through analysis, drafting, critique, and review. The main orchestration entry
point is `TranslationWorkflow`; `translate_text` wraps it for one-off use.
"""

from .pipeline import TranslationWorkflow, translate_text

__all__ = ["TranslationWorkflow", "__version__", "translate_text"]

__version__ = "0.1.0"
