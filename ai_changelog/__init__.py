"""
AI Changelog - AI-assisted changelog generation for Git repositories.

Reads commit ranges or working-directory changes, fits the diffs into a
bounded prompt and renders a Keep a Changelog document, falling back to
rule-based analysis when no AI provider answers.
"""

__version__ = "1.0.0"

from ai_changelog.core import AIChangelog
from ai_changelog.config.settings import Settings

__all__ = ["AIChangelog", "Settings"]
