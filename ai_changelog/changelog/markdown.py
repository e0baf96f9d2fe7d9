"""
Markdown assembly for release and working-directory changelogs.
"""

import re
from datetime import date
from typing import Dict, List, Optional, Sequence

from ..config.settings import ChangelogSettings
from ..git_ops.models import FileChange, FileStatus
from .conventional import commit_link, issue_link, link_issue_references, range_link
from .heuristics import ChangesSummary, generate_change_description
from .models import CommitAnalysis, ReleaseInsights


KEEP_A_CHANGELOG_HEADER = (
    "# Changelog\n\n"
    "All notable changes to this project will be documented in this file.\n\n"
    "The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),\n"
    "and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).\n\n"
)

ATTRIBUTION = "*Generated with ai-changelog - AI-assisted changelog generation for Git repositories*\n"

SECTION_ORDER = ["feat", "fix", "perf", "refactor", "docs", "test", "build", "ci", "chore", "style", "revert", "merge", "other"]

TYPE_HEADERS = {
    "feat": "🚀 Features",
    "fix": "🐛 Bug Fixes",
    "perf": "⚡ Performance Improvements",
    "refactor": "♻️ Refactoring",
    "docs": "📚 Documentation",
    "test": "🧪 Tests",
    "build": "🔧 Build System",
    "ci": "⚙️ CI/CD",
    "chore": "🔧 Maintenance",
    "style": "💄 Code Style",
    "revert": "⏪ Reverts",
    "merge": "🔀 Merges",
    "other": "📦 Other Changes",
}

# Analysis categories that differ from their conventional type
CATEGORY_TYPES = {
    "feature": "feat",
    "security": "fix",
    "breaking": "feat",
}

CATEGORY_ICONS = {
    "source": "💻",
    "tests": "🧪",
    "documentation": "📚",
    "configuration": "⚙️",
    "frontend": "🎨",
    "assets": "🖼️",
    "build": "🔧",
    "other": "📄",
}

STATUS_ICONS = {
    FileStatus.ADDED: "➕",
    FileStatus.UNTRACKED: "➕",
    FileStatus.MODIFIED: "✏️",
    FileStatus.DELETED: "❌",
    FileStatus.RENAMED: "📝",
}

_TYPE_PREFIX_RE = re.compile(r"^(?:feat|fix|refactor|docs|chore|test|style|perf|build|ci)(?:\([^)]*\))?!?:\s*", re.IGNORECASE)


def type_header(commit_type: str) -> str:
    return TYPE_HEADERS.get(commit_type, f"📦 {commit_type.capitalize()}")


def strip_type_prefix(title: str) -> str:
    return _TYPE_PREFIX_RE.sub("", title)


class ChangelogRenderer:
    """Render analyzed commits as a Keep a Changelog document."""

    def __init__(
        self,
        settings: Optional[ChangelogSettings] = None,
        commit_url: Optional[str] = None,
        commit_range_url: Optional[str] = None,
    ):
        self.settings = settings or ChangelogSettings()
        self.commit_url = self.settings.commit_url or commit_url
        self.commit_range_url = self.settings.commit_range_url or commit_range_url
        self.issue_url = self.settings.issue_url

    def render(
        self,
        analyses: Sequence[CommitAnalysis],
        insights: Optional[ReleaseInsights] = None,
        version: Optional[str] = None,
        workspace_changes: Sequence[FileChange] = (),
        today: Optional[date] = None,
    ) -> str:
        """Full changelog document for a release."""
        today = today or date.today()
        changelog = KEEP_A_CHANGELOG_HEADER

        header = f"## [{version or 'Unreleased'}] - {today.isoformat()}"
        if analyses and self.commit_range_url:
            # Commits arrive newest first
            header += f" ({range_link(analyses[-1].full_hash, analyses[0].full_hash, self.commit_range_url)})"
        changelog += f"{header}\n\n"

        if insights and insights.summary:
            changelog += f"### 📋 Release Summary\n\n{insights.summary}\n\n"

        grouped = self.group_by_type(analyses)
        for commit_type in self.ordered_types(grouped):
            changelog += f"### {type_header(commit_type)}\n\n"
            for analysis in grouped[commit_type]:
                changelog += self.render_entry(analysis)
            changelog += "\n"

        breaking = [a for a in analyses if a.breaking or a.conventional.breaking_changes]
        if breaking:
            changelog += "### 🚨 BREAKING CHANGES\n\n"
            for analysis in breaking:
                changelog += self.render_breaking_entry(analysis)
            changelog += "\n"

        if workspace_changes:
            changelog += self.render_workspace_section(workspace_changes)

        changelog += "---\n\n"
        changelog += ATTRIBUTION
        return changelog

    def group_by_type(self, analyses: Sequence[CommitAnalysis]) -> Dict[str, List[CommitAnalysis]]:
        """Group by conventional type, then by analysis category, keeping configured types only."""
        allowed = set(self.settings.commit_types)
        include_invalid = self.settings.include_invalid_commits
        groups: Dict[str, List[CommitAnalysis]] = {}

        for analysis in analyses:
            commit_type = analysis.conventional.type
            if commit_type:
                commit_type = commit_type.lower()
            else:
                category = analysis.summary.category
                commit_type = CATEGORY_TYPES.get(category, category)

            if commit_type not in allowed:
                if not include_invalid:
                    continue
                commit_type = "other"

            groups.setdefault(commit_type, []).append(analysis)

        return groups

    @staticmethod
    def ordered_types(groups: Dict[str, List[CommitAnalysis]]) -> List[str]:
        ordered = [t for t in SECTION_ORDER if groups.get(t)]
        return ordered + [t for t in groups if t not in SECTION_ORDER and groups[t]]

    def _title(self, analysis: CommitAnalysis) -> str:
        title = analysis.summary.summary or analysis.conventional.description or analysis.commit.subject or "No description"
        return link_issue_references(strip_type_prefix(title), self.issue_url)

    def _link(self, analysis: CommitAnalysis) -> str:
        if not self.commit_url:
            return ""
        return f" ({commit_link(analysis.full_hash, self.commit_url)})"

    def _migration_note(self, analysis: CommitAnalysis) -> Optional[str]:
        if not analysis.summary.migration_required:
            return None
        if analysis.conventional.breaking_changes:
            return analysis.conventional.breaking_changes[0]
        return "Migration required, review the breaking changes below"

    def render_entry(self, analysis: CommitAnalysis) -> str:
        """``- **scope**: title (link)`` with detail sub-bullets."""
        title = self._title(analysis)
        entry = "- "
        if analysis.scope:
            entry += f"**{analysis.scope}**: "
        entry += title + self._link(analysis)

        details = analysis.summary.technical_details
        if details and details != title and len(details) > len(title):
            entry += f"\n  - {details}"

        migration = self._migration_note(analysis)
        if migration:
            entry += f"\n  - **Migration**: {migration}"

        if analysis.conventional.issue_references:
            links = ", ".join(issue_link(ref, self.issue_url) for ref in analysis.conventional.issue_references)
            entry += f"\n  - References: {links}"

        if analysis.conventional.closes_references:
            links = ", ".join(issue_link(ref, self.issue_url) for ref in analysis.conventional.closes_references)
            entry += f"\n  - Closes: {links}"

        return f"{entry}\n"

    def render_breaking_entry(self, analysis: CommitAnalysis) -> str:
        breaking_notes = analysis.conventional.breaking_changes
        description = breaking_notes[0] if breaking_notes else self._title(analysis)
        description = strip_type_prefix(description)

        entry = "- "
        if analysis.scope:
            entry += f"**{analysis.scope}**: "
        entry += description + self._link(analysis)

        for note in breaking_notes[1:]:
            entry += f"\n  - {note}"

        return f"{entry}\n"

    def render_workspace_section(self, changes: Sequence[FileChange]) -> str:
        section = "### 🔧 Unreleased Changes\n\n"
        for change in changes:
            section += f"- **{change.path}**: {generate_change_description(change)}\n"
        return section + "\n"

    def render_basic_workspace(
        self,
        changes: Sequence[FileChange],
        summary: ChangesSummary,
        version: Optional[str] = None,
        today: Optional[date] = None,
    ) -> str:
        """Rule-based working-directory changelog grouped by file category."""
        today = today or date.today()
        changelog = f"# Working Directory Changes - {today.isoformat()}\n\n"
        if version:
            changelog += f"## Version {version}\n\n"

        changelog += "## Summary\n"
        changelog += f"{len(changes)} files modified across {len(summary.categories)} categories.\n\n"

        changelog += "## Changes by Category\n\n"
        for category, files in summary.categories.items():
            icon = CATEGORY_ICONS.get(category, "📄")
            changelog += f"### {icon} {category.capitalize()} ({len(files)} files)\n\n"
            for change in files:
                changelog += f"- {STATUS_ICONS.get(change.status, '📄')} {change.path}\n"
            changelog += "\n"

        changelog += "## Recommendations\n"
        changelog += "- Review changes before committing\n"
        changelog += "- Consider adding tests for new functionality\n"
        changelog += "- Update documentation if needed\n\n"

        return changelog

    def wrap_workspace_ai(self, content: str, total_files: int, today: Optional[date] = None) -> str:
        """Give AI workspace output a Keep a Changelog header and a footer."""
        today = today or date.today()
        if "# " not in content:
            content = f"{KEEP_A_CHANGELOG_HEADER}## [Unreleased] - {today.isoformat()}\n\n{content}"
        return f"{content.rstrip()}\n\n---\n\n*Generated from {total_files} working directory changes*\n"
