"""
Tests for changelog Markdown rendering.
"""

from datetime import date

import pytest

from ai_changelog.changelog.conventional import parse_conventional_commit
from ai_changelog.changelog.heuristics import summarize_file_changes
from ai_changelog.changelog.markdown import KEEP_A_CHANGELOG_HEADER, ChangelogRenderer, strip_type_prefix
from ai_changelog.changelog.models import CommitAnalysis, ReleaseInsights
from ai_changelog.config.settings import ChangelogSettings
from ai_changelog.git_ops.models import CommitInfo, DiffStats, FileChange, FileStatus
from ai_changelog.utils.response_parser import AISummary


TODAY = date(2024, 5, 1)


def make_analysis(subject: str, body: str = "", summary: str = "", category: str = "chore", index: int = 1, **summary_fields):
    commit = CommitInfo(full_hash=f"{index:07d}" + "a" * 33, subject=subject, body=body)
    return CommitAnalysis(
        commit=commit,
        files=[FileChange(path="src/app.py")],
        stats=DiffStats(files=1, insertions=5),
        conventional=parse_conventional_commit(subject, body),
        summary=AISummary(summary=summary or subject, category=category, **summary_fields),
    )


@pytest.fixture
def analyses():
    return [
        make_analysis("fix(parser): handle empty input", index=3, category="fix"),
        make_analysis("Add CSV exporter", summary="Added CSV exporter", category="feature", index=2),
        make_analysis("feat(api)!: drop v1 endpoints", "BREAKING CHANGE: /v1 routes are gone", index=1, category="feature"),
    ]


class TestRender:

    def test_document_layout(self, analyses):
        markdown = ChangelogRenderer().render(analyses, version="1.2.0", today=TODAY)

        assert markdown.startswith(KEEP_A_CHANGELOG_HEADER)
        assert "## [1.2.0] - 2024-05-01\n" in markdown
        assert markdown.index("### 🚀 Features") < markdown.index("### 🐛 Bug Fixes")
        assert "- **parser**: handle empty input\n" in markdown
        assert "- Added CSV exporter\n" in markdown
        assert markdown.rstrip().endswith("AI-assisted changelog generation for Git repositories*")

    def test_breaking_section(self, analyses):
        markdown = ChangelogRenderer().render(analyses, today=TODAY)

        section = markdown.split("### 🚨 BREAKING CHANGES\n\n", 1)[1]
        assert section.startswith("- **api**: /v1 routes are gone")

    def test_unreleased_heading(self):
        markdown = ChangelogRenderer().render([], today=TODAY)
        assert "## [Unreleased] - 2024-05-01" in markdown

    def test_links(self, analyses):
        renderer = ChangelogRenderer(
            commit_url="https://example.com/c/%commit%",
            commit_range_url="https://example.com/compare/%from%...%to%",
        )

        markdown = renderer.render(analyses, today=TODAY)

        assert "([0000003](https://example.com/c/0000003" in markdown
        assert "(https://example.com/compare/0000001" in markdown

    def test_release_summary(self, analyses):
        insights = ReleaseInsights(total_commits=3, summary="Release 1.2.0 includes 3 commits")

        markdown = ChangelogRenderer().render(analyses, insights, "1.2.0", today=TODAY)

        assert "### 📋 Release Summary\n\nRelease 1.2.0 includes 3 commits\n" in markdown

    def test_entry_details(self):
        analysis = make_analysis(
            "fix: resolve crash (#4)",
            "Closes #4",
            category="fix",
            technical_details="Guarded the parser against a None token stream before iteration",
        )
        renderer = ChangelogRenderer(ChangelogSettings(issue_url="https://example.com/issues/%issue%"))

        entry = renderer.render_entry(analysis)

        assert entry.startswith("- resolve crash ([#4](https://example.com/issues/4))")
        assert "\n  - Guarded the parser" in entry
        assert "\n  - References: [#4](https://example.com/issues/4)" in entry
        assert "\n  - Closes: [#4](https://example.com/issues/4)" in entry

    def test_workspace_section(self, analyses):
        changes = [FileChange(path="src/new.py", status=FileStatus.UNTRACKED)]

        markdown = ChangelogRenderer().render(analyses, workspace_changes=changes, today=TODAY)

        assert "### 🔧 Unreleased Changes\n\n- **src/new.py**: Added new source file to working directory\n" in markdown


class TestGrouping:

    def test_category_fallback_for_plain_commits(self):
        groups = ChangelogRenderer().group_by_type([
            make_analysis("Speed up parsing", category="perf"),
            make_analysis("Tighten input checks", category="security"),
        ])

        assert list(groups) == ["perf", "fix"]

    def test_unknown_types_go_to_other(self):
        groups = ChangelogRenderer().group_by_type([make_analysis("wip: half done")])
        assert list(groups) == ["other"]

    def test_unknown_types_can_be_dropped(self):
        renderer = ChangelogRenderer(ChangelogSettings(include_invalid_commits=False))
        assert renderer.group_by_type([make_analysis("wip: half done")]) == {}

    def test_section_order(self):
        groups = {"chore": [1], "feat": [1], "docs": [1], "custom": [1], "fix": []}
        assert ChangelogRenderer.ordered_types(groups) == ["feat", "docs", "chore", "custom"]

    def test_strip_type_prefix(self):
        assert strip_type_prefix("feat(ui)!: new theme") == "new theme"
        assert strip_type_prefix("Plain title") == "Plain title"


class TestWorkspaceRendering:

    def test_basic_workspace(self):
        changes = [
            FileChange(path="src/app.py", status=FileStatus.MODIFIED),
            FileChange(path="README.md", status=FileStatus.ADDED),
        ]

        markdown = ChangelogRenderer().render_basic_workspace(
            changes, summarize_file_changes(changes), version="0.3.0", today=TODAY
        )

        assert markdown.startswith("# Working Directory Changes - 2024-05-01\n\n## Version 0.3.0\n")
        assert "2 files modified across 2 categories." in markdown
        assert "### 💻 Source (1 files)\n\n- ✏️ src/app.py\n" in markdown
        assert "### 📚 Documentation (1 files)\n\n- ➕ README.md\n" in markdown

    def test_wrap_workspace_ai_adds_header(self):
        wrapped = ChangelogRenderer().wrap_workspace_ai("- (feature) Added exporter", 3, today=TODAY)

        assert wrapped.startswith(KEEP_A_CHANGELOG_HEADER + "## [Unreleased] - 2024-05-01\n\n- (feature)")
        assert wrapped.endswith("*Generated from 3 working directory changes*\n")

    def test_wrap_workspace_ai_keeps_existing_heading(self):
        wrapped = ChangelogRenderer().wrap_workspace_ai("## [Unreleased]\n\n- entry", 1, today=TODAY)

        assert wrapped.startswith("## [Unreleased]")
