"""
Tests for prompt construction and response budgets.
"""

import pytest

from ai_changelog.config.settings import AnalysisSettings
from ai_changelog.git_ops.models import CommitInfo, DiffStats, FileStatus
from ai_changelog.utils.prompts import MASTER_SYSTEM_PROMPT, WORKSPACE_SYSTEM_PROMPT, PromptBuilder
from tests.conftest import SMALL_DIFF, make_change


def merge_commit():
    return CommitInfo(full_hash="f" * 40, subject="Merge pull request #7 from acme/feature")


class TestBudgets:

    def test_processor_uses_settings(self):
        builder = PromptBuilder(AnalysisSettings(mode="detailed", max_total_size=5000))

        processor = builder.make_processor()

        assert processor.analysis_mode == "detailed"
        assert processor.max_total_size == 5000
        assert processor.max_file_count == 25

    def test_processor_mode_override(self):
        assert PromptBuilder().make_processor("enterprise").max_total_size == 30000

    @pytest.mark.parametrize("mode, files, lines, expected", [
        ("standard", 1, 10, 2000),
        ("detailed", 1, 10, 3000),
        ("enterprise", 1, 10, 4000),
        ("standard", 51, 10, 4000),
        ("enterprise", 1, 10001, 6000),
    ])
    def test_max_tokens(self, mode, files, lines, expected):
        assert PromptBuilder().max_tokens(mode, files, lines) == expected

    def test_workspace_max_tokens(self):
        builder = PromptBuilder()
        assert builder.workspace_max_tokens() == 1200
        assert builder.workspace_max_tokens("enterprise") == 2500


class TestEffectiveMode:

    def test_large_merge_upgrades_standard(self):
        files = [make_change(f"src/m{i}.py") for i in range(11)]
        assert PromptBuilder().effective_mode(merge_commit(), files) == "detailed"

    def test_small_merge_keeps_mode(self):
        files = [make_change(f"src/m{i}.py") for i in range(10)]
        assert PromptBuilder().effective_mode(merge_commit(), files) == "standard"

    def test_enterprise_is_never_downgraded(self):
        files = [make_change(f"src/m{i}.py") for i in range(30)]
        builder = PromptBuilder(AnalysisSettings(mode="enterprise"))
        assert builder.effective_mode(merge_commit(), files) == "enterprise"


class TestPrompts:

    def test_system_prompt_per_mode(self):
        builder = PromptBuilder()

        assert builder.system_prompt().startswith(MASTER_SYSTEM_PROMPT)
        assert "enterprise-grade" in builder.system_prompt("enterprise")
        assert builder.workspace_system_prompt() == WORKSPACE_SYSTEM_PROMPT

    def test_commit_prompt(self):
        commit = CommitInfo(full_hash="a" * 40, subject="feat(api): add user listing endpoint")
        files = [make_change("src/api/users.js", diff=SMALL_DIFF, lines_added=3)]

        prompt = PromptBuilder().build_commit_prompt(commit, files, DiffStats(files=1, insertions=3))

        assert "**COMMIT:** feat(api): add user listing endpoint\n" in prompt
        assert "**FILES:** 1 files (1 analyzed, 0 summarized), 3 lines changed" in prompt
        assert "**src/api/users.js** (M)" in prompt
        assert "+function listUsers(req, res) {" in prompt
        assert '"summary": "feat(api): add user listing endpoint"' in prompt
        assert "MERGE COMMIT" not in prompt

    def test_merge_prompt_note(self):
        prompt = PromptBuilder().build_commit_prompt(merge_commit(), [make_change("src/a.py", diff="+x")])
        assert '(MERGE COMMIT - categorize as "merge")' in prompt

    def test_workspace_prompt(self):
        builder = PromptBuilder()
        changes = [make_change("notes.txt", FileStatus.UNTRACKED, diff="New file created with 1 lines\n\nContent preview:\nhello")]
        result = builder.make_processor().process(changes)

        prompt = builder.build_workspace_prompt(result, 1, ["other"], "detailed")

        assert "**Analysis Mode**: detailed" in prompt
        assert "**Categories**: other" in prompt
        assert "**notes.txt** (??)" in prompt
