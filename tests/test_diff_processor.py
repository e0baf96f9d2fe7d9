"""
Tests for the budgeted diff processor.
"""

import pytest

from ai_changelog.git_ops.models import FileChange, FileStatus
from ai_changelog.utils.diff_processor import (
    BulkPatternKind,
    DiffProcessor,
    ProcessingResult,
    clean_diff,
    file_importance,
    is_likely_formatting_change,
    truncate_preserving_structure,
    truncate_simple,
)
from tests.conftest import FORMATTING_DIFF, NOISY_DIFF, SMALL_DIFF, long_diff, make_change


def _paths(result: ProcessingResult):
    return [item.path for item in result.detailed_files]


class TestProcessInvariants:
    """Budget, count and accounting guarantees of ``process``."""

    def test_empty_input(self):
        result = DiffProcessor().process([])

        assert result.processed_files == []
        assert result.total_size == 0
        assert result.patterns == {}
        assert result.files_processed_count == 0
        assert result.files_skipped_count == 0

    def test_none_input(self):
        assert DiffProcessor().process(None).files_processed_count == 0

    def test_twenty_files_standard_mode(self):
        files = [make_change(f"src/module{i}.py", diff=f"+value = {i}\n") for i in range(20)]

        result = DiffProcessor(analysis_mode="standard").process(files)

        summaries = [item for item in result.processed_files if item.is_summary]
        assert len(summaries) == 1
        assert result.files_processed_count == 16
        assert result.files_skipped_count == 5
        assert "Additional 5 files not analyzed in detail" in summaries[0].diff

    def test_detailed_size_within_budget(self):
        files = [make_change(f"src/file{i}.js", diff=long_diff(300)) for i in range(10)]
        processor = DiffProcessor(max_total_size=5000)

        result = processor.process(files)

        assert sum(len(item.diff) for item in result.detailed_files) <= 5000
        assert result.total_size <= 5000

    def test_record_count_capped(self):
        files = [make_change(f"lib/f{i}.txt", diff="+x\n") for i in range(50)]

        result = DiffProcessor(analysis_mode="standard").process(files)

        assert len(result.processed_files) <= 15 + 1

    def test_skipped_count_matches_detailed_records(self):
        files = [make_change(f"lib/f{i}.txt", diff="+x\n") for i in range(30)]

        result = DiffProcessor(priority_files=7).process(files)

        assert result.files_skipped_count == max(0, len(files) - len(result.detailed_files))

    def test_every_file_accounted_for(self):
        files = [make_change(f"pkg/f{i}.py", diff=f"+line {i}\n") for i in range(25)]
        files.append(make_change("docs/guide.md", FileStatus.ADDED, "+# Guide\n"))

        result = DiffProcessor(priority_files=10).process(files)

        detailed = _paths(result)
        summarized = list(result.summary.summarized_paths)
        assert sorted(detailed + summarized) == sorted(f.path for f in files)
        assert len(set(detailed) & set(summarized)) == 0

    def test_accepts_loose_records(self):
        records = [
            {"filePath": "src/a.js", "status": "M", "diff": SMALL_DIFF},
            {"path": "notes.txt", "status": "??"},
        ]

        result = DiffProcessor().process(records)

        assert _paths(result) == ["src/a.js", "notes.txt"]
        assert result.detailed_files[1].status == "??"

    def test_unusable_records_skipped(self):
        result = DiffProcessor().process([None])

        assert result.processed_files == []
        assert result.files_processed_count == 0
        assert result.files_skipped_count == 1

    def test_unusable_records_mixed_with_valid(self):
        records = [None, make_change("src/a.js", diff=SMALL_DIFF), 42, {"path": "b.txt", "status": "A"}]

        result = DiffProcessor().process(records)

        assert sorted(_paths(result)) == ["b.txt", "src/a.js"]
        assert result.files_skipped_count == 2
        assert len(result.detailed_files) + result.files_skipped_count == len(records)

    def test_budget_exhausted_before_file_cap(self):
        files = [make_change(f"pkg/module{i}.py") for i in range(10)]

        result = DiffProcessor(max_total_size=100, priority_files=15).process(files)

        detailed = _paths(result)
        summary = result.summary
        assert summary is not None
        assert 0 < len(detailed) < len(files)
        assert result.total_size >= 100
        assert list(summary.summarized_paths) == [f.path for f in files][len(detailed):]
        assert result.files_skipped_count == len(summary.summarized_paths)
        assert result.files_processed_count == len(detailed) + 1

    def test_tiny_budget_summarizes_instead_of_emptying(self):
        files = [make_change(f"src/f{i}.py", diff="+" + "a" * 199) for i in range(10)]

        result = DiffProcessor(max_total_size=5).process(files)

        assert all(item.diff.strip("+") for item in result.detailed_files)
        assert result.summary is not None
        assert result.files_skipped_count + len(result.detailed_files) == len(files)
        assert sorted(_paths(result) + list(result.summary.summarized_paths)) == sorted(f.path for f in files)



class TestPrioritization:

    def test_status_rank_then_importance_then_size(self):
        files = [
            make_change("docs/readme.md", FileStatus.DELETED, "-old\n"),
            make_change("lib/added.py", FileStatus.ADDED, "+new\n"),
            make_change("lib/small.py", FileStatus.MODIFIED, "+a\n"),
            make_change("lib/large.py", FileStatus.MODIFIED, "+a\n+b\n+c\n"),
            make_change("src/api/routes.js", FileStatus.MODIFIED, "+a\n"),
            make_change("old/name.py", FileStatus.RENAMED, "", old_path="new/name.py"),
        ]

        ordered = [change.path for change in DiffProcessor().prioritize(files)]

        assert ordered == [
            "src/api/routes.js",
            "lib/large.py",
            "lib/small.py",
            "old/name.py",
            "lib/added.py",
            "docs/readme.md",
        ]

    @pytest.mark.parametrize("path,expected", [
        ("src/index.ts", 100),
        ("src/api/users.js", 160),
        ("app/services/billing.py", 50),
        ("ui/components/Button.tsx", 40),
        ("shared/helpers.py", 30),
        ("lib/utils/format.py", 30),
        ("config/app.yaml", 20),
        ("tests/test_app.py", -20),
        ("src/app.spec.js", 80),
        ("docs/index.md", -30),
        ("node_modules/left-pad/index.js", -100),
        ("yarn.lock", -100),
    ])
    def test_file_importance(self, path, expected):
        assert file_importance(path) == expected

    def test_test_directory_penalized(self):
        assert file_importance("app/__tests__/helpers.js") == -20


class TestBulkPatterns:

    def test_mass_rename(self):
        files = [
            make_change(f"lib/new_{i}.py", FileStatus.RENAMED, f"+x{i}\n", old_path=f"lib/old_{i}.py")
            for i in range(3)
        ]

        result = DiffProcessor().process(files)

        pattern = result.patterns[BulkPatternKind.MASS_RENAME]
        assert pattern.count == 3
        assert ("lib/old_0.py", "lib/new_0.py") in pattern.rename_pairs
        assert all(item.diff.startswith("[Bulk massRename]:") for item in result.detailed_files)

    def test_two_renames_are_not_a_pattern(self):
        files = [make_change(f"a{i}.py", FileStatus.RENAMED, "+x\n") for i in range(2)]

        assert BulkPatternKind.MASS_RENAME not in DiffProcessor().process(files).patterns

    def test_formatting_needs_five_files(self):
        four = [make_change(f"src/m{i}.js", diff=FORMATTING_DIFF) for i in range(4)]
        five = four + [make_change("src/m4.js", diff=FORMATTING_DIFF)]

        assert BulkPatternKind.FORMATTING not in DiffProcessor().detect_patterns(four)
        pattern = DiffProcessor().detect_patterns(five)[BulkPatternKind.FORMATTING]
        assert pattern.count == 5

    def test_single_dependency_manifest(self):
        files = [make_change("package.json", diff='+  "lodash": "^4.17.21"\n'), make_change("src/a.js", diff=SMALL_DIFF)]

        result = DiffProcessor().process(files)

        assert result.patterns[BulkPatternKind.DEPENDENCY_UPDATE].count == 1
        manifest = next(item for item in result.detailed_files if item.path == "package.json")
        assert manifest.bulk_pattern == "dependencies"
        assert manifest.compression_applied

    def test_package_directory_counts_as_dependency_update(self):
        files = [make_change("packages/core/index.js", diff="+x = 1\n")]

        result = DiffProcessor().process(files)

        pattern = result.patterns[BulkPatternKind.DEPENDENCY_UPDATE]
        assert "packages/core/index.js" in pattern.matching_paths
        assert result.detailed_files[0].bulk_pattern == "dependencies"


    def test_detection_can_be_disabled(self):
        files = [make_change("package-lock.json", diff="+x\n")]

        result = DiffProcessor(enable_pattern_detection=False).process(files)

        assert result.patterns == {}
        assert result.detailed_files[0].diff == "+x"

    def test_formatting_predicate(self):
        assert is_likely_formatting_change(FORMATTING_DIFF)
        assert not is_likely_formatting_change(SMALL_DIFF)
        assert not is_likely_formatting_change("")


class TestCleaning:

    def test_removes_noise(self):
        cleaned = clean_diff(NOISY_DIFF)

        assert "console.log" not in cleaned
        assert "+const total = items.reduce(sum, 0);" in cleaned
        assert "\n+\n" not in cleaned
        assert "\n\n\n\n" not in cleaned

    def test_idempotent(self):
        once = clean_diff(NOISY_DIFF)
        assert clean_diff(once) == once

    def test_import_churn_summarized(self):
        imports = "\n".join(f"+import module{i} from './module{i}';" for i in range(12))
        diff = f"{imports}\n+const answer = 42;"

        cleaned = clean_diff(diff)

        assert cleaned.startswith("[12 import/require changes summarized]")
        assert "import module" not in cleaned
        assert "+const answer = 42;" in cleaned
        assert clean_diff(cleaned) == cleaned

    def test_few_imports_kept(self):
        diff = "+import os\n+import sys\n+print(os.getcwd())"
        assert clean_diff(diff) == diff

    def test_filtering_can_be_disabled(self):
        result = DiffProcessor(enable_filtering=False).process([make_change("src/app.js", diff=NOISY_DIFF)])

        assert "console.log" in result.detailed_files[0].diff


class TestTruncation:

    def test_high_priority_keeps_structure(self):
        diff = long_diff(400)
        lines = diff.split("\n")
        lines[200] = "+export function importantHandler() {"
        diff = "\n".join(lines)

        result = DiffProcessor(max_total_size=3000).process([make_change("src/app.js", diff=diff)])

        text = result.detailed_files[0].diff
        assert "omitted" in text
        assert len(text) <= 3000
        assert result.detailed_files[0].compression_applied

    def test_simple_truncation_for_later_files(self):
        files = [make_change(f"lib/f{i}.py", diff=long_diff(200)) for i in range(7)]

        result = DiffProcessor(max_total_size=7000, high_priority_count=5).process(files)

        sixth = result.detailed_files[5]
        assert sixth.diff.endswith("... [truncated]")
        assert "omitted" not in sixth.diff

    def test_truncate_simple_backs_up_to_newline(self):
        diff = "\n".join(f"line number {i:04d}" for i in range(100))

        truncated = truncate_simple(diff, 400)

        assert truncated.endswith("\n... [truncated]")
        assert truncated[:-len("\n... [truncated]")].split("\n")[-1] == "line number 0019"
        assert len(truncated) <= 400

    def test_short_diffs_untouched(self):
        assert truncate_simple("short", 100) == "short"

    def test_truncate_simple_tiny_budget_keeps_marker(self):
        assert truncate_simple("+" + "a" * 199, 1) == "... [truncated]"

        assert truncate_preserving_structure("short", 100) == "short"

    def test_structure_falls_back_for_few_lines(self):
        diff = "x" * 500
        assert truncate_preserving_structure(diff, 200).endswith("... [truncated]")


class TestFallbackDescriptions:

    def test_deleted_without_diff(self):
        result = DiffProcessor().process([make_change("src/legacy.js", FileStatus.DELETED)])

        text = result.detailed_files[0].diff
        assert "Deleted" in text
        assert "src/legacy.js" in text

    def test_binary_added_file(self):
        result = DiffProcessor().process([make_change("assets/logo.png", FileStatus.ADDED)])

        assert result.detailed_files[0].diff == "Added file: assets/logo.png"

    def test_summary_breakdown(self):
        files = [make_change("src/api/core.js", diff="+x\n")]
        files += [make_change(f"tests/test_{i}.py", diff="+t\n") for i in range(3)]
        files += [make_change("docs/a.md", diff="+d\n"), make_change("config/app.yaml", diff="+c\n")]

        result = DiffProcessor(priority_files=1).process(files)

        assert result.summary.diff == (
            "Additional 5 files not analyzed in detail: "
            "3 test files, 1 documentation file, 1 configuration file"
        )


class TestModes:

    @pytest.mark.parametrize("mode,size,count", [
        ("standard", 12000, 15),
        ("detailed", 20000, 25),
        ("enterprise", 30000, 40),
    ])
    def test_mode_defaults(self, mode, size, count):
        processor = DiffProcessor(analysis_mode=mode)
        assert processor.max_total_size == size
        assert processor.max_file_count == count

    def test_overrides(self):
        processor = DiffProcessor(analysis_mode="detailed", max_total_size=1000, priority_files=3)
        assert (processor.max_total_size, processor.max_file_count) == (1000, 3)

    def test_unknown_mode_uses_standard(self):
        assert DiffProcessor(analysis_mode="verbose").analysis_mode == "standard"

    def test_input_not_mutated(self):
        change = FileChange(path="src/app.js", diff=NOISY_DIFF)

        DiffProcessor().process([change])

        assert change.diff == NOISY_DIFF
