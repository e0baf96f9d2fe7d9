"""
Budgeted diff compression for AI prompts.

The processor takes an unordered batch of file changes and returns a
prioritized, size-bounded representation: the most informative files are
shown first, bulk mechanical changes collapse to one-line placeholders,
noise is filtered out and oversized diffs are truncated. Files that do not
fit are folded into a single summary record.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from posixpath import basename
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..git_ops.models import FileChange, FileStatus


# (max_total_size, max_file_count) per analysis mode
MODE_DEFAULTS: Dict[str, Tuple[int, int]] = {
    "standard": (12000, 15),
    "detailed": (20000, 25),
    "enterprise": (30000, 40),
}
DEFAULT_MODE = "standard"
DEFAULT_HIGH_PRIORITY_COUNT = 5

MASS_RENAME_THRESHOLD = 3
FORMATTING_FILE_THRESHOLD = 5
FORMATTING_RATIO_THRESHOLD = 0.8
IMPORT_CHURN_THRESHOLD = 10
MAX_BLANK_RUN = 2

STRUCTURE_MIN_LINES = 20
HEAD_SHARE = 0.4
TAIL_SHARE = 0.3
MIDDLE_SHARE = 0.2
TRUNCATION_RESERVE = 50
NEWLINE_BACKOFF_RATIO = 0.8
TRUNCATION_MARKER = "\n... [truncated]"

SUMMARY_PATH = "[SUMMARY]"
SUMMARY_STATUS = "SUMMARY"

STATUS_RANK = {
    FileStatus.MODIFIED: 0,
    FileStatus.RENAMED: 1,
    FileStatus.ADDED: 2,
    FileStatus.DELETED: 3,
}
OTHER_STATUS_RANK = 4

_IMPORT_RE = re.compile(r"""^(?:import\b|require\s*\(|from\s+['"]|from\s+[\w.]+\s+import\b)""")
_DEBUG_RE = re.compile(r"^console\.(?:log|debug|info)\b")
_PUNCTUATION_RE = re.compile(r"^[\s{}\[\]();,]+$")
_LINT_COMMENT_RE = re.compile(r"^(?://|/\*|#)\s*(?:eslint|prettier|noqa|fmt:)")
_DECLARATION_RE = re.compile(r"^[+-]\s*(?:function|class|const|let|var|export|async)\b")
_LOCKFILE_RE = re.compile(r"(?:^|[-._])lock(?:$|[-._])")


class BulkPatternKind(str, Enum):
    """Batch-level change patterns."""

    MASS_RENAME = "massRename"
    FORMATTING = "formatting"
    DEPENDENCY_UPDATE = "dependencies"


# Order in which a file is matched against detected patterns
PATTERN_MATCH_ORDER = (
    BulkPatternKind.FORMATTING,
    BulkPatternKind.MASS_RENAME,
    BulkPatternKind.DEPENDENCY_UPDATE,
)


@dataclass(frozen=True)
class BulkPattern:
    """A mechanical change spanning several files."""

    kind: BulkPatternKind
    count: int
    description: str
    matching_paths: FrozenSet[str]
    rename_pairs: Tuple[Tuple[Optional[str], str], ...] = ()

    @property
    def placeholder(self) -> str:
        return f"[Bulk {self.kind.value}]: {self.description}"


@dataclass
class ProcessedFile:
    """Prompt-ready representation of one file, or of the remaining files."""

    path: str
    status: str
    diff: str
    is_summary: bool = False
    compression_applied: bool = False
    bulk_pattern: Optional[str] = None
    original_size: Optional[int] = None
    compressed_size: Optional[int] = None
    old_path: Optional[str] = None
    summarized_paths: Tuple[str, ...] = ()


@dataclass
class ProcessingResult:
    """Output of a single ``DiffProcessor.process`` call."""

    processed_files: List[ProcessedFile] = field(default_factory=list)
    total_size: int = 0
    patterns: Dict[BulkPatternKind, BulkPattern] = field(default_factory=dict)
    files_processed_count: int = 0
    files_skipped_count: int = 0

    @property
    def detailed_files(self) -> List[ProcessedFile]:
        return [item for item in self.processed_files if not item.is_summary]

    @property
    def summary(self) -> Optional[ProcessedFile]:
        for item in self.processed_files:
            if item.is_summary:
                return item
        return None


# Line predicates

def is_change_line(line: str) -> bool:
    """An added or removed line, excluding the ``+++``/``---`` file headers."""
    return line.startswith(("+", "-")) and not line.startswith(("+++", "---"))


def change_content(line: str) -> str:
    return line[1:].strip()


def is_whitespace_only_change(line: str) -> bool:
    return is_change_line(line) and not line[1:].strip()


def is_import_change(line: str) -> bool:
    return is_change_line(line) and bool(_IMPORT_RE.match(change_content(line)))


def is_debug_logging_change(line: str) -> bool:
    return is_change_line(line) and bool(_DEBUG_RE.match(change_content(line)))


def is_formatting_content(content: str, all_contents: Sequence[str]) -> bool:
    """Whether a changed line's content looks like pure formatting.

    Import lines count as formatting only when the same import appears on
    another changed line, i.e. the import was moved rather than introduced.
    """
    if not content:
        return True
    if _PUNCTUATION_RE.match(content) or _LINT_COMMENT_RE.match(content):
        return True
    if _IMPORT_RE.match(content):
        return sum(1 for other in all_contents if content in other) > 1
    return False


def is_likely_formatting_change(diff: str) -> bool:
    """More than 80% of the changed lines are formatting."""
    contents = [change_content(line) for line in diff.split("\n") if is_change_line(line)]
    if not contents:
        return False

    formatting = sum(1 for content in contents if is_formatting_content(content, contents))
    return formatting / len(contents) > FORMATTING_RATIO_THRESHOLD


def is_dependency_manifest(path: str) -> bool:
    lowered = path.lower()
    return "package" in lowered or "lock" in lowered


def is_lockfile(path: str) -> bool:
    return bool(_LOCKFILE_RE.search(basename(path).lower()))


def _rooted(path: str) -> str:
    """Lower-cased path with a leading slash so top-level dirs match ``/src/``."""
    return "/" + path.lower().lstrip("/")


def is_test_path(path: str) -> bool:
    rooted = _rooted(path)
    return any(marker in rooted for marker in ("/test/", "/tests/", "/__tests__/", ".test.", ".spec."))


def is_documentation_path(path: str) -> bool:
    rooted = _rooted(path)
    return rooted.endswith(".md") or "/docs/" in rooted


def is_generated_path(path: str) -> bool:
    rooted = _rooted(path)
    return any(marker in rooted for marker in ("/node_modules/", "/dist/", "/build/")) or is_lockfile(path)


def file_importance(path: str) -> int:
    """Path-based importance score, higher sorts first."""
    rooted = _rooted(path)
    score = 0

    if "/src/" in rooted and rooted.endswith((".js", ".ts")):
        score += 100
    if "/api/" in rooted or "/routes/" in rooted:
        score += 60
    if "/domains/" in rooted or "/services/" in rooted:
        score += 50
    if "/components/" in rooted:
        score += 40
    if "/utils/" in rooted or "/shared/" in rooted:
        score += 30
    if "package.json" in rooted or "config" in rooted:
        score += 20
    if is_test_path(path):
        score -= 20
    if is_documentation_path(path):
        score -= 30
    if is_generated_path(path):
        score -= 100

    return score


def summary_category(path: str) -> str:
    rooted = _rooted(path)
    if is_test_path(path):
        return "test"
    if is_documentation_path(path):
        return "documentation"
    if "package" in rooted or "lock" in rooted or "config" in rooted:
        return "configuration"
    if "/build/" in rooted or "/dist/" in rooted:
        return "build"
    return "other"


SUMMARY_CATEGORIES = ("test", "documentation", "configuration", "build", "other")


def file_type_label(path: str) -> str:
    lowered = path.lower()
    if lowered.endswith((".js", ".ts")):
        return "JavaScript/TypeScript file"
    if lowered.endswith(".json"):
        return "JSON configuration"
    if lowered.endswith(".md"):
        return "documentation file"
    if "package" in lowered:
        return "package configuration"
    if "test" in lowered or "spec" in lowered:
        return "test file"
    return "file"


def fallback_description(change: FileChange) -> str:
    """One-line description for a change without diff text."""
    label = change.status.label if isinstance(change.status, FileStatus) else "Changed"
    return f"{label} {file_type_label(change.path)}: {change.path or 'unknown file'}"


def estimate_size(text: Optional[str]) -> int:
    return len(text or "")


# Cleaning and truncation

def _collapse_blank_lines(lines: List[str]) -> List[str]:
    collapsed: List[str] = []
    run = 0
    for line in lines:
        if line.strip():
            run = 0
        else:
            run += 1
            if run > MAX_BLANK_RUN:
                continue
        collapsed.append(line)

    while collapsed and not collapsed[0].strip():
        collapsed.pop(0)
    while collapsed and not collapsed[-1].strip():
        collapsed.pop()
    return collapsed


def clean_diff(diff: str) -> str:
    """Strip low-signal noise from a diff. Applying it twice changes nothing."""
    lines = [line for line in diff.split("\n") if not is_whitespace_only_change(line)]

    import_count = sum(1 for line in lines if is_import_change(line))
    if import_count > IMPORT_CHURN_THRESHOLD:
        lines = [line for line in lines if not is_import_change(line)]

    lines = [line for line in lines if not is_debug_logging_change(line)]
    lines = _collapse_blank_lines(lines)

    if import_count > IMPORT_CHURN_THRESHOLD:
        lines.insert(0, f"[{import_count} import/require changes summarized]")

    return "\n".join(lines)


def truncate_simple(diff: str, budget: int) -> str:
    """Cut near the budget, preferring a line boundary, and mark the cut."""
    if len(diff) <= budget:
        return diff
    if budget <= len(TRUNCATION_MARKER):
        return TRUNCATION_MARKER.strip()

    truncated = diff[:max(budget - TRUNCATION_RESERVE, 0)]
    last_newline = truncated.rfind("\n")
    if last_newline > budget * NEWLINE_BACKOFF_RATIO:
        truncated = truncated[:last_newline]
    return truncated + TRUNCATION_MARKER


def _count_fitting(lines: Iterable[str], char_budget: float) -> int:
    used = 0
    count = 0
    for line in lines:
        used += len(line) + 1
        if used > char_budget:
            break
        count += 1
    return count


def truncate_preserving_structure(diff: str, budget: int) -> str:
    """Keep the head, the tail and the declarations in between.

    Chunks are sized in characters: 40% of the budget for leading lines, 30%
    for trailing lines and up to 20% for declaration lines from the omitted
    middle. The omitted marker follows the head so the final cap to the
    budget trims the tail before it trims the marker.
    """
    if len(diff) <= budget:
        return diff

    lines = diff.split("\n")
    if len(lines) <= STRUCTURE_MIN_LINES:
        return truncate_simple(diff, budget)

    head_count = _count_fitting(lines, budget * HEAD_SHARE)
    rest = lines[head_count:]
    tail_count = _count_fitting(reversed(rest), budget * TAIL_SHARE)
    middle = rest[:len(rest) - tail_count]
    tail = rest[len(rest) - tail_count:]

    declarations = [line for line in middle if _DECLARATION_RE.match(line)]
    important = declarations[:_count_fitting(declarations, budget * MIDDLE_SHARE)]

    omitted = len(middle) - len(important)
    parts = lines[:head_count] + [f"... [{omitted} lines omitted] ..."] + important + tail
    return "\n".join(parts)[:budget]


class DiffProcessor:
    """Fit a batch of file diffs into a bounded prompt budget."""

    def __init__(
        self,
        analysis_mode: str = DEFAULT_MODE,
        max_total_size: Optional[int] = None,
        priority_files: Optional[int] = None,
        enable_filtering: bool = True,
        enable_pattern_detection: bool = True,
        high_priority_count: int = DEFAULT_HIGH_PRIORITY_COUNT,
    ):
        if analysis_mode not in MODE_DEFAULTS:
            logger.debug(f"Unknown analysis mode '{analysis_mode}', using {DEFAULT_MODE}")
            analysis_mode = DEFAULT_MODE

        default_size, default_count = MODE_DEFAULTS[analysis_mode]
        self.analysis_mode = analysis_mode
        self.max_total_size = max_total_size or default_size
        self.max_file_count = priority_files or default_count
        self.enable_filtering = enable_filtering
        self.enable_pattern_detection = enable_pattern_detection
        self.high_priority_count = high_priority_count

    def process(self, files: Optional[Iterable[Any]]) -> ProcessingResult:
        """Prioritize, compress and budget a batch of changes."""
        changes: List[FileChange] = []
        unusable = 0
        for record in files or []:
            if not isinstance(record, (FileChange, Mapping)):
                logger.debug(f"Skipping unusable change record: {record!r}")
                unusable += 1
                continue
            changes.append(FileChange.from_record(record))
        if not changes:
            return ProcessingResult(files_skipped_count=unusable)

        prioritized = self.prioritize(changes)
        patterns = self.detect_patterns(changes) if self.enable_pattern_detection else {}

        processed: List[ProcessedFile] = []
        total_size = 0
        remaining_budget = self.max_total_size
        limit = min(len(prioritized), self.max_file_count)

        for index in range(limit):
            file_budget = remaining_budget // (limit - index)
            item = self.process_file(
                prioritized[index],
                budget=file_budget,
                patterns=patterns,
                high_priority=index < self.high_priority_count,
            )
            if item is None:
                logger.debug(
                    f"Per-file budget of {file_budget} chars cannot hold a diff, "
                    f"summarizing the remaining {len(prioritized) - index} files"
                )
                break
            processed.append(item)

            size = estimate_size(item.diff)
            total_size += size
            remaining_budget -= size
            if remaining_budget <= 0:
                logger.debug(f"Diff budget exhausted after {len(processed)} files")
                break

        detailed_count = len(processed)
        leftover = prioritized[detailed_count:]
        if leftover:
            processed.append(self.summarize_remaining(leftover))

        logger.debug(
            f"Processed {len(changes)} files: {detailed_count} detailed, "
            f"{len(leftover)} summarized, {total_size} chars, patterns={[k.value for k in patterns]}"
        )

        return ProcessingResult(
            processed_files=processed,
            total_size=total_size,
            patterns=patterns,
            files_processed_count=len(processed),
            files_skipped_count=max(0, len(changes) - detailed_count) + unusable,
        )

    def prioritize(self, changes: Sequence[FileChange]) -> List[FileChange]:
        """Status rank, then path importance, then diff size (stable)."""
        return sorted(
            changes,
            key=lambda change: (
                STATUS_RANK.get(change.status, OTHER_STATUS_RANK),
                -file_importance(change.path),
                -len(change.diff),
            ),
        )

    def detect_patterns(self, changes: Sequence[FileChange]) -> Dict[BulkPatternKind, BulkPattern]:
        patterns: Dict[BulkPatternKind, BulkPattern] = {}

        renames = [change for change in changes if change.status == FileStatus.RENAMED]
        if len(renames) >= MASS_RENAME_THRESHOLD:
            patterns[BulkPatternKind.MASS_RENAME] = BulkPattern(
                kind=BulkPatternKind.MASS_RENAME,
                count=len(renames),
                description=f"{len(renames)} files renamed",
                matching_paths=frozenset(change.path for change in renames),
                rename_pairs=tuple((change.old_path, change.path) for change in renames),
            )

        formatting = [change for change in changes if is_likely_formatting_change(change.diff)]
        if len(formatting) >= FORMATTING_FILE_THRESHOLD:
            patterns[BulkPatternKind.FORMATTING] = BulkPattern(
                kind=BulkPatternKind.FORMATTING,
                count=len(formatting),
                description=f"Formatting/linting applied to {len(formatting)} files",
                matching_paths=frozenset(change.path for change in formatting),
            )

        manifests = [change for change in changes if is_dependency_manifest(change.path)]
        if manifests:
            patterns[BulkPatternKind.DEPENDENCY_UPDATE] = BulkPattern(
                kind=BulkPatternKind.DEPENDENCY_UPDATE,
                count=len(manifests),
                description=f"Package/dependency updates in {len(manifests)} files",
                matching_paths=frozenset(change.path for change in manifests),
            )

        return patterns

    def match_pattern(
        self, change: FileChange, patterns: Dict[BulkPatternKind, BulkPattern]
    ) -> Optional[BulkPattern]:
        for kind in PATTERN_MATCH_ORDER:
            pattern = patterns.get(kind)
            if pattern and change.path in pattern.matching_paths:
                return pattern
        return None

    def process_file(
        self,
        change: FileChange,
        budget: int,
        patterns: Optional[Dict[BulkPatternKind, BulkPattern]] = None,
        high_priority: bool = False,
    ) -> Optional[ProcessedFile]:
        """Produce the prompt text for one file within ``budget`` characters.

        Returns None when the diff needs truncating but ``budget`` is too small
        to hold even the truncation marker.
        """
        original = change.diff or ""

        if not original.strip():
            description = fallback_description(change)
            return ProcessedFile(
                path=change.path,
                status=change.status.value,
                diff=description,
                old_path=change.old_path,
                original_size=0,
                compressed_size=len(description),
            )

        pattern = self.match_pattern(change, patterns or {})
        if pattern:
            return ProcessedFile(
                path=change.path,
                status=change.status.value,
                diff=pattern.placeholder,
                compression_applied=True,
                bulk_pattern=pattern.kind.value,
                old_path=change.old_path,
                original_size=len(original),
                compressed_size=len(pattern.placeholder),
            )

        text = clean_diff(original) if self.enable_filtering else original
        if not text:
            text = fallback_description(change)
        if len(text) > budget:
            if budget <= len(TRUNCATION_MARKER):
                return None
            if high_priority:
                text = truncate_preserving_structure(text, budget)
            else:
                text = truncate_simple(text, budget)

        return ProcessedFile(
            path=change.path,
            status=change.status.value,
            diff=text,
            compression_applied=len(text) < len(original),
            old_path=change.old_path,
            original_size=len(original),
            compressed_size=len(text),
        )

    def summarize_remaining(self, remaining: Sequence[FileChange]) -> ProcessedFile:
        """One record describing every file that did not get its own entry."""
        counts = {category: 0 for category in SUMMARY_CATEGORIES}
        for change in remaining:
            counts[summary_category(change.path)] += 1

        parts = [
            f"{count} {category} file{'s' if count != 1 else ''}"
            for category, count in counts.items()
            if count
        ]
        text = f"Additional {len(remaining)} files not analyzed in detail: {', '.join(parts)}"

        return ProcessedFile(
            path=SUMMARY_PATH,
            status=SUMMARY_STATUS,
            diff=text,
            is_summary=True,
            compression_applied=True,
            summarized_paths=tuple(change.path for change in remaining),
        )
