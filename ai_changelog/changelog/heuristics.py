"""
Rule-based change analysis used when no AI provider is available.

Everything here is pure string inspection: file paths are categorized by
name and extension, and diffs or content previews are scanned for
declarations, imports and other recognizable constructs.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..git_ops.models import CommitInfo, DiffStats, FileChange, FileStatus
from ..utils.response_parser import AISummary, category_from_text, validate_category, validate_impact
from .conventional import parse_conventional_commit


SOURCE_EXTENSIONS = ("js", "ts", "jsx", "tsx", "py", "java", "cpp", "c", "cs", "go", "rs", "php")
FRONTEND_EXTENSIONS = ("html", "css", "scss", "sass", "less", "vue", "svelte")
ASSET_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "svg", "ico", "webp")

LANGUAGES = {
    "js": "JavaScript", "jsx": "JavaScript", "ts": "TypeScript", "tsx": "TypeScript",
    "py": "Python", "java": "Java", "cpp": "C++", "c": "C", "cs": "C#", "go": "Go",
    "rs": "Rust", "php": "PHP", "rb": "Ruby", "swift": "Swift", "kt": "Kotlin",
    "scala": "Scala", "html": "HTML", "css": "CSS", "scss": "SCSS", "sass": "Sass",
    "vue": "Vue", "svelte": "Svelte", "json": "JSON", "xml": "XML", "yaml": "YAML",
    "yml": "YAML", "toml": "TOML", "md": "Markdown", "sql": "SQL",
}

CRITICAL_FILES = ("package.json", "pom.xml", "cargo.toml", "requirements.txt", "pyproject.toml", "dockerfile", "docker-compose")
ENTRY_POINT_NAMES = ("index.", "main.", "app.", "server.", "__main__.", "cli.")

DIRECTORY_DESCRIPTIONS = {
    ".github": "Added GitHub configuration directory for workflows, templates, and repository settings",
    "docs": "Added documentation directory for project documentation",
    "test": "Added test directory for unit tests and test files",
    "tests": "Added test directory for unit tests and test files",
    "src": "Added source code directory for main application code",
    "lib": "Added library directory for shared code and utilities",
    "bin": "Added binary directory for executable scripts",
    "config": "Added configuration directory for application settings",
    "server": "Added server directory for server-side code and configuration",
    "scripts": "Added scripts directory for automation and tooling",
}

# Working-directory status to changelog entry type
STATUS_ENTRY_TYPES = {
    FileStatus.UNTRACKED: "feature",
    FileStatus.ADDED: "feature",
    FileStatus.MODIFIED: "update",
    FileStatus.DELETED: "remove",
    FileStatus.RENAMED: "refactor",
}

# Conventional commit type to analysis category
TYPE_CATEGORIES = {
    "feat": "feature", "fix": "fix", "docs": "docs", "style": "style",
    "refactor": "refactor", "perf": "perf", "test": "test", "build": "chore",
    "ci": "chore", "chore": "chore", "revert": "chore", "security": "security",
}

IMPORTANCE_ORDER = ("low", "medium", "high", "critical")
MAX_DETAIL_ITEMS = 3
MAX_TECHNICAL_FILES = 3

_PREVIEW_RE = re.compile(r"(?:Content preview|New file created with content):\n(.*?)(?:\n\.\.\. \(truncated\)|\n\.\.\.\Z|\Z)", re.DOTALL)
_JS_FUNCTION_RE = re.compile(r"function\s+\w+|const\s+\w+\s*=\s*\(|=>\s*{")
_JS_IMPORT_RE = re.compile(r"import\s+.*?from|require\s*\(")
_CLASS_RE = re.compile(r"class\s+\w+")
_EXPORT_RE = re.compile(r"export\s+")
_CONSOLE_RE = re.compile(r"console\.(?:log|error|warn|info)")
_PY_FUNCTION_RE = re.compile(r"^\s*(?:async\s+)?def\s+\w+", re.MULTILINE)
_PY_CLASS_RE = re.compile(r"^\s*class\s+\w+", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^\s*(?:import\s+\w|from\s+[\w.]+\s+import\b)", re.MULTILINE)
_PY_DECORATOR_RE = re.compile(r"^\s*@\w+", re.MULTILINE)
_MODIFIED_FUNCTION_RE = re.compile(r"function\s+\w+|const\s+\w+\s*=\s*\(|^\s*(?:async\s+)?def\s+\w+", re.MULTILINE)
_METHOD_RE = re.compile(r"\s+\w+\s*\([^)]*\)\s*{")
_FUNCTION_NAME_RES = (
    re.compile(r"function\s+(\w+)"),
    re.compile(r"def\s+(\w+)"),
    re.compile(r"const\s+(\w+)\s*=\s*\("),
    re.compile(r"(\w+)\s*\("),
)
_CALL_KEYWORDS = {"if", "for", "while", "switch", "catch", "return", "function", "def", "print", "super", "elif", "with"}


@dataclass
class ChangesSummary:
    """Aggregate view of a set of file changes."""

    summary: str
    stats: Dict[str, int] = field(default_factory=lambda: {"added": 0, "modified": 0, "deleted": 0, "renamed": 0})
    categories: Dict[str, List[FileChange]] = field(default_factory=dict)
    languages: List[str] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return sum(len(files) for files in self.categories.values())


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def _plural(count: int, word: str, suffix: str = "s") -> str:
    return f"{count} {word}{suffix if count != 1 else ''}"


def categorize_file(path: Optional[str]) -> str:
    """Broad area a file belongs to."""
    if not path:
        return "other"
    lowered = path.lower()
    ext = _extension(lowered)

    if (
        "package.json" in lowered or "yarn.lock" in lowered or "pnpm-lock" in lowered
        or ".gitignore" in lowered or ext in ("toml", "yaml", "yml", "ini", "cfg")
        or "dockerfile" in lowered or ".env" in lowered
    ):
        return "configuration"

    if (
        ext in ("md", "txt", "rst") or "readme" in lowered or "changelog" in lowered
        or "/docs/" in f"/{lowered}" or "/doc/" in f"/{lowered}"
    ):
        return "documentation"

    rooted = f"/{lowered}"
    if (
        "/test/" in rooted or "/tests/" in rooted or "__tests__" in lowered
        or ".test." in lowered or ".spec." in lowered
        or lowered.rsplit("/", 1)[-1].startswith("test_")
    ):
        return "tests"

    if ext in SOURCE_EXTENSIONS:
        return "source"
    if ext in FRONTEND_EXTENSIONS:
        return "frontend"
    if ext in ASSET_EXTENSIONS:
        return "assets"

    if any(tool in lowered for tool in ("webpack", "rollup", "vite", "babel", "eslint", "prettier", "makefile")) or (
        "/build/" in rooted or "/dist/" in rooted
    ):
        return "build"

    return "other"


def detect_language(path: Optional[str]) -> str:
    if not path:
        return "Unknown"
    return LANGUAGES.get(_extension(path), "Unknown")


def assess_file_importance(path: Optional[str], status: Optional[FileStatus] = None) -> str:
    """``critical``, ``high``, ``medium`` or ``low``."""
    if not path:
        return "medium"
    lowered = path.lower()

    if any(name in lowered for name in CRITICAL_FILES):
        return "critical"

    rooted = f"/{lowered}"
    if "/src/" in rooted or "/lib/" in rooted:
        name = lowered.rsplit("/", 1)[-1]
        if name.startswith(ENTRY_POINT_NAMES):
            return "critical"
        return "high"

    category = categorize_file(path)
    if category == "configuration":
        return "high"
    if category == "tests":
        return "medium"
    if category == "documentation":
        return "low"
    if status == FileStatus.DELETED:
        return "high"
    return "medium"


def summarize_file_changes(changes: Sequence[FileChange]) -> ChangesSummary:
    """Counts by status, files grouped by category and the languages involved."""
    if not changes:
        return ChangesSummary(summary="No file changes detected")

    result = ChangesSummary(summary="")
    status_keys = {
        FileStatus.ADDED: "added",
        FileStatus.UNTRACKED: "added",
        FileStatus.MODIFIED: "modified",
        FileStatus.DELETED: "deleted",
        FileStatus.RENAMED: "renamed",
    }

    for change in changes:
        result.stats[status_keys[change.status]] += 1
        result.categories.setdefault(categorize_file(change.path), []).append(change)
        language = detect_language(change.path)
        if language not in result.languages:
            result.languages.append(language)

    parts = [f"{count} {key}" for key, count in result.stats.items() if count]
    summary = f"{len(changes)} files changed: {', '.join(parts)}"
    if result.categories:
        summary += f". Affected areas: {', '.join(result.categories)}"
    result.summary = summary

    return result


# New file content

def extract_content_preview(diff: str) -> Optional[str]:
    """Text of a new file from a content preview or the added lines of a patch."""
    if not diff:
        return None

    match = _PREVIEW_RE.search(diff)
    if match:
        return match.group(1) or None

    if "--- /dev/null" in diff:
        lines = [
            line[1:] for line in diff.split("\n")
            if line.startswith("+") and not line.startswith("+++")
        ]
        return "\n".join(lines) or None

    return None


def analyze_new_file_content(diff: str, path: str) -> Optional[str]:
    """Describe a new file from its content preview."""
    content = extract_content_preview(diff)
    if content is None:
        return None

    filename = path.rsplit("/", 1)[-1] if path else "file"

    if path.endswith(".md"):
        return analyze_markdown_content(content, filename)
    if path.endswith((".js", ".ts")):
        return analyze_javascript_content(content, filename)
    if path.endswith(".py"):
        return analyze_python_content(content, filename)
    if path.endswith(".json"):
        return analyze_json_content(content, filename)
    if path.startswith("."):
        return analyze_config_content(content, filename)

    line_count = len(content.split("\n"))
    return f"Added new file containing {line_count} lines of content"


def analyze_markdown_content(content: str, filename: str) -> str:
    lines = content.split("\n")
    headings = sum(1 for line in lines if line.startswith("#"))
    code_blocks = content.count("```") // 2
    links = len(re.findall(r"\[.*?\]\(.*?\)", content))
    table_rows = len(re.findall(r"\|.*\|", content))
    lowered = content.lower()

    key_content = []
    if "readme" in filename.lower():
        document_type = "project documentation"
        if "install" in lowered:
            key_content.append("installation guide")
        if "setup" in lowered:
            key_content.append("setup instructions")
    elif "changelog" in filename.lower():
        document_type = "changelog documentation"
        versions = len(re.findall(r"##?\s+\[?\d+\.\d+", content))
        if versions:
            key_content.append(f"{versions} version {'entry' if versions == 1 else 'entries'}")
    elif "env" in filename.lower():
        document_type = "environment variable configuration guide"
        variables = len(re.findall(r"[A-Z_]+=", content))
        if variables:
            key_content.append(_plural(variables, "environment variable"))
    else:
        document_type = "documentation"

    details = list(key_content)
    if headings:
        details.append(_plural(headings, "section"))
    if code_blocks:
        details.append(_plural(code_blocks, "code example"))
    if table_rows:
        details.append(_plural(table_rows, "table row"))
    if links:
        details.append(_plural(links, "link"))

    analysis = f"Added {filename} {document_type}"
    if details:
        analysis += f" containing {', '.join(details[:MAX_DETAIL_ITEMS])}"
    return analysis


def _feature_counts(**counts: int) -> List[str]:
    plurals = {"class": "classes"}
    features = []
    for word, count in counts.items():
        if count:
            features.append(f"{count} {word if count == 1 else plurals.get(word, word + 's')}")
    return features


def analyze_javascript_content(content: str, filename: str) -> str:
    lowered = content.lower()
    if "test" in lowered or "spec" in lowered:
        purpose = "test file"
    elif "server" in lowered:
        purpose = "server entry point"
    elif "setup" in lowered or "config" in lowered:
        purpose = "setup/configuration script"
    elif "util" in filename:
        purpose = "utility module"
    else:
        purpose = "JavaScript module"

    analysis = f"Added {filename.rsplit('.', 1)[0]} {purpose}"
    if len(_CONSOLE_RE.findall(content)) > 3:
        analysis += " for detailed logging"

    features = _feature_counts(
        **{
            "class": len(_CLASS_RE.findall(content)),
            "function": len(_JS_FUNCTION_RE.findall(content)),
            "import": len(_JS_IMPORT_RE.findall(content)),
            "export": len(_EXPORT_RE.findall(content)),
        }
    )
    if features:
        analysis += f" with {', '.join(features[:MAX_DETAIL_ITEMS])}"
    return analysis


def analyze_python_content(content: str, filename: str) -> str:
    stem = filename.rsplit(".", 1)[0]
    if stem.startswith("test_") or stem.endswith("_test") or stem == "conftest":
        purpose = "test module"
    elif stem == "__init__":
        purpose = "package initializer"
    elif stem in ("cli", "__main__", "main"):
        purpose = "command-line entry point"
    elif "util" in stem or "helper" in stem:
        purpose = "utility module"
    else:
        purpose = "Python module"

    analysis = f"Added {stem} {purpose}"
    features = _feature_counts(
        **{
            "class": len(_PY_CLASS_RE.findall(content)),
            "function": len(_PY_FUNCTION_RE.findall(content)),
            "import": len(_PY_IMPORT_RE.findall(content)),
            "decorator": len(_PY_DECORATOR_RE.findall(content)),
        }
    )
    if features:
        analysis += f" with {', '.join(features[:MAX_DETAIL_ITEMS])}"
    return analysis


def analyze_json_content(content: str, filename: str) -> str:
    try:
        parsed = json.loads(content)
    except ValueError:
        return f"Added {filename} JSON configuration file"
    if not isinstance(parsed, dict):
        return f"Added {filename} JSON data file"

    if filename == "package.json":
        deps = len(parsed.get("dependencies") or {})
        dev_deps = len(parsed.get("devDependencies") or {})
        scripts = len(parsed.get("scripts") or {})
        return f"Added package.json with {deps} dependencies, {dev_deps} dev dependencies, and {scripts} scripts"

    if filename == "manifest.json":
        return f"Added manifest.json configuration for {parsed.get('name') or 'application'} with {len(parsed)} properties"

    return f"Added {filename} configuration with {len(parsed)} settings"


def analyze_config_content(content: str, filename: str) -> str:
    lines = [line for line in content.split("\n") if line.strip()]

    if "env" in filename:
        variables = sum(1 for line in lines if "=" in line)
        return f"Added environment configuration with {variables} variables"

    if "ignore" in filename:
        patterns = sum(1 for line in lines if not line.startswith("#"))
        return f"Added ignore file with {patterns} patterns"

    return f"Added {filename} configuration with {len(lines)} lines"


def analyze_directory_addition(path: str) -> str:
    name = path.rstrip("/")
    if name in DIRECTORY_DESCRIPTIONS:
        return DIRECTORY_DESCRIPTIONS[name]
    if "test" in name:
        return f"Added {name} directory for testing and test results"
    if name.startswith("."):
        return f"Added {name} configuration directory"
    return f"Added {name} directory"


# Modified file content

def _diff_sides(diff: str):
    lines = diff.split("\n")
    added = [line[1:] for line in lines if line.startswith("+") and not line.startswith("+++")]
    removed = [line[1:] for line in lines if line.startswith("-") and not line.startswith("---")]
    return added, removed


def analyze_modified_file_changes(diff: str, path: str) -> Optional[str]:
    """Short list of structural changes in a modified file, or None."""
    added_lines, removed_lines = _diff_sides(diff or "")
    added = "\n".join(added_lines)
    removed = "\n".join(removed_lines)
    changes = []

    for verb, text in (("added", added), ("removed", removed)):
        count = len(_MODIFIED_FUNCTION_RE.findall(text))
        if count:
            changes.append(f"{verb} {_plural(count, 'function')}")
    for verb, text in (("added", added), ("removed", removed)):
        count = len(_JS_IMPORT_RE.findall(text)) + len(_PY_IMPORT_RE.findall(text))
        if count:
            changes.append(f"{verb} {_plural(count, 'import')}")
    for verb, text in (("added", added), ("removed", removed)):
        count = len(_CLASS_RE.findall(text))
        if count:
            changes.append(f"{verb} {count} class{'es' if count != 1 else ''}")
    for verb, text in (("added", added), ("removed", removed)):
        count = len(_METHOD_RE.findall(text))
        if count:
            changes.append(f"{verb} {_plural(count, 'method')}")

    if "try" in added or "catch" in added or "except" in added:
        changes.append("enhanced error handling")

    if path and "package.json" in path:
        if '"dependencies"' in added:
            changes.append("updated dependencies")
        if '"scripts"' in added:
            changes.append("modified scripts")

    if not changes:
        return None
    changes[0] = changes[0][0].upper() + changes[0][1:]
    return ", ".join(changes[:MAX_DETAIL_ITEMS])


def extract_functions(content: str) -> List[str]:
    """Up to three function names declared or called in ``content``."""
    names: List[str] = []
    for pattern in _FUNCTION_NAME_RES:
        for name in pattern.findall(content):
            if name not in names and name not in _CALL_KEYWORDS:
                names.append(name)
    return names[:3]


def analyze_diff_content(diff: str, path: str) -> str:
    """``+A, -R lines`` followed by up to three recognizable changes."""
    added_lines, removed_lines = _diff_sides(diff or "")
    added = " ".join(line.strip() for line in added_lines)
    removed = " ".join(line.strip() for line in removed_lines)
    changes = []

    added_functions = extract_functions(added)
    removed_functions = extract_functions(removed)
    if added_functions:
        changes.append(f"added {', '.join(added_functions[:2])}")
    if removed_functions:
        changes.append(f"removed {', '.join(removed_functions[:2])}")

    if path and "package.json" in path:
        if '"dependencies"' in added or '"devDependencies"' in added:
            changes.append("updated dependencies")
        if '"scripts"' in added:
            changes.append("updated scripts")
        if '"name"' in added or '"version"' in added:
            changes.append("updated metadata")

    if "import" in added or "require(" in added:
        changes.append("added imports")
    if "import" in removed or "require(" in removed:
        changes.append("removed imports")
    if "export" in added:
        changes.append("added exports")
    if "const " in added or "let " in added or "var " in added:
        changes.append("added variables")
    if "try" in added or "catch" in added or "throw" in added or "raise" in added:
        changes.append("enhanced error handling")

    summary = f"+{len(added_lines)}, -{len(removed_lines)} lines"
    if changes:
        summary += f": {', '.join(changes[:MAX_DETAIL_ITEMS])}"
    return summary


# Descriptions and entries

def generate_change_description(change: FileChange) -> str:
    """One-line description of a single file change."""
    category = categorize_file(change.path)
    diff = change.diff or ""

    if change.status == FileStatus.DELETED:
        return f"Removed {category} file from working directory"

    if change.is_new:
        if change.path.endswith("/") or diff.startswith("New directory:"):
            return analyze_directory_addition(change.path)
        analysis = analyze_new_file_content(diff, change.path)
        if analysis:
            return analysis
        return f"Added new {category} file to working directory"

    if change.status == FileStatus.MODIFIED:
        analysis = analyze_modified_file_changes(diff, change.path)
        if analysis:
            return f"Modified {category} file - {analysis}"
        added, removed = _diff_sides(diff)
        return f"Modified {category} file with {len(added)} additions and {len(removed)} deletions"

    if change.status == FileStatus.RENAMED:
        return f"Renamed {category} file in working directory"

    return f"Updated {category} file in working directory"


def generate_change_entry(change: FileChange) -> str:
    """``- (type) path - description`` line for a working-directory change."""
    entry_type = STATUS_ENTRY_TYPES.get(change.status, "other")
    return f"- ({entry_type}) {change.path} - {generate_change_description(change)}"


def _max_importance(files: Sequence[FileChange]) -> str:
    if not files:
        return "medium"
    return max(
        (assess_file_importance(f.path, f.status) for f in files),
        key=IMPORTANCE_ORDER.index,
    )


def rule_based_summary(
    commit: CommitInfo,
    files: Sequence[FileChange],
    stats: Optional[DiffStats] = None,
) -> AISummary:
    """Analyze a commit from its message and file list alone."""
    stats = stats or DiffStats(files=len(files))
    conventional = parse_conventional_commit(commit.subject, commit.body)
    changes = summarize_file_changes(files)

    if conventional.type and conventional.type.lower() in TYPE_CATEGORIES:
        category = TYPE_CATEGORIES[conventional.type.lower()]
    else:
        category = category_from_text(commit.subject)
    category = validate_category(category, commit, files, stats)

    if conventional.breaking:
        impact = "high"
    elif len(files) > 20 or stats.total_lines > 1000:
        impact = "high"
    elif len(files) > 5 or stats.total_lines > 200 or _max_importance(files) == "critical":
        impact = "medium"
    else:
        impact = "low"
    impact = validate_impact(impact, commit, files, stats)

    ranked = sorted(files, key=lambda f: IMPORTANCE_ORDER.index(assess_file_importance(f.path, f.status)), reverse=True)
    details = [
        f"{f.path}: {generate_change_description(f)}" for f in ranked[:MAX_TECHNICAL_FILES]
    ]

    return AISummary(
        summary=commit.subject or "Unknown change",
        impact=impact,
        category=category,
        description=conventional.description if conventional.is_conventional else changes.summary,
        technical_details="; ".join(details),
        business_value="",
        risk_factors=["Breaking change"] if conventional.breaking else [],
        recommendations=[],
        breaking_changes=conventional.breaking,
        migration_required=bool(conventional.breaking_changes),
        source="rules",
    )
