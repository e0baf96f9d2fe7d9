"""
Extraction of structured commit analyses from AI responses.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ..git_ops.models import CommitInfo, DiffStats, FileChange


CATEGORIES = ("feature", "fix", "security", "breaking", "docs", "style", "refactor", "perf", "test", "chore", "merge")
IMPACTS = ("critical", "high", "medium", "low", "minimal")

CATEGORY_ALIASES = {
    "feat": "feature",
    "features": "feature",
    "bugfix": "fix",
    "documentation": "docs",
    "doc": "docs",
    "tests": "test",
    "performance": "perf",
    "build": "chore",
    "ci": "chore",
}

TEXT_DESCRIPTION_LIMIT = 200
NEW_MODULE_EXTENSIONS = (".js", ".ts", ".py")


@dataclass
class AISummary:
    """Structured analysis of one commit."""

    summary: str
    impact: str = "low"
    category: str = "chore"
    description: str = ""
    technical_details: str = ""
    business_value: str = ""
    risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    breaking_changes: bool = False
    migration_required: bool = False
    source: str = "ai"


class ResponseParser:
    """Turn raw provider output into an ``AISummary``."""

    def parse(
        self,
        content: Optional[str],
        commit: CommitInfo,
        files: Sequence[FileChange] = (),
        stats: Optional[DiffStats] = None,
    ) -> Optional[AISummary]:
        """Parse a response; ``None`` when there is nothing usable."""
        if not content or not content.strip():
            logger.warning("Empty AI response")
            return None

        stats = stats or DiffStats(files=len(files))
        cleaned = clean_response(content)
        if not cleaned:
            logger.warning("Empty AI response after cleaning")
            return None

        data = extract_json_object(cleaned)
        if data is not None:
            logger.debug(f"Extracted JSON analysis for {commit.hash}")
            return self._from_json(data, commit, files, stats)

        logger.debug(f"No JSON in response for {commit.hash}, using text parsing")
        return self._from_text(cleaned, commit, files, stats)

    def _from_json(
        self, data: Dict[str, Any], commit: CommitInfo, files: Sequence[FileChange], stats: DiffStats
    ) -> AISummary:
        category = validate_category(normalize_category(data.get("category")), commit, files, stats)
        impact = validate_impact(normalize_impact(data.get("impact")), commit, files, stats)

        return AISummary(
            summary=_text(data.get("summary")) or commit.subject or "Unknown change",
            impact=impact,
            category=category,
            description=_text(data.get("description")),
            technical_details=_text(data.get("technicalDetails") or data.get("technical_details")),
            business_value=_text(data.get("businessValue") or data.get("business_value")),
            risk_factors=_string_list(data.get("riskFactors") or data.get("risk_factors")),
            recommendations=_string_list(data.get("recommendations")),
            breaking_changes=bool(data.get("breakingChanges") or data.get("breaking_changes")),
            migration_required=bool(data.get("migrationRequired") or data.get("migration_required")),
        )

    def _from_text(
        self, content: str, commit: CommitInfo, files: Sequence[FileChange], stats: DiffStats
    ) -> AISummary:
        lowered = content.lower()

        if "critical" in lowered:
            impact = "critical"
        elif "high" in lowered:
            impact = "high"
        elif "medium" in lowered:
            impact = "medium"
        else:
            impact = "low"

        description = content[:TEXT_DESCRIPTION_LIMIT]
        if len(content) > TEXT_DESCRIPTION_LIMIT:
            description += "..."

        return AISummary(
            summary=commit.subject or "Unknown change",
            impact=impact,
            category=validate_category(category_from_text(content), commit, files, stats),
            description=description,
            technical_details=content,
            breaking_changes="breaking" in lowered,
            migration_required="migration" in lowered,
        )


def clean_response(response: str) -> str:
    """Strip ChatML tokens, reasoning blocks and code fences."""
    chatml_match = re.search(r'<\|im_start\|>assistant\s*(.*?)(?=<\|im_end\|>|$)', response, re.DOTALL)
    if chatml_match:
        cleaned = chatml_match.group(1)
    else:
        cleaned = re.sub(r'<\|im_start\|>.*?<\|im_end\|>', '', response, flags=re.DOTALL)
        cleaned = re.sub(r'<\|im_(?:start|end)\|>', '', cleaned)

    cleaned = re.sub(r'<think>.*?</think>', '', cleaned, flags=re.DOTALL)

    # Remove markdown code fences
    cleaned = re.sub(r'```\w*\n?', '', cleaned)

    return cleaned.strip()


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """First decodable JSON object in ``text``."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def normalize_category(value: Any) -> str:
    category = _text(value).lower()
    category = CATEGORY_ALIASES.get(category, category)
    return category if category in CATEGORIES else "chore"


def normalize_impact(value: Any) -> str:
    impact = _text(value).lower()
    return impact if impact in IMPACTS else "low"


def category_from_text(content: str) -> str:
    """Keyword-based category for free-form responses."""
    text = content.lower()

    if "feature" in text or "feat" in text:
        return "feature"
    if "fix" in text or "bug" in text:
        return "fix"
    if "security" in text:
        return "security"
    if "breaking" in text:
        return "breaking"
    if "doc" in text:
        return "docs"
    if "style" in text:
        return "style"
    if "refactor" in text:
        return "refactor"
    if "perf" in text:
        return "perf"
    if "test" in text:
        return "test"
    return "chore"


def _is_doc_file(path: str) -> bool:
    return path.endswith((".md", ".txt")) or "README" in path or "CHANGELOG" in path


def _is_test_file(path: str) -> bool:
    return "test" in path or "spec" in path


def validate_category(category: str, commit: CommitInfo, files: Sequence[FileChange], stats: DiffStats) -> str:
    """Correct categories that contradict the size and shape of a commit."""
    if commit.is_merge:
        return "merge"

    added = [f for f in files if f.is_new]

    if category == "fix" and (len(files) > 10 or len(added) > 5 or stats.insertions > 1000):
        # Heavy deletions point at restructuring rather than new functionality
        if stats.deletions > stats.insertions * 0.5:
            return "refactor"
        return "feature"

    if category == "fix" and any(f.path.endswith(NEW_MODULE_EXTENSIONS) for f in added):
        return "feature"

    if files and category != "docs" and all(_is_doc_file(f.path) for f in files):
        return "docs"

    if files and category != "test" and all(_is_test_file(f.path) for f in files):
        return "test"

    return category


def validate_impact(impact: str, commit: CommitInfo, files: Sequence[FileChange], stats: DiffStats) -> str:
    """Correct impact levels that contradict the size of a commit."""
    file_count = len(files)
    added = sum(1 for f in files if f.is_new)
    total = stats.total_lines

    if impact in ("minimal", "low") and (file_count > 50 or total > 5000):
        return "high"

    if impact == "minimal" and (file_count > 20 or total > 2000 or added > 10):
        return "medium"

    if impact in ("critical", "high") and file_count <= 3 and total <= 100:
        subject = commit.subject
        if "!" not in subject and "breaking" not in subject.lower():
            return "medium"

    if files and impact in ("critical", "high") and all(_is_doc_file(f.path) for f in files):
        return "low"

    return impact


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def _string_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item]
    return [str(value)]
