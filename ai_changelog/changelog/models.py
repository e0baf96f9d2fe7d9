"""
Records exchanged between the changelog service and the Markdown renderer.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..git_ops.models import CommitInfo, DiffStats, FileChange
from ..utils.response_parser import AISummary
from .conventional import ConventionalCommit


@dataclass
class CommitAnalysis:
    """A commit together with its changes and its analysis."""

    commit: CommitInfo
    files: List[FileChange]
    stats: DiffStats
    conventional: ConventionalCommit
    summary: AISummary

    @property
    def hash(self) -> str:
        return self.commit.hash

    @property
    def full_hash(self) -> str:
        return self.commit.full_hash

    @property
    def scope(self) -> Optional[str]:
        return self.conventional.scope

    @property
    def breaking(self) -> bool:
        return self.conventional.breaking or self.summary.breaking_changes

    @property
    def type(self) -> str:
        """Conventional type, falling back to the analysis category."""
        return self.conventional.type or self.summary.category


@dataclass
class ReleaseInsights:
    """Release-level aggregate over analyzed commits."""

    total_commits: int = 0
    commit_types: Dict[str, int] = field(default_factory=dict)
    breaking: bool = False
    complexity: str = "low"
    affected_areas: List[str] = field(default_factory=list)
    summary: str = ""
    working_directory_changes: int = 0
    ai_analyzed: int = 0
    rule_based: int = 0
