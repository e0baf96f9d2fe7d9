"""
Canonical records for file changes and commits.

Loose change records (``path`` or ``filePath``, porcelain status codes) are
normalized here at the boundary so the rest of the package only ever sees
``FileChange`` objects with a required path and a ``FileStatus``.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional


class FileStatus(str, Enum):
    """Change status of a single file."""

    MODIFIED = "M"
    ADDED = "A"
    DELETED = "D"
    RENAMED = "R"
    UNTRACKED = "??"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "FileStatus":
        """Map a git status code (``M``, ``R100``, ``??``, `` D``...) to a status."""
        if not code:
            return cls.MODIFIED

        code = code.strip()
        if code == "??":
            return cls.UNTRACKED
        if not code:
            return cls.MODIFIED

        letter = code[0].upper()
        if letter == "C":
            # Copies show up as new files
            return cls.ADDED
        for status in (cls.MODIFIED, cls.ADDED, cls.DELETED, cls.RENAMED):
            if status.value == letter:
                return status
        return cls.MODIFIED

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    FileStatus.MODIFIED: "Modified",
    FileStatus.ADDED: "Added",
    FileStatus.DELETED: "Deleted",
    FileStatus.RENAMED: "Renamed",
    FileStatus.UNTRACKED: "Untracked",
}


@dataclass(frozen=True)
class FileChange:
    """A single changed file with its diff text."""

    path: str
    status: FileStatus = FileStatus.MODIFIED
    diff: str = ""
    old_path: Optional[str] = None
    lines_added: int = 0
    lines_removed: int = 0

    @classmethod
    def from_record(cls, record: Any) -> "FileChange":
        """Build a FileChange from a FileChange or a loosely shaped mapping."""
        if isinstance(record, FileChange):
            if isinstance(record.status, FileStatus):
                return record
            return replace(record, status=FileStatus.from_code(record.status))
        if not isinstance(record, Mapping):
            raise TypeError(f"Unsupported change record: {record!r}")

        path = record.get("path") or record.get("filePath") or record.get("file_path") or ""
        status = record.get("status")
        if not isinstance(status, FileStatus):
            status = FileStatus.from_code(status)

        return cls(
            path=str(path),
            status=status,
            diff=record.get("diff") or "",
            old_path=record.get("old_path") or record.get("oldPath"),
            lines_added=int(record.get("lines_added") or record.get("additions") or 0),
            lines_removed=int(record.get("lines_removed") or record.get("deletions") or 0),
        )

    @property
    def is_new(self) -> bool:
        return self.status in (FileStatus.ADDED, FileStatus.UNTRACKED)


@dataclass(frozen=True)
class CommitInfo:
    """Metadata of a single commit."""

    full_hash: str
    subject: str
    body: str = ""
    author: str = ""
    date: str = ""

    @property
    def hash(self) -> str:
        return self.full_hash[:7]

    @property
    def is_merge(self) -> bool:
        return "merge" in self.subject.lower()


@dataclass(frozen=True)
class DiffStats:
    """Aggregate line statistics of a commit."""

    files: int = 0
    insertions: int = 0
    deletions: int = 0

    @property
    def total_lines(self) -> int:
        return self.insertions + self.deletions
