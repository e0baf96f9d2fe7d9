"""
Git repository access for changelog generation.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import BadName, BadObject
from loguru import logger

from .models import CommitInfo, DiffStats, FileChange, FileStatus


DEFAULT_COMMIT_COUNT = 10
NEW_FILE_PREVIEW_CHARS = 1000
PATCH_CONTEXT_LINES = 5

_REMOTE_RE = re.compile(r"^(?:https?://|ssh://)?(?:[^@/]+@)?([^/:]+)[:/](.+?)(?:\.git)?/?$")


class GitRepository:
    """Read-only view of a Git repository."""

    def __init__(self, repo_path: Optional[Path] = None):
        """Initialize Git repository."""
        self.repo_path = Path(repo_path) if repo_path else Path.cwd()
        self.repo: Optional[Repo] = None
        self._initialize_repo()

    def _initialize_repo(self) -> None:
        """Initialize the Git repository object."""
        try:
            self.repo = Repo(self.repo_path, search_parent_directories=True)
            logger.debug(f"Initialized Git repository at {self.repo.working_dir}")
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise GitRepositoryError(f"Not a Git repository: {self.repo_path}")

    @property
    def is_valid(self) -> bool:
        """Check if this is a valid Git repository."""
        return self.repo is not None and not self.repo.bare

    @property
    def working_dir(self) -> Path:
        return Path(self.repo.working_dir)

    @property
    def has_commits(self) -> bool:
        try:
            self.repo.head.commit
            return True
        except ValueError:
            return False

    def get_commits(
        self,
        since: Optional[str] = None,
        until: Optional[str] = None,
        rev_range: Optional[str] = None,
        max_count: Optional[int] = None,
        author: Optional[str] = None,
    ) -> List[CommitInfo]:
        """List commits newest first.

        ``since`` may be a date (``2024-01-01``, ``2 weeks ago``) or a revision
        such as a tag; revisions are turned into a ``since..HEAD`` range.
        Without any filter the last ten commits are returned.
        """
        if not self.has_commits:
            return []

        kwargs: Dict[str, object] = {}
        rev = rev_range or "HEAD"

        if not rev_range:
            if since and self._is_revision(since):
                rev = f"{since}..HEAD"
            elif since:
                kwargs["since"] = since
            if until:
                kwargs["until"] = until
        if author:
            kwargs["author"] = author

        if max_count:
            kwargs["max_count"] = max_count
        elif not (since or until or rev_range or author):
            kwargs["max_count"] = DEFAULT_COMMIT_COUNT

        try:
            commits = [_commit_info(commit) for commit in self.repo.iter_commits(rev, **kwargs)]
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to list commits for '{rev}': {e}")

        logger.debug(f"Found {len(commits)} commits for {rev} {kwargs}")
        return commits

    def get_commit(self, ref: str = "HEAD") -> CommitInfo:
        """Resolve a single revision."""
        try:
            return _commit_info(self.repo.commit(ref))
        except (BadName, BadObject, GitCommandError, ValueError) as e:
            raise GitRepositoryError(f"Unknown revision '{ref}': {e}")

    def _is_revision(self, ref: str) -> bool:
        try:
            self.repo.git.rev_parse("--verify", "--quiet", f"{ref}^{{commit}}")
            return True
        except GitCommandError:
            return False

    def get_commit_changes(self, commit: CommitInfo) -> List[FileChange]:
        """Per-file changes of a commit with ``-U5`` patches."""
        try:
            name_status = self.repo.git.show(
                "--name-status", "-M", "--pretty=format:", "--first-parent", "-m", commit.full_hash
            )
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to read commit {commit.hash}: {e}")

        changes = []
        seen = set()
        for line in name_status.splitlines():
            parts = line.split("\t")
            if len(parts) < 2:
                continue

            status = FileStatus.from_code(parts[0])
            old_path = parts[1] if status == FileStatus.RENAMED and len(parts) > 2 else None
            path = parts[-1]
            if path in seen:
                continue
            seen.add(path)

            diff = self._commit_file_diff(commit, status, path)
            added, removed = count_diff_lines(diff)
            changes.append(FileChange(
                path=path,
                status=status,
                diff=diff,
                old_path=old_path,
                lines_added=added,
                lines_removed=removed,
            ))

        return changes

    def _commit_file_diff(self, commit: CommitInfo, status: FileStatus, path: str) -> str:
        try:
            diff = self.repo.git.show(
                commit.full_hash, f"-U{PATCH_CONTEXT_LINES}", "--pretty=format:", "--first-parent", "-m", "--", path
            )
        except GitCommandError as e:
            logger.debug(f"git show failed for {path} in {commit.hash}: {e}")
            return "File deleted in this commit" if status == FileStatus.DELETED else ""

        if diff.strip():
            return diff
        if status == FileStatus.DELETED:
            return "File deleted in this commit"
        if status == FileStatus.ADDED:
            content = self._show_file(f"{commit.full_hash}:{path}")
            if content:
                preview = content[:NEW_FILE_PREVIEW_CHARS]
                suffix = "\n..." if len(content) > NEW_FILE_PREVIEW_CHARS else ""
                return f"New file created with content:\n{preview}{suffix}"
        return ""

    def _show_file(self, spec: str) -> Optional[str]:
        try:
            return self.repo.git.show(spec)
        except GitCommandError:
            return None

    def get_commit_stats(self, commit: CommitInfo) -> DiffStats:
        """Insertions and deletions of a commit."""
        try:
            total = self.repo.commit(commit.full_hash).stats.total
        except (GitCommandError, ValueError) as e:
            logger.debug(f"Could not read stats for {commit.hash}: {e}")
            return DiffStats()

        return DiffStats(
            files=total.get("files", 0),
            insertions=total.get("insertions", 0),
            deletions=total.get("deletions", 0),
        )

    def get_working_directory_changes(self, preview_lines: int = 50) -> List[FileChange]:
        """Uncommitted changes from ``git status --porcelain`` with diffs."""
        try:
            status_output = self.repo.git.status("--porcelain", "--untracked-files=all")
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to read repository status: {e}")

        changes = []
        seen = set()
        for line in status_output.split("\n"):
            if not line.strip():
                continue

            code = line[:2]
            path = line[3:]
            old_path = None
            if " -> " in path:
                old_path, path = path.split(" -> ", 1)
            path = path.strip('"')
            if path in seen:
                continue
            seen.add(path)

            status = FileStatus.from_code(code)
            diff = self._working_file_diff(status, path, preview_lines)
            added, removed = count_diff_lines(diff)
            changes.append(FileChange(
                path=path,
                status=status,
                diff=diff,
                old_path=old_path,
                lines_added=added,
                lines_removed=removed,
            ))

        logger.debug(f"Found {len(changes)} working directory changes")
        return changes

    def _working_file_diff(self, status: FileStatus, path: str, preview_lines: int) -> str:
        if status in (FileStatus.ADDED, FileStatus.UNTRACKED):
            file_path = self.working_dir / path
            if file_path.is_dir():
                return f"New directory: {path}"
            try:
                content = file_path.read_text(encoding="utf-8", errors="ignore")
            except OSError as e:
                logger.debug(f"Could not read new file {path}: {e}")
                return ""
            lines = content.split("\n")
            preview = "\n".join(lines[:preview_lines])
            truncated = "\n... (truncated)" if len(lines) > preview_lines else ""
            return f"New file created with {len(lines)} lines\n\nContent preview:\n{preview}{truncated}"

        if status == FileStatus.DELETED:
            content = self._show_file(f"HEAD:{path}") if self.has_commits else None
            if not content:
                return "File deleted from working directory"
            lines = content.split("\n")
            preview = "\n".join(lines[:preview_lines])
            truncated = "\n... (truncated)" if len(lines) > preview_lines else ""
            return f"File deleted ({len(lines)} lines)\n\nRemoved content preview:\n{preview}{truncated}"

        try:
            diff = self.repo.git.diff("HEAD", "--", path) if self.has_commits else ""
            if not diff:
                diff = self.repo.git.diff("--cached", "--", path)
            return diff
        except GitCommandError as e:
            logger.debug(f"Could not diff {path}: {e}")
            return ""

    def get_remote_url(self, remote: str = "origin") -> Optional[str]:
        try:
            return self.repo.remote(remote).url
        except ValueError:
            return None

    def commit_url_template(self) -> Optional[str]:
        """Commit link template inferred from the origin remote."""
        base = remote_web_url(self.get_remote_url())
        return f"{base}/commit/%commit%" if base else None

    def commit_range_url_template(self) -> Optional[str]:
        base = remote_web_url(self.get_remote_url())
        return f"{base}/compare/%from%...%to%" if base else None


def remote_web_url(remote_url: Optional[str]) -> Optional[str]:
    """``git@github.com:owner/repo.git`` -> ``https://github.com/owner/repo``."""
    if not remote_url:
        return None
    match = _REMOTE_RE.match(remote_url.strip())
    if not match:
        return None
    host, repo_path = match.groups()
    return f"https://{host}/{repo_path}"


def count_diff_lines(diff: str) -> Tuple[int, int]:
    added = removed = 0
    for line in diff.split("\n"):
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            removed += 1
    return added, removed


def _commit_info(commit) -> CommitInfo:
    return CommitInfo(
        full_hash=commit.hexsha,
        subject=str(commit.summary),
        body=_commit_body(commit.message),
        author=str(commit.author),
        date=commit.committed_datetime.isoformat(),
    )


def _commit_body(message) -> str:
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    parts = message.strip().split("\n", 1)
    return parts[1].strip() if len(parts) > 1 else ""


class GitRepositoryError(Exception):
    """Custom exception for Git repository operations."""
    pass
