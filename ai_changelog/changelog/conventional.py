"""
Conventional commit parsing and Markdown link helpers.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional


_CONVENTIONAL_RE = re.compile(r"^(?P<type>\w+)(?:\((?P<scope>[^()]+)\))?(?P<breaking>!)?:\s*(?P<description>.+)")
_BREAKING_FOOTER_RES = (
    re.compile(r"BREAKING CHANGE:\s*(.*?)(?:\n\n|\n[A-Z]|\n*\Z)", re.DOTALL),
    re.compile(r"BREAKING-CHANGE:\s*(.*?)(?:\n\n|\n[A-Z]|\n*\Z)", re.DOTALL),
)
_ISSUE_RE = re.compile(r"#[0-9]+")
_CLOSES_RE = re.compile(r"(?:close[sd]?|fix(?:e[sd])?|resolve[sd]?):?\s*#?([0-9]+)", re.IGNORECASE)


@dataclass
class ConventionalCommit:
    """Parsed view of a commit message."""

    description: str
    type: Optional[str] = None
    scope: Optional[str] = None
    breaking: bool = False
    breaking_changes: List[str] = field(default_factory=list)
    issue_references: List[str] = field(default_factory=list)
    closes_references: List[str] = field(default_factory=list)
    body: str = ""
    revert: bool = False
    is_conventional: bool = False


def parse_conventional_commit(subject: str, body: str = "") -> ConventionalCommit:
    """Parse ``type(scope)!: description`` plus breaking footers and issue references."""
    subject = subject or ""
    body = body or ""

    match = _CONVENTIONAL_RE.match(subject)
    if match:
        parsed = ConventionalCommit(
            description=match.group("description").strip(),
            type=match.group("type"),
            scope=match.group("scope"),
            breaking=bool(match.group("breaking")),
            is_conventional=True,
        )
    else:
        parsed = ConventionalCommit(description=subject.strip())

    full_message = f"{subject}\n\n{body}".strip()

    for footer_re in _BREAKING_FOOTER_RES:
        footer = footer_re.search(full_message)
        if footer:
            parsed.breaking_changes.append(footer.group(1).strip())
            parsed.breaking = True

    parsed.issue_references = _unique(_ISSUE_RE.findall(full_message))
    parsed.closes_references = _unique(f"#{number}" for number in _CLOSES_RE.findall(full_message))
    parsed.body = body.strip()
    parsed.revert = subject.lower().startswith("revert")

    return parsed


def _unique(items) -> List[str]:
    return list(dict.fromkeys(items))


def commit_link(commit_hash: str, commit_url: Optional[str], short: bool = True) -> str:
    """Markdown link for a commit, or the bare hash without a URL template."""
    display = commit_hash[:7] if short else commit_hash
    if not commit_url:
        return display
    return f"[{display}]({commit_url.replace('%commit%', commit_hash)})"


def range_link(from_commit: str, to_commit: str, range_url: Optional[str]) -> str:
    display = f"{from_commit[:7]}...{to_commit[:7]}"
    if not range_url:
        return display
    url = range_url.replace("%from%", from_commit).replace("%to%", to_commit)
    return f"[{display}]({url})"


def issue_link(issue_id: str, issue_url: Optional[str]) -> str:
    if not issue_url:
        return issue_id
    return f"[{issue_id}]({issue_url.replace('%issue%', issue_id.lstrip('#'))})"


def link_issue_references(text: str, issue_url: Optional[str]) -> str:
    """Replace ``#123`` references in ``text`` with issue links."""
    if not (issue_url and text):
        return text
    return _ISSUE_RE.sub(lambda m: issue_link(m.group(0), issue_url), text)
