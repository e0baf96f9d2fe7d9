"""
Changelog generation service: commit analysis, release insights and output.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from ..ai_backends.base import AIBackend, describe_error
from ..config.settings import Settings
from ..git_ops.models import CommitInfo, DiffStats, FileChange
from ..git_ops.repository import GitRepository, GitRepositoryError
from ..utils.diff_processor import ProcessingResult
from ..utils.prompts import WORKSPACE_TEMPERATURE, PromptBuilder
from ..utils.response_parser import AISummary, ResponseParser, clean_response
from .conventional import parse_conventional_commit
from .heuristics import ChangesSummary, categorize_file, rule_based_summary, summarize_file_changes
from .markdown import ChangelogRenderer
from .models import CommitAnalysis, ReleaseInsights


DEFAULT_OUTPUT = "AI_CHANGELOG.md"


@dataclass
class ChangelogResult:
    """Outcome of a release changelog run."""

    markdown: str
    insights: ReleaseInsights
    analyses: List[CommitAnalysis]
    workspace_changes: List[FileChange] = field(default_factory=list)
    output_path: Optional[Path] = None


@dataclass
class WorkspaceResult:
    """Outcome of a working-directory changelog run."""

    markdown: str
    changes: List[FileChange]
    processing: ProcessingResult
    summary: ChangesSummary
    source: str = "rules"
    output_path: Optional[Path] = None


class ChangelogService:
    """Analyze commits with AI or rules and assemble changelogs."""

    def __init__(
        self,
        settings: Settings,
        repository: GitRepository,
        backend: Optional[AIBackend] = None,
        console=None,
    ):
        self.settings = settings
        self.repository = repository
        self.backend = backend
        self.console = console
        self.prompt_builder = PromptBuilder(settings.analysis)
        self.parser = ResponseParser()
        self.renderer = ChangelogRenderer(
            settings.changelog,
            commit_url=repository.commit_url_template(),
            commit_range_url=repository.commit_range_url_template(),
        )

    @property
    def provider_name(self) -> str:
        return self.backend.backend_type if self.backend else "none"

    def _warn(self, message: str, suggestions: Sequence[str] = ()) -> None:
        logger.warning(message)
        if self.console:
            self.console.print_warning(message)
            for suggestion in suggestions:
                self.console.print_info(f"💡 {suggestion}")

    # Commit analysis

    async def analyze_commits(self, commits: Sequence[CommitInfo]) -> List[CommitAnalysis]:
        """Analyze commits in paced batches and chunks of bounded concurrency."""
        config = self.settings.changelog
        commits = list(commits)
        if not commits:
            return []

        if len(commits) > config.batch_threshold:
            batches = [commits[i:i + config.batch_size] for i in range(0, len(commits), config.batch_size)]
            logger.info(f"Using batch processing: {len(batches)} batches of up to {config.batch_size} commits")
        else:
            batches = [commits]

        results: List[CommitAnalysis] = []
        for index, batch in enumerate(batches):
            if len(batches) > 1:
                logger.info(f"Processing batch {index + 1}/{len(batches)} ({len(batch)} commits)")
            results.extend(await self._analyze_in_chunks(batch))
            if index < len(batches) - 1:
                await asyncio.sleep(config.batch_delay)

        return results

    async def _analyze_in_chunks(self, commits: Sequence[CommitInfo]) -> List[CommitAnalysis]:
        config = self.settings.changelog
        results: List[CommitAnalysis] = []

        for start in range(0, len(commits), config.concurrency):
            chunk = commits[start:start + config.concurrency]
            logger.debug(f"Analyzing commits {start + 1}-{start + len(chunk)} of {len(commits)}")
            analyses = await asyncio.gather(*(self.analyze_commit(commit) for commit in chunk))
            results.extend(analysis for analysis in analyses if analysis is not None)
            if start + config.concurrency < len(commits):
                await asyncio.sleep(config.chunk_delay)

        return results

    async def analyze_commit(self, commit: CommitInfo) -> Optional[CommitAnalysis]:
        """Analyze one commit; None when its changes cannot be read."""
        try:
            files = self.repository.get_commit_changes(commit)
            stats = self.repository.get_commit_stats(commit)
        except GitRepositoryError as e:
            self._warn(f"Failed to process commit {commit.hash}: {e}")
            return None

        if not stats.files:
            stats = DiffStats(files=len(files), insertions=stats.insertions, deletions=stats.deletions)

        summary = await self.summarize_commit(commit, files, stats)
        return CommitAnalysis(
            commit=commit,
            files=files,
            stats=stats,
            conventional=parse_conventional_commit(commit.subject, commit.body),
            summary=summary,
        )

    async def summarize_commit(self, commit: CommitInfo, files: List[FileChange], stats: DiffStats) -> AISummary:
        """AI summary of a commit, degrading to rule-based analysis on any failure."""
        if self.backend is None:
            return rule_based_summary(commit, files, stats)

        mode = self.prompt_builder.effective_mode(commit, files)
        prompt = self.prompt_builder.build_commit_prompt(commit, files, stats)

        try:
            response = await self.backend.call_with_retry(
                prompt,
                max_retries=self.settings.ai.max_retries,
                system_prompt=self.prompt_builder.system_prompt(mode),
                max_tokens=self.prompt_builder.max_tokens(mode, len(files), stats.total_lines),
            )
        except Exception as e:
            diagnosis = describe_error(e, self.provider_name)
            logger.debug(f"AI analysis of {commit.hash} failed: {e!r}")
            self._warn(f"{diagnosis.message}, using rule-based analysis for {commit.hash}", diagnosis.suggestions)
            return rule_based_summary(commit, files, stats)

        summary = self.parser.parse(response.content, commit, files, stats)
        if summary is None:
            logger.info(f"Unusable AI response for {commit.hash}, using rule-based analysis")
            return rule_based_summary(commit, files, stats)
        return summary

    # Release level

    def generate_release_insights(
        self,
        analyses: Sequence[CommitAnalysis],
        version: Optional[str] = None,
        workspace_changes: Sequence[FileChange] = (),
    ) -> ReleaseInsights:
        """Counts, breaking flag, complexity and affected areas of a release."""
        insights = ReleaseInsights(total_commits=len(analyses))
        areas: List[str] = []

        for analysis in analyses:
            insights.commit_types[analysis.type] = insights.commit_types.get(analysis.type, 0) + 1
            if analysis.breaking:
                insights.breaking = True
            if analysis.summary.source == "ai":
                insights.ai_analyzed += 1
            else:
                insights.rule_based += 1
            for change in analysis.files:
                areas.append(categorize_file(change.path))

        for change in workspace_changes:
            areas.append(categorize_file(change.path))
        insights.working_directory_changes = len(workspace_changes)
        insights.affected_areas = list(dict.fromkeys(areas))

        total_files = sum(len(analysis.files) for analysis in analyses)
        average = total_files / len(analyses) if analyses else 0
        if average > 20 or insights.breaking:
            insights.complexity = "high"
        elif average > 10:
            insights.complexity = "medium"

        insights.summary = release_summary(insights, version)
        return insights

    async def generate_changelog(
        self,
        since: Optional[str] = None,
        until: Optional[str] = None,
        rev_range: Optional[str] = None,
        max_count: Optional[int] = None,
        author: Optional[str] = None,
        version: Optional[str] = None,
        include_workspace: Optional[bool] = None,
        output: Optional[Path] = None,
        dry_run: bool = False,
    ) -> Optional[ChangelogResult]:
        """Analyze a commit range and render the changelog; None when there is nothing to report."""
        commits = self.repository.get_commits(
            since=since, until=until, rev_range=rev_range, max_count=max_count, author=author
        )

        if include_workspace is None:
            include_workspace = self.settings.changelog.include_workspace
        workspace_changes = self.repository.get_working_directory_changes() if include_workspace else []

        if not commits and not workspace_changes:
            logger.info("No commits or working directory changes found")
            return None

        logger.info(f"Found {len(commits)} commits and {len(workspace_changes)} working directory changes")

        analyses = await self.analyze_commits(commits)
        if commits and not analyses:
            raise ChangelogError("No valid commits to analyze")

        insights = self.generate_release_insights(analyses, version, workspace_changes)
        markdown = self.renderer.render(analyses, insights, version, workspace_changes)

        result = ChangelogResult(
            markdown=markdown,
            insights=insights,
            analyses=analyses,
            workspace_changes=list(workspace_changes),
        )
        if not dry_run:
            result.output_path = self.write_output(markdown, output or self.default_output_path(version))
        return result

    async def generate_workspace_changelog(
        self,
        version: Optional[str] = None,
        analysis_mode: Optional[str] = None,
        output: Optional[Path] = None,
        dry_run: bool = False,
    ) -> Optional[WorkspaceResult]:
        """Changelog of uncommitted changes, AI-written when a provider answers."""
        changes = self.repository.get_working_directory_changes()
        if not changes:
            logger.info("No changes detected in working directory")
            return None

        mode = analysis_mode or self.settings.analysis.mode
        summary = summarize_file_changes(changes)
        processing = self.prompt_builder.make_processor(mode).process(changes)

        markdown = await self._workspace_ai_markdown(processing, summary, mode)
        source = "ai"
        if markdown is None:
            markdown = self.renderer.render_basic_workspace(changes, summary, version)
            source = "rules"
        elif version:
            markdown = markdown.replace("## [Unreleased]", f"## [{version}]", 1)

        result = WorkspaceResult(
            markdown=markdown,
            changes=changes,
            processing=processing,
            summary=summary,
            source=source,
        )
        if not dry_run:
            result.output_path = self.write_output(markdown, output or self.default_output_path(version))
        return result

    async def _workspace_ai_markdown(
        self, processing: ProcessingResult, summary: ChangesSummary, mode: str
    ) -> Optional[str]:
        if self.backend is None:
            logger.info("AI not available, using rule-based analysis")
            return None

        prompt = self.prompt_builder.build_workspace_prompt(processing, summary.total_files, list(summary.categories), mode)
        try:
            response = await self.backend.call_api(
                prompt,
                system_prompt=self.prompt_builder.workspace_system_prompt(),
                max_tokens=self.prompt_builder.workspace_max_tokens(mode),
                temperature=WORKSPACE_TEMPERATURE,
            )
        except Exception as e:
            diagnosis = describe_error(e, self.provider_name)
            logger.debug(f"Workspace AI analysis failed: {e!r}")
            self._warn(f"{diagnosis.message}, falling back to pattern-based analysis", diagnosis.suggestions)
            return None

        content = clean_response(response.content or "")
        if not content:
            self._warn("AI response was empty, using basic file change detection instead")
            return None

        return self.renderer.wrap_workspace_ai(content, summary.total_files)

    # Output

    def default_output_path(self, version: Optional[str] = None) -> Path:
        configured = self.settings.changelog.output_file
        if configured:
            name = configured
        elif version and version != "latest":
            name = f"CHANGELOG-{version}.md"
        else:
            name = DEFAULT_OUTPUT
        path = Path(name)
        return path if path.is_absolute() else self.repository.working_dir / path

    def write_output(self, content: str, path: Path) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ChangelogError(f"Failed to write changelog to {path}: {e}")
        logger.info(f"Changelog written to {path}")
        return path


def release_summary(insights: ReleaseInsights, version: Optional[str] = None) -> str:
    summary = f"Release {version or 'latest'} includes {insights.total_commits} commits"
    if insights.breaking:
        summary += " with breaking changes"
    if insights.commit_types:
        ranked = sorted(insights.commit_types.items(), key=lambda item: item[1], reverse=True)
        summary += f" ({', '.join(f'{count} {name}' for name, count in ranked)})"
    summary += f". Complexity: {insights.complexity}. Affected areas: {', '.join(insights.affected_areas)}."
    return summary


class ChangelogError(Exception):
    """Custom exception for changelog generation failures."""
    pass
