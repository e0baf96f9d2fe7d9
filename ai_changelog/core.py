"""
Core AI Changelog engine that orchestrates all components.
"""

from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from .ai_backends.base import AIBackend, describe_error
from .ai_backends.factory import BackendFactory
from .changelog.service import ChangelogError, ChangelogResult, ChangelogService, WorkspaceResult
from .config.settings import Settings
from .git_ops.repository import GitRepository
from .ui.console import ChangelogConsole
from .utils.diff_processor import ProcessingResult
from .utils.prompts import PromptBuilder


class AIChangelog:
    """Core AI Changelog application engine."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        repo_path: Optional[Path] = None,
        console: Optional[ChangelogConsole] = None,
    ):
        """Initialize with settings and repository."""
        self.settings = settings or Settings()
        self.git_repo = GitRepository(repo_path)
        self.console = console or ChangelogConsole(self.settings)
        self.ai_backend: Optional[AIBackend] = None
        self.service = ChangelogService(self.settings, self.git_repo, console=self.console)

        logger.info("AI Changelog initialized")

    async def initialize(self, provider: Optional[str] = None) -> None:
        """Select the AI backend; without a reachable one analysis is rule-based."""
        logger.info("Initializing AI Changelog...")

        if not self.git_repo.is_valid:
            raise ChangelogError("Not a valid Git repository")

        try:
            backend = await BackendFactory.create_backend(self.settings, provider)
        except Exception as e:
            diagnosis = describe_error(e, provider or self.settings.ai.provider)
            self.console.print_warning(f"Failed to initialize AI backend: {diagnosis.message}")
            backend = None

        if backend is not None and not await backend.health_check():
            self.console.print_warning(
                f"AI backend health check failed for {backend.backend_type} at {backend.api_url}"
            )
            self.console.print_info("💡 Run 'ai-changelog test' to diagnose the provider")
            backend = None

        self.ai_backend = backend
        self.service.backend = backend

        if backend is None:
            logger.info("Using rule-based analysis")
            self.console.show_rule_based_notice()
        else:
            logger.info(f"Initialized {backend.backend_type} backend")
            self.console.show_ai_backend_info(backend.backend_type, backend.api_url, backend.model)

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
        """Run the release changelog workflow."""
        logger.info(f"Generating changelog (dry_run={dry_run})")

        with self.console.show_progress_spinner("Analyzing commits"):
            result = await self.service.generate_changelog(
                since=since,
                until=until,
                rev_range=rev_range,
                max_count=max_count,
                author=author,
                version=version,
                include_workspace=include_workspace,
                output=output,
                dry_run=dry_run,
            )

        if result is None:
            self.console.print_warning("No commits or working directory changes found")
            return None

        self.console.show_analyses(result.analyses)
        self.console.print_file_changes(result.workspace_changes, "Working Directory Changes")
        self.console.show_release_insights(result.insights)

        if dry_run:
            self.console.show_changelog_preview(result.markdown)
            self.console.print_info("Dry run complete - no file written")
        else:
            self.console.print_success(f"Changelog written to {result.output_path}")

        return result

    async def generate_workspace_changelog(
        self,
        version: Optional[str] = None,
        analysis_mode: Optional[str] = None,
        output: Optional[Path] = None,
        dry_run: bool = False,
    ) -> Optional[WorkspaceResult]:
        """Run the working-directory changelog workflow."""
        logger.info(f"Generating workspace changelog (dry_run={dry_run})")

        with self.console.show_progress_spinner("Analyzing working directory"):
            result = await self.service.generate_workspace_changelog(
                version=version,
                analysis_mode=analysis_mode,
                output=output,
                dry_run=dry_run,
            )

        if result is None:
            self.console.print_warning("No changes detected in working directory")
            return None

        self.console.print_file_changes(result.changes, "Working Directory Changes")
        if result.source == "rules":
            self.console.print_info("Changelog built from file change detection")

        if dry_run:
            self.console.show_changelog_preview(result.markdown)
            self.console.print_info("Dry run complete - no file written")
        else:
            self.console.print_success(f"Changelog written to {result.output_path}")

        return result

    def preview(self, commit_ref: Optional[str] = None, analysis_mode: Optional[str] = None) -> Optional[ProcessingResult]:
        """Show what the diff budget would send to the AI, without calling it."""
        builder = PromptBuilder(self.settings.analysis)

        if commit_ref:
            commit = self.git_repo.get_commit(commit_ref)
            changes = self.git_repo.get_commit_changes(commit)
            title = f"Commit {commit.hash}: {commit.subject}"
            mode = analysis_mode or builder.effective_mode(commit, changes)
        else:
            changes = self.git_repo.get_working_directory_changes()
            title = "Working Directory"
            mode = analysis_mode or builder.mode

        if not changes:
            self.console.print_warning("No changes to preview")
            return None

        result = builder.make_processor(mode).process(changes)
        self.console.print_file_changes(changes, title)
        self.console.show_processing_result(result, f"Diff Budget ({mode})")
        return result


async def check_ai_backend(settings: Settings, console: ChangelogConsole, provider: Optional[str] = None) -> bool:
    """Test AI backend connectivity and functionality."""
    try:
        backend = await BackendFactory.create_backend(settings, provider)
    except ValueError as e:
        console.print_error(str(e))
        return False

    if backend is None:
        console.print_error("No AI backend configured or detected")
        return False

    console.show_ai_backend_info(backend.backend_type, backend.api_url, backend.model)

    try:
        with console.show_progress_spinner("Testing AI backend"):
            if not await backend.health_check():
                console.print_error("AI backend health check failed")
                return False

            response = await backend.call_api(
                "Summarize this change in one sentence: Added a CHANGELOG.md file",
                max_tokens=50,
            )
    except Exception as e:
        diagnosis = describe_error(e, backend.backend_type)
        console.print_error(f"AI backend test failed: {diagnosis.message}")
        for suggestion in diagnosis.suggestions:
            console.print_info(f"💡 {suggestion}")
        return False

    if not response.content:
        console.print_error("AI backend returned empty response")
        return False

    console.print_success("AI backend test successful")
    console.print_info(f"Test response: {response.content[:50]}...")
    return True


async def check_all_backends(settings: Settings, console: ChangelogConsole) -> Dict[str, bool]:
    with console.show_progress_spinner("Testing all AI backends"):
        results = await BackendFactory.test_all_backends(settings)
    console.show_backend_status(results)
    return results
