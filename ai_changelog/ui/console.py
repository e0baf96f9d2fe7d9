"""
Console interface with Rich components.
"""

from typing import Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.theme import Theme

from ..changelog.models import CommitAnalysis, ReleaseInsights
from ..config.settings import Settings
from ..git_ops.models import FileChange, FileStatus
from ..utils.diff_processor import ProcessingResult


MAX_TABLE_ROWS = 25


class ChangelogConsole:
    """Console interface for ai-changelog."""

    def __init__(self, settings: Settings, console: Optional[Console] = None):
        """Initialize console with settings."""
        self.settings = settings
        self._setup_styles()
        self.console = console or Console(
            color_system="auto" if settings.ui.use_colors else None,
            theme=self.theme
        )

    def _setup_styles(self) -> None:
        """Setup custom styles for consistent theming."""
        self.styles = {
            "title": "bold blue",
            "success": "bold green",
            "warning": "bold yellow",
            "error": "bold red",
            "info": "blue",
            "muted": "dim",
            "file_added": "green",
            "file_modified": "yellow",
            "file_deleted": "red",
            "commit_hash": "dim cyan",
            "commit_type": "bold magenta",
            "scope": "cyan",
        }

        self.theme = Theme(self.styles)

    def print_banner(self) -> None:
        """Print application banner."""
        banner = Panel.fit(
            "[bold blue]AI Changelog[/bold blue]\n"
            "[dim]AI-assisted changelog generation for Git repositories[/dim]",
            box=box.ROUNDED,
            style="blue"
        )
        self.console.print(banner)
        self.console.print()

    def show_ai_backend_info(self, backend_type: str, api_url: str, model: str) -> None:
        """Show AI backend information."""
        backend_panel = Panel(
            f"[bold]{backend_type.title()}[/bold] @ {api_url}\n"
            f"Model: [cyan]{model}[/cyan]",
            title="AI Backend",
            box=box.ROUNDED,
            style="blue"
        )
        self.console.print(backend_panel)
        self.console.print()

    def show_rule_based_notice(self) -> None:
        self.console.print(Panel(
            "[bold yellow]No AI provider available[/bold yellow]\n"
            "[dim]Commits are analyzed with rule-based heuristics[/dim]",
            title="Analysis",
            border_style="yellow",
            box=box.ROUNDED
        ))
        self.console.print()

    def show_analyses(self, analyses: Sequence[CommitAnalysis]) -> None:
        """Per-commit analysis results."""
        if not analyses:
            return

        table = Table(title="Commit Analysis", box=box.SIMPLE_HEAD)
        table.add_column("Hash", style="commit_hash", width=8)
        table.add_column("Type", style="commit_type")
        table.add_column("Impact")
        table.add_column("Source", style="muted")
        table.add_column("Summary")

        impact_styles = {"critical": "bold red", "high": "red", "medium": "yellow", "low": "green", "minimal": "dim"}
        for analysis in analyses[:MAX_TABLE_ROWS]:
            impact = analysis.summary.impact
            style = impact_styles.get(impact, "")
            table.add_row(
                analysis.hash,
                analysis.type + (" ⚠" if analysis.breaking else ""),
                f"[{style}]{impact}[/{style}]" if style else impact,
                analysis.summary.source,
                analysis.summary.summary,
            )

        if len(analyses) > MAX_TABLE_ROWS:
            table.add_row("...", "", "", "", f"[muted]and {len(analyses) - MAX_TABLE_ROWS} more commits[/muted]")

        self.console.print(table)
        self.console.print()

    def show_release_insights(self, insights: ReleaseInsights) -> None:
        lines = [insights.summary]
        if insights.working_directory_changes:
            lines.append(f"[muted]Working directory changes: {insights.working_directory_changes}[/muted]")
        lines.append(f"[muted]AI analyzed: {insights.ai_analyzed}, rule-based: {insights.rule_based}[/muted]")

        self.console.print(Panel(
            "\n".join(lines),
            title="📋 Release Insights",
            border_style="red" if insights.breaking else "green",
            box=box.ROUNDED
        ))
        self.console.print()

    def print_file_changes(self, changes: Sequence[FileChange], title: str = "File Changes") -> None:
        """Print detailed file changes in a table."""
        if not changes:
            return

        table = Table(title=title, box=box.SIMPLE_HEAD)
        table.add_column("Status", style="bold", width=10)
        table.add_column("File", style="bold")
        table.add_column("Changes", justify="right", style="muted")

        status_styles = {
            FileStatus.MODIFIED: "file_modified",
            FileStatus.ADDED: "file_added",
            FileStatus.UNTRACKED: "file_added",
            FileStatus.DELETED: "file_deleted",
            FileStatus.RENAMED: "yellow",
        }

        for change in changes[:MAX_TABLE_ROWS]:
            style = status_styles[change.status]
            if change.lines_added or change.lines_removed:
                summary = f"+{change.lines_added} -{change.lines_removed}"
            else:
                summary = "-"
            table.add_row(f"[{style}]{change.status.label}[/{style}]", change.path, summary)

        if len(changes) > MAX_TABLE_ROWS:
            table.add_row("...", f"[muted]and {len(changes) - MAX_TABLE_ROWS} more files[/muted]", "")

        self.console.print(table)
        self.console.print()

    def show_processing_result(self, result: ProcessingResult, title: str = "Diff Budget") -> None:
        """Processed files, detected bulk patterns and the remaining-files summary."""
        table = Table(title=title, box=box.SIMPLE_HEAD)
        table.add_column("File", style="bold")
        table.add_column("Status", width=8)
        table.add_column("Original", justify="right", style="muted")
        table.add_column("Sent", justify="right")
        table.add_column("Notes", style="muted")

        for item in result.detailed_files:
            notes: List[str] = []
            if item.compression_applied:
                notes.append("compressed")
            if item.bulk_pattern:
                notes.append(item.bulk_pattern)
            table.add_row(
                item.path,
                item.status,
                f"{item.original_size or 0:,}",
                f"{item.compressed_size or 0:,}",
                ", ".join(notes),
            )

        self.console.print(table)

        if result.patterns:
            pattern_lines = "\n".join(f"• {pattern.description}" for pattern in result.patterns.values())
            self.console.print(Panel(pattern_lines, title="Bulk Patterns", border_style="yellow", box=box.ROUNDED))

        summary = result.summary
        if summary is not None:
            self.console.print(Panel(summary.diff, title="Summarized Files", border_style="blue", box=box.ROUNDED))

        self.console.print(
            f"[info]{len(result.detailed_files)} files analyzed, "
            f"{result.files_skipped_count} summarized, "
            f"{result.total_size:,} characters of diff[/info]"
        )
        self.console.print()

    def show_changelog_preview(self, markdown: str, title: str = "Changelog") -> None:
        """Show generated Markdown with syntax highlighting."""
        syntax = Syntax(markdown, "markdown", theme="monokai", line_numbers=False, word_wrap=True)
        self.console.print(Panel(syntax, title=title, style="green"))
        self.console.print()

    def show_backend_status(self, results: Dict[str, bool]) -> None:
        table = Table(title="AI Providers", box=box.SIMPLE_HEAD)
        table.add_column("Provider", style="bold")
        table.add_column("Status")

        for name, healthy in results.items():
            table.add_row(name, "[success]✓ reachable[/success]" if healthy else "[error]✗ unavailable[/error]")

        self.console.print(table)
        self.console.print()

    def show_settings(self, settings: Settings) -> None:
        """Configuration overview for ``config --show``."""
        table = Table(title="Configuration", box=box.SIMPLE_HEAD)
        table.add_column("Setting", style="bold")
        table.add_column("Value", style="cyan")

        table.add_row("Provider", settings.ai.provider)
        table.add_row("API URL", settings.ai.api_url)
        table.add_row("Model", settings.ai.model)
        table.add_row("API key", "set" if settings.ai.api_key else "not set")
        table.add_row("Timeout", f"{settings.ai.timeout}s")
        table.add_row("Analysis mode", settings.analysis.mode)
        table.add_row("Concurrency", str(settings.changelog.concurrency))
        table.add_row("Include workspace", str(settings.changelog.include_workspace))
        table.add_row("Output file", settings.changelog.output_file or "(default)")
        table.add_row("Config file", str(settings.config_dir / "config.json"))

        self.console.print(table)
        self.console.print()

    def show_progress_spinner(self, description: str):
        """Create a progress spinner context manager."""
        return self.console.status(f"[blue]{description}...[/blue]", spinner="dots")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self.console.print(f"[success]✓ {message}[/success]")

    def print_warning(self, message: str) -> None:
        """Print warning message."""
        self.console.print(f"[warning]⚠ {message}[/warning]")

    def print_error(self, message: str) -> None:
        """Print error message."""
        self.console.print(f"[error]✗ {message}[/error]")

    def print_info(self, message: str) -> None:
        """Print info message."""
        self.console.print(f"[info]ℹ {message}[/info]")
