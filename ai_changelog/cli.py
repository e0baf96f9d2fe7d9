"""
CLI interface using Typer with Rich integration.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console

from .ai_backends.factory import BackendFactory
from .changelog.service import ChangelogError
from .config.settings import Settings
from .core import AIChangelog, check_ai_backend, check_all_backends
from .git_ops.repository import GitRepositoryError
from .ui.console import ChangelogConsole


ANALYSIS_MODES = ("standard", "detailed", "enterprise")
PROVIDERS = ("auto", "ollama", "openai", "anthropic", "none")

# Create Typer app
app = typer.Typer(
    name="ai-changelog",
    help="AI-assisted changelog generation for Git repositories",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=False
)

# Global console for error handling
console = Console()


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None):
    """Setup logging configuration."""
    logger.remove()  # Remove default handler

    # Console logging with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True
    )

    # File logging
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="1 MB",
            retention="7 days"
        )


def _load_settings(
    config_file: Optional[Path],
    verbose: bool = False,
    debug: bool = False,
    provider: Optional[str] = None,
    mode: Optional[str] = None,
) -> Settings:
    """Load settings, apply command-line overrides and configure logging."""
    _check_choice("provider", provider, PROVIDERS)
    _check_choice("mode", mode, ANALYSIS_MODES)

    settings = Settings.from_file(config_file) if config_file else Settings()
    if provider:
        settings.ai.provider = provider
    if mode:
        settings.analysis.mode = mode

    # Debug overrides verbose
    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = settings.ui.log_level
    setup_logging(log_level, settings.log_file)

    return settings


def _check_choice(name: str, value: Optional[str], choices) -> None:
    if value is not None and value not in choices:
        console.print(f"[red]Invalid {name}:[/red] {value}")
        console.print(f"Valid options: {', '.join(choices)}")
        raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version",
        help="Show version information"
    )
):
    """
    AI-assisted changelog generation for Git repositories.

    [bold blue]Examples:[/bold blue]

    [green]ai-changelog generate[/green]                        # Changelog of the last 10 commits
    [green]ai-changelog generate --since v1.2.0[/green]         # Everything after a tag
    [green]ai-changelog generate --release 1.3.0[/green]        # Writes CHANGELOG-1.3.0.md
    [green]ai-changelog generate --dry-run[/green]              # Preview without writing
    [green]ai-changelog workspace[/green]                       # Changelog of uncommitted changes
    [green]ai-changelog preview[/green]                         # Show what the AI would receive
    [green]ai-changelog config --show[/green]                   # Show configuration
    [green]ai-changelog test[/green]                            # Test AI provider
    """
    if version:
        from . import __version__
        console.print(f"[bold blue]AI Changelog[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def generate(
    since: Optional[str] = typer.Option(
        None, "--since", "-s",
        help="Start from a date (2024-01-01, '2 weeks ago') or a tag/commit"
    ),
    until: Optional[str] = typer.Option(
        None, "--until", "-u",
        help="End date"
    ),
    rev_range: Optional[str] = typer.Option(
        None, "--range",
        help="Explicit revision range (v1.0.0..v1.1.0)"
    ),
    max_count: Optional[int] = typer.Option(
        None, "--max-count", "-n",
        help="Maximum number of commits"
    ),
    release: Optional[str] = typer.Option(
        None, "--release", "-r",
        help="Release version for the changelog heading"
    ),
    author: Optional[str] = typer.Option(
        None, "--author",
        help="Only commits by this author"
    ),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m",
        help="Analysis mode (standard, detailed, enterprise)"
    ),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p",
        help="AI provider (auto, ollama, openai, anthropic, none)"
    ),
    no_workspace: bool = typer.Option(
        False, "--no-workspace",
        help="Leave uncommitted changes out of the changelog"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o",
        help="Output file"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Print the changelog without writing it"
    ),
    repo_path: Optional[Path] = typer.Option(
        None, "--repo",
        help="Git repository path (default: current directory)"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable verbose logging"
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d",
        help="Enable debug logging (includes verbose)"
    )
):
    """
    Generate a changelog from Git history.

    [bold blue]Examples:[/bold blue]

    [green]ai-changelog generate --since "2 weeks ago"[/green]
    [green]ai-changelog generate --range v1.0.0..v1.1.0 --release 1.1.0[/green]
    [green]ai-changelog generate --provider none[/green]         # Rule-based only
    """
    settings = _load_settings(config_file, verbose, debug, provider, mode)
    asyncio.run(_run_generate(
        settings,
        repo_path,
        since=since,
        until=until,
        rev_range=rev_range,
        max_count=max_count,
        author=author,
        version=release,
        include_workspace=False if no_workspace else None,
        output=output,
        dry_run=dry_run,
    ))


@app.command()
def workspace(
    release: Optional[str] = typer.Option(
        None, "--release", "-r",
        help="Release version for the changelog heading"
    ),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m",
        help="Analysis mode (standard, detailed, enterprise)"
    ),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p",
        help="AI provider (auto, ollama, openai, anthropic, none)"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o",
        help="Output file"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Print the changelog without writing it"
    ),
    repo_path: Optional[Path] = typer.Option(
        None, "--repo",
        help="Git repository path (default: current directory)"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable verbose logging"
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d",
        help="Enable debug logging (includes verbose)"
    )
):
    """
    Generate a changelog of uncommitted working-directory changes.
    """
    settings = _load_settings(config_file, verbose, debug, provider, mode)
    asyncio.run(_run_workspace(settings, repo_path, release, mode, output, dry_run))


@app.command()
def preview(
    commit: Optional[str] = typer.Option(
        None, "--commit",
        help="Preview a commit instead of the working directory"
    ),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m",
        help="Analysis mode (standard, detailed, enterprise)"
    ),
    repo_path: Optional[Path] = typer.Option(
        None, "--repo",
        help="Git repository path (default: current directory)"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="Path to configuration file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable verbose logging"
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d",
        help="Enable debug logging (includes verbose)"
    )
):
    """
    Show how the diff budget compresses changes, without calling AI.

    [bold blue]Examples:[/bold blue]

    [green]ai-changelog preview[/green]                         # Working directory
    [green]ai-changelog preview --commit HEAD~1 --mode detailed[/green]
    """
    settings = _load_settings(config_file, verbose, debug, mode=mode)
    try:
        ai_changelog = AIChangelog(settings, repo_path)
        ai_changelog.preview(commit, mode)
    except (ChangelogError, GitRepositoryError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def config(
    show: bool = typer.Option(
        False, "--show", "-s",
        help="Show current configuration"
    ),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p",
        help="Set AI provider (auto, ollama, openai, anthropic, none)"
    ),
    api_url: Optional[str] = typer.Option(
        None, "--url", "-u",
        help="Set AI API URL"
    ),
    model: Optional[str] = typer.Option(
        None, "--model",
        help="Set AI model name"
    ),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m",
        help="Set analysis mode (standard, detailed, enterprise)"
    ),
    save: bool = typer.Option(
        False, "--save",
        help="Save configuration to file"
    )
):
    """
    Manage AI Changelog configuration.

    [bold blue]Examples:[/bold blue]

    [green]ai-changelog config --show[/green]                              # Show current config
    [green]ai-changelog config --provider ollama --save[/green]            # Use Ollama
    [green]ai-changelog config --provider openai --model gpt-4o-mini --save[/green]
    """
    _check_choice("provider", provider, PROVIDERS)
    _check_choice("mode", mode, ANALYSIS_MODES)
    _run_config(show, provider, api_url, model, mode, save)


@app.command()
def test(
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p",
        help="Test a specific provider (ollama, openai, anthropic)"
    ),
    all_backends: bool = typer.Option(
        False, "--all", "-a",
        help="Test all providers"
    )
):
    """
    Test AI provider connectivity and functionality.

    [bold blue]Examples:[/bold blue]

    [green]ai-changelog test[/green]                      # Test configured provider
    [green]ai-changelog test --provider ollama[/green]    # Test Ollama specifically
    [green]ai-changelog test --all[/green]                # Test all providers
    """
    asyncio.run(_run_test(provider, all_backends))


async def _run_generate(settings: Settings, repo_path: Optional[Path], **options):
    """Run generate command."""
    try:
        ai_changelog = AIChangelog(settings, repo_path)
        ai_changelog.console.print_banner()
        await ai_changelog.initialize()
        await ai_changelog.generate_changelog(**options)

    except (ChangelogError, GitRepositoryError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Unexpected error occurred")
        console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(1)


async def _run_workspace(
    settings: Settings,
    repo_path: Optional[Path],
    version: Optional[str],
    mode: Optional[str],
    output: Optional[Path],
    dry_run: bool
):
    """Run workspace command."""
    try:
        ai_changelog = AIChangelog(settings, repo_path)
        ai_changelog.console.print_banner()
        await ai_changelog.initialize()
        await ai_changelog.generate_workspace_changelog(version, mode, output, dry_run)

    except (ChangelogError, GitRepositoryError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Unexpected error occurred")
        console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(1)


def _run_config(
    show: bool,
    provider: Optional[str],
    api_url: Optional[str],
    model: Optional[str],
    mode: Optional[str],
    save: bool
):
    """Run config command."""
    try:
        settings = Settings()

        # Show current configuration
        if show:
            ChangelogConsole(settings).show_settings(settings)
            return

        config_changed = False

        if provider:
            settings.ai.provider = provider
            config_changed = True
            console.print(f"[green]Set provider to:[/green] {provider}")

        if api_url:
            settings.ai.api_url = api_url
            config_changed = True
            console.print(f"[green]Set API URL to:[/green] {api_url}")

        if model:
            settings.ai.model = model
            config_changed = True
            console.print(f"[green]Set model to:[/green] {model}")

        if mode:
            settings.analysis.mode = mode
            config_changed = True
            console.print(f"[green]Set analysis mode to:[/green] {mode}")

        # Save if requested
        if save and config_changed:
            config_path = settings.config_dir / "config.json"
            settings.save_to_file(config_path)
            console.print(f"[green]Configuration saved to:[/green] {config_path}")
        elif config_changed:
            console.print("[yellow]Use --save to persist these changes[/yellow]")

        if not config_changed:
            console.print("[yellow]No configuration changes made[/yellow]")
            console.print("Use [green]--show[/green] to see current configuration")

    except OSError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


async def _run_test(provider: Optional[str], all_backends: bool):
    """Run test command."""
    if provider and provider not in BackendFactory.list_supported_backends():
        console.print(f"[red]Unsupported provider:[/red] {provider}")
        console.print(f"Supported: {', '.join(BackendFactory.list_supported_backends())}")
        raise typer.Exit(1)

    try:
        settings = Settings()
        setup_logging(settings.ui.log_level, settings.log_file)
        changelog_console = ChangelogConsole(settings)

        if all_backends:
            results = await check_all_backends(settings, changelog_console)
            if not any(results.values()):
                raise typer.Exit(1)
            return

        if not await check_ai_backend(settings, changelog_console, provider):
            raise typer.Exit(1)

    except OSError as e:
        console.print(f"[red]Test failed:[/red] {e}")
        raise typer.Exit(1)


def main():
    """Main entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
