"""
Configuration management with Pydantic validation and environment variable support.
"""

import json
import os
import platform
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


AnalysisMode = Literal["standard", "detailed", "enterprise"]
ProviderName = Literal["auto", "ollama", "openai", "anthropic", "none"]

DEFAULT_COMMIT_TYPES = ["feat", "fix", "perf", "refactor", "docs", "test", "build", "ci", "chore", "style", "revert", "merge"]

# Shortcut environment variables mapped onto ``ai`` fields
_AI_ENV_SHORTCUTS = {
    "AI_PROVIDER": "provider",
    "AI_API_URL": "api_url",
    "OLLAMA_API_URL": "api_url",
    "AI_MODEL": "model",
    "OLLAMA_MODEL": "model",
    "AI_API_KEY": "api_key",
}


class AISettings(BaseModel):
    """AI provider configuration."""

    provider: ProviderName = Field(
        default="auto",
        description="AI provider (auto probes Ollama, then OpenAI-compatible servers)"
    )
    api_url: str = Field(
        default="http://localhost:11434",
        description="AI server endpoint"
    )
    model: str = Field(
        default="llama3.2:3b",
        description="AI model to use"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for hosted providers"
    )
    timeout: int = Field(
        default=120,
        ge=10,
        le=600,
        description="API request timeout in seconds"
    )
    max_retries: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per AI call before falling back to rule-based analysis"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature"
    )


class AnalysisSettings(BaseModel):
    """Diff compression configuration."""

    mode: AnalysisMode = Field(
        default="standard",
        description="Analysis depth, selects the default diff budget"
    )
    max_total_size: Optional[int] = Field(
        default=None,
        ge=500,
        description="Character budget for all diffs in one prompt (mode default when unset)"
    )
    max_file_count: Optional[int] = Field(
        default=None,
        ge=1,
        description="Files shown individually in one prompt (mode default when unset)"
    )
    enable_filtering: bool = Field(
        default=True,
        description="Strip whitespace, import churn and debug logging from diffs"
    )
    enable_pattern_detection: bool = Field(
        default=True,
        description="Collapse mass renames, formatting and dependency updates"
    )
    high_priority_count: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Leading files that get structure-preserving truncation"
    )


class ChangelogSettings(BaseModel):
    """Changelog output and orchestration configuration."""

    output_file: Optional[str] = Field(
        default=None,
        description="Output file (CHANGELOG-<version>.md or AI_CHANGELOG.md when unset)"
    )
    commit_url: Optional[str] = Field(
        default=None,
        description="Commit link template containing %commit%"
    )
    commit_range_url: Optional[str] = Field(
        default=None,
        description="Compare link template containing %from% and %to%"
    )
    issue_url: Optional[str] = Field(
        default=None,
        description="Issue link template containing %issue%"
    )
    commit_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_COMMIT_TYPES),
        description="Commit types included in the changelog"
    )
    include_invalid_commits: bool = Field(
        default=True,
        description="Include non-conventional commits under 'Other Changes'"
    )
    include_workspace: bool = Field(
        default=True,
        description="Append uncommitted working-directory changes"
    )
    concurrency: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Concurrent AI requests per chunk"
    )
    chunk_delay: float = Field(
        default=0.1,
        ge=0.0,
        description="Seconds between concurrent chunks"
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        description="Commits per outer batch for large ranges"
    )
    batch_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds between outer batches"
    )
    batch_threshold: int = Field(
        default=20,
        ge=1,
        description="Commit count above which outer batching is used"
    )


class UISettings(BaseModel):
    """User interface configuration."""

    use_colors: bool = Field(
        default=True,
        description="Use colored output"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level"
    )


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    ai: AISettings = Field(default_factory=AISettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    changelog: ChangelogSettings = Field(default_factory=ChangelogSettings)
    ui: UISettings = Field(default_factory=UISettings)

    model_config = {
        "env_prefix": "AIC_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "extra": "ignore",
    }

    def __init__(self, **kwargs):
        # Load the default config file unless values were passed explicitly
        if not kwargs:
            config_path = default_config_path()
            if config_path.exists():
                try:
                    kwargs = json.loads(config_path.read_text())
                except (json.JSONDecodeError, OSError):
                    pass

        ai_overrides = {}
        for env_var, field_name in _AI_ENV_SHORTCUTS.items():
            value = os.getenv(env_var)
            if value and field_name not in ai_overrides:
                ai_overrides[field_name] = value

        provider = ai_overrides.get("provider") or (kwargs.get("ai") or {}).get("provider")
        if "api_key" not in ai_overrides:
            if provider == "anthropic" and os.getenv("ANTHROPIC_API_KEY"):
                ai_overrides["api_key"] = os.getenv("ANTHROPIC_API_KEY")
            elif os.getenv("OPENAI_API_KEY"):
                ai_overrides["api_key"] = os.getenv("OPENAI_API_KEY")

        if ai_overrides:
            kwargs["ai"] = {**(kwargs.get("ai") or {}), **ai_overrides}

        super().__init__(**kwargs)

    @classmethod
    def from_file(cls, config_path: Path) -> "Settings":
        """Load settings from a configuration file."""
        if config_path.exists():
            with open(config_path) as f:
                config_data = json.load(f)
            return cls(**config_data)
        return cls()

    def save_to_file(self, config_path: Path) -> None:
        """Save current settings to a configuration file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump()
        # Never persist secrets
        data["ai"].pop("api_key", None)
        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory."""
        return default_config_path().parent

    @property
    def cache_dir(self) -> Path:
        """Get the cache directory."""
        if platform.system() == "Windows":
            base = Path(os.environ.get("LOCALAPPDATA", "~"))
        else:
            base = Path(os.environ.get("XDG_CACHE_HOME", "~/.cache"))

        return (base / "ai-changelog").expanduser()

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.cache_dir / "ai-changelog.log"


def default_config_path() -> Path:
    """Get the default config file path."""
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", "~"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", "~/.config"))

    return (base / "ai-changelog" / "config.json").expanduser()
