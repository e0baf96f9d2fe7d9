"""
AI prompt templates for commit analysis and working-directory changelogs.

Both prompts are built from a ``ProcessingResult`` so that the amount of diff
text sent to the provider is bounded by the analysis mode's budget.
"""

from typing import List, Optional, Sequence

from loguru import logger

from ..config.settings import AnalysisSettings
from ..git_ops.models import CommitInfo, DiffStats, FileChange
from .diff_processor import DiffProcessor, ProcessingResult


COMMIT_MAX_TOKENS = {"standard": 2000, "detailed": 3000, "enterprise": 4000}
WORKSPACE_MAX_TOKENS = {"standard": 1200, "detailed": 2000, "enterprise": 2500}
LARGE_COMMIT_FILES = 50
LARGE_COMMIT_LINES = 10000
LARGE_COMMIT_EXTRA_TOKENS = 2000
MAX_TOKENS_CAP = 8000
MERGE_UPGRADE_FILES = 10
WORKSPACE_TEMPERATURE = 0.2

MASTER_SYSTEM_PROMPT = (
    "You are a release manager and senior engineer who turns git commits into "
    "clear, factual changelog entries. You only describe what the diff shows, "
    "you never speculate, and you always answer with a single JSON object."
)

MODE_SYSTEM_PROMPTS = {
    "standard": "Keep the analysis concise: one sentence per field, focus on user-visible impact.",
    "detailed": (
        "Give a detailed analysis: name the key functions, modules and APIs that changed "
        "and explain the functional purpose of each change."
    ),
    "enterprise": (
        "Give an enterprise-grade analysis: cover user impact, technical details, risk, "
        "migration needs and operational recommendations."
    ),
}

WORKSPACE_SYSTEM_PROMPT = (
    "You are an expert at analyzing code changes and generating detailed but focused "
    "changelog entries. You MUST only describe changes that are visible in the provided "
    "diff content. Include specific function and method names and key technical details. "
    "Be precise and factual and avoid overwhelming verbosity."
)


class PromptBuilder:
    """Build budgeted prompts for commit and workspace analysis."""

    def __init__(self, analysis: Optional[AnalysisSettings] = None):
        self.analysis = analysis or AnalysisSettings()

    @property
    def mode(self) -> str:
        return self.analysis.mode

    def make_processor(self, mode: Optional[str] = None) -> DiffProcessor:
        """Create a DiffProcessor configured from the analysis settings."""
        return DiffProcessor(
            analysis_mode=mode or self.mode,
            max_total_size=self.analysis.max_total_size,
            priority_files=self.analysis.max_file_count,
            enable_filtering=self.analysis.enable_filtering,
            enable_pattern_detection=self.analysis.enable_pattern_detection,
            high_priority_count=self.analysis.high_priority_count,
        )

    def effective_mode(self, commit: CommitInfo, files: Sequence[FileChange]) -> str:
        """Merge commits touching many files get the detailed budget."""
        if commit.is_merge and len(files) > MERGE_UPGRADE_FILES and self.mode == "standard":
            return "detailed"
        return self.mode

    def system_prompt(self, mode: Optional[str] = None) -> str:
        mode_prompt = MODE_SYSTEM_PROMPTS.get(mode or self.mode, MODE_SYSTEM_PROMPTS["standard"])
        return f"{MASTER_SYSTEM_PROMPT}\n\n{mode_prompt}"

    def workspace_system_prompt(self) -> str:
        return WORKSPACE_SYSTEM_PROMPT

    def max_tokens(self, mode: Optional[str] = None, files: int = 0, lines: int = 0) -> int:
        """Response token limit for a commit analysis."""
        tokens = COMMIT_MAX_TOKENS.get(mode or self.mode, COMMIT_MAX_TOKENS["standard"])
        if files > LARGE_COMMIT_FILES or lines > LARGE_COMMIT_LINES:
            tokens = min(tokens + LARGE_COMMIT_EXTRA_TOKENS, MAX_TOKENS_CAP)
        return tokens

    def workspace_max_tokens(self, mode: Optional[str] = None) -> int:
        return WORKSPACE_MAX_TOKENS.get(mode or self.mode, WORKSPACE_MAX_TOKENS["standard"])

    def build_commit_prompt(
        self,
        commit: CommitInfo,
        files: Sequence[FileChange],
        stats: Optional[DiffStats] = None,
        result: Optional[ProcessingResult] = None,
    ) -> str:
        """Build the commit-analysis prompt asking for a JSON summary."""
        stats = stats or DiffStats(files=len(files))
        if result is None:
            result = self.make_processor(self.effective_mode(commit, files)).process(files)

        merge_note = ' (MERGE COMMIT - categorize as "merge")' if commit.is_merge else ""

        prompt = f"""Analyze this git commit for changelog generation.

**COMMIT:** {commit.subject}{merge_note}
**FILES:** {len(files)} files ({result.files_processed_count} analyzed, {result.files_skipped_count} summarized), {stats.total_lines} lines changed{render_patterns(result)}

**TARGET AUDIENCE:** End users and project stakeholders who need to understand what changed and why it matters.

**ANALYSIS APPROACH:**
1. **First, categorize correctly** using the rules below
2. **Then, focus on user impact** - what can they do now that they couldn't before?
3. **Keep technical details minimal** - only what's necessary for understanding
4. **Be definitive and factual** - never use uncertain language like "likely", "probably" or "appears to"
5. **Base analysis on actual code changes** - only describe what you can verify from the diff content
6. **For merge commits** - ALWAYS categorize as "merge" regardless of content

**PROCESSED DIFFS:**{render_files(result)}

**CATEGORIZATION RULES (STRICTLY ENFORCED):**
- **merge**: Any commit with "Merge" in the subject line (branch merges, pull request merges)
- **fix**: ONLY actual bug fixes - broken functionality now works correctly
- **feature**: New capabilities, tools, or major functionality additions (NOT merges)
- **refactor**: Code restructuring without changing what users can do
- **perf**: Performance improvements users will notice
- **docs**: Documentation updates only
- **build/chore**: Build system, dependencies, maintenance

**CRITICAL VALIDATION:**
- Commits with "Merge" in subject = "merge" category ALWAYS
- Large additions (>10 files OR >1000 lines) = "feature" or "refactor", NEVER "fix" (unless merge)
- New modules/classes/tools = "feature" (unless merge)
- Only actual bug repairs = "fix"

Provide a JSON response with ONLY these fields:
{{
  "summary": "{commit.subject}",
  "impact": "critical|high|medium|low|minimal",
  "category": "feature|fix|security|breaking|docs|style|refactor|perf|test|chore|merge",
  "description": "One clear, factual sentence describing what users can now do or what now works correctly",
  "technicalDetails": "Maximum 2 factual sentences about key technical changes",
  "businessValue": "Brief, definitive user benefit in 1 sentence",
  "riskFactors": ["minimal", "list"],
  "recommendations": ["minimal", "list"],
  "breakingChanges": false,
  "migrationRequired": false
}}"""

        logger.debug(f"Commit prompt for {commit.hash}: {len(prompt)} characters, {result.total_size} diff characters")
        return prompt

    def build_workspace_prompt(
        self,
        result: ProcessingResult,
        total_files: int,
        categories: Sequence[str],
        mode: Optional[str] = None,
    ) -> str:
        """Build the working-directory changelog prompt."""
        prompt = f"""Generate a comprehensive AI changelog for the following working directory changes:

**Analysis Mode**: {mode or self.mode}
**Total Files**: {total_files} ({result.files_processed_count} analyzed, {result.files_skipped_count} summarized)
**Categories**: {', '.join(categories)}{render_patterns(result)}

**PROCESSED FILES:**{render_files(result, summary_heading="[REMAINING FILES]")}

CRITICAL INSTRUCTIONS FOR ANALYSIS:
1. **ONLY DESCRIBE CHANGES VISIBLE IN THE DIFF CONTENT** - Do not invent or assume changes
2. **BE FACTUAL AND PRECISE** - Only mention specific lines, functions and imports that you can see
3. **NO ASSUMPTIONS OR SPECULATION** - If you can't see it in the diff, don't mention it
4. **DO NOT MAKE UP INTEGRATION DETAILS** - Don't assume files work together unless explicitly shown

STRICT FORMATTING REQUIREMENTS:
Generate one Markdown bullet per change, based ONLY on visible diff content:
- (type) Detailed but focused description - key functional changes, function names and important technical details

EXAMPLE:
- (feature) Created new exporter.py file - Added CsvExporter class with write_rows() and close() methods.

ONLY describe what you can literally see in the diff content."""

        logger.debug(f"Workspace prompt: {len(prompt)} characters")
        return prompt


def render_patterns(result: ProcessingResult) -> str:
    if not result.patterns:
        return ""
    lines = "\n".join(f"- {pattern.description}" for pattern in result.patterns.values())
    return f"\n**BULK PATTERNS DETECTED:**\n{lines}\n"


def render_files(result: ProcessingResult, summary_heading: str = "[REMAINING FILES SUMMARY]") -> str:
    """Render processed files as prompt sections."""
    sections: List[str] = []
    for item in result.processed_files:
        if item.is_summary:
            sections.append(f"\n**{summary_heading}:**\n{item.diff}\n")
            continue

        compression = f" [compressed from {item.original_size} chars]" if item.compression_applied else ""
        pattern = f" [{item.bulk_pattern}]" if item.bulk_pattern else ""
        sections.append(f"\n**{item.path}** ({item.status}){compression}{pattern}:\n{item.diff}\n")

    return "".join(sections)
