"""
Shared fixtures: sample diffs, isolated settings, a temporary repository
and an in-process AI backend.
"""

import asyncio
import json
import subprocess
import textwrap
from pathlib import Path
from typing import List, Optional

import pytest

from ai_changelog.ai_backends.base import AIBackend, AIResponse
from ai_changelog.config.settings import Settings
from ai_changelog.git_ops.models import FileChange, FileStatus


SMALL_DIFF = textwrap.dedent("""\
    diff --git a/src/api/users.js b/src/api/users.js
    --- a/src/api/users.js
    +++ b/src/api/users.js
    @@ -1,4 +1,6 @@
     const express = require('express');
    +function listUsers(req, res) {
    +  return res.json(store.all());
    +}
     module.exports = router;
    """)

NOISY_DIFF = textwrap.dedent("""\
    --- a/src/app.js
    +++ b/src/app.js
    @@ -1,8 +1,8 @@
    +
    -
    +console.log('debug value', value);
    +const total = items.reduce(sum, 0);



    -const total = 0;
    """)

FORMATTING_DIFF = textwrap.dedent("""\
    --- a/src/module.js
    +++ b/src/module.js
    @@ -1,6 +1,6 @@
    -}
    +};
    -  );
    +  )
    +
    -
    +// eslint-disable-next-line no-unused-vars
    """)


def make_change(path: str, status: FileStatus = FileStatus.MODIFIED, diff: str = "", **kwargs) -> FileChange:
    return FileChange(path=path, status=status, diff=diff, **kwargs)


def long_diff(lines: int = 400, prefix: str = "+    value = compute(index)") -> str:
    body = [f"{prefix}  # line {i}" for i in range(lines)]
    return "--- a/src/app.js\n+++ b/src/app.js\n@@ -1,1 +1,400 @@\n" + "\n".join(body)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user config, caches and provider variables out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    for name in ("AI_PROVIDER", "AI_API_URL", "OLLAMA_API_URL", "AI_MODEL", "OLLAMA_MODEL",
                 "AI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ai={"provider": "none"},
        changelog={"chunk_delay": 0, "batch_delay": 0},
    )


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout


def _commit(repo: Path, message: str) -> None:
    _git(repo, "add", "-A")
    _git(repo, "commit", "-q", "-m", message)


@pytest.fixture
def tmp_git_repo(tmp_path) -> Path:
    """A repository with three conventional commits."""
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "config", "user.email", "dev@example.com")
    _git(repo, "config", "user.name", "Dev Example")
    _git(repo, "config", "commit.gpgsign", "false")

    (repo / "src" / "api").mkdir(parents=True)
    (repo / "src" / "api" / "users.js").write_text(
        "const express = require('express');\n"
        "function listUsers(req, res) {\n"
        "  return res.json([]);\n"
        "}\n"
        "module.exports = listUsers;\n"
    )
    _commit(repo, "feat(api): add user listing endpoint")

    (repo / "src" / "api" / "users.js").write_text(
        "const express = require('express');\n"
        "function listUsers(req, res) {\n"
        "  if (!req.query) {\n"
        "    return res.json([]);\n"
        "  }\n"
        "  return res.json(store.all());\n"
        "}\n"
        "module.exports = listUsers;\n"
    )
    _commit(repo, "fix: handle missing query\n\nCloses #12")

    (repo / "README.md").write_text("# Demo\n\nA small demo project.\n")
    _commit(repo, "docs: add readme")

    return repo


def analysis_json(**overrides) -> str:
    data = {
        "summary": "Added user listing endpoint",
        "impact": "medium",
        "category": "feature",
        "description": "Exposes a users listing route",
        "technicalDetails": "New listUsers() handler in src/api/users.js",
        "businessValue": "Clients can list users",
        "riskFactors": [],
        "recommendations": [],
        "breakingChanges": False,
        "migrationRequired": False,
    }
    data.update(overrides)
    return json.dumps(data)


class FakeBackend(AIBackend):
    """Backend answering from memory, recording concurrency."""

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None, delay: float = 0.0):
        super().__init__(api_url="http://fake", model="fake-model")
        self.backend_type = "fake"
        self.responses = list(responses or [])
        self.error = error
        self.delay = delay
        self.calls: List[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def call_api(self, prompt, system_prompt=None, max_tokens=None, temperature=None) -> AIResponse:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "max_tokens": max_tokens})
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            content = self.responses.pop(0) if self.responses else analysis_json()
            return AIResponse(content=content, model=self.model, backend_type=self.backend_type)
        finally:
            self.in_flight -= 1

    async def health_check(self) -> bool:
        return self.error is None

    async def list_models(self) -> List[str]:
        return [self.model]
