"""
Abstract base class for AI backends with plugin architecture.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger


@dataclass
class AIResponse:
    """Structured AI response data."""

    content: str
    model: str
    tokens_used: Optional[int] = None
    response_time: Optional[float] = None
    backend_type: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class AIBackend(ABC):
    """Abstract base class for AI backends."""

    default_url = "http://localhost:11434"

    def __init__(
        self,
        api_url: str,
        model: str,
        timeout: int = 120,
        api_key: Optional[str] = None,
        temperature: float = 0.3,
    ):
        """Initialize the AI backend."""
        self.api_url = api_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.api_key = api_key
        self.temperature = temperature
        self.backend_type = self.__class__.__name__.lower().replace('backend', '')

    @abstractmethod
    async def call_api(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AIResponse:
        """Call the AI API with the given prompt."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the AI backend is healthy and responsive."""
        pass

    @abstractmethod
    async def list_models(self) -> List[str]:
        """List available models from the backend."""
        pass

    def _timeout(self, total: Optional[float] = None) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=total or self.timeout)

    async def _post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded body, wrapping failures."""
        async with aiohttp.ClientSession() as session:
            try:
                async with session.post(url, json=payload, headers=headers, timeout=self._timeout()) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise AIBackendError(
                            f"{self.backend_type} API returned HTTP {response.status}: {body[:200]}",
                            status=response.status,
                        )
                    return await response.json(content_type=None)
            except aiohttp.ClientError as e:
                logger.debug(f"{self.backend_type} API error: {e}")
                raise AIBackendError(f"{self.backend_type} API request failed: {e}") from e
            except asyncio.TimeoutError as e:
                logger.debug(f"{self.backend_type} API timeout after {self.timeout}s")
                raise AIBackendError(f"{self.backend_type} API timed out after {self.timeout}s") from e

    async def _get_json(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: float = 10) -> Dict[str, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, headers=headers, timeout=self._timeout(timeout)) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

    def _log_request(self, prompt: str) -> None:
        """Log the API request details."""
        logger.debug(f"AI API request to {self.backend_type}")
        logger.debug(f"URL: {self.api_url}")
        logger.debug(f"Model: {self.model}")
        logger.debug(f"Prompt length: {len(prompt)} characters")
        logger.debug(f"Timeout: {self.timeout}s")

    def _log_response(self, response: AIResponse) -> None:
        """Log the API response details."""
        logger.debug(f"AI API response from {self.backend_type}")
        logger.debug(f"Response length: {len(response.content)} characters")
        if response.tokens_used:
            logger.debug(f"Tokens used: {response.tokens_used}")
        if response.response_time:
            logger.debug(f"Response time: {response.response_time:.2f}s")

    async def call_with_retry(
        self,
        prompt: str,
        max_retries: int = 1,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AIResponse:
        """Call the AI API, retrying with exponential backoff when ``max_retries`` > 1."""
        last_exception: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                logger.debug(f"AI API attempt {attempt + 1}/{max_retries}")
                start_time = time.time()

                response = await self.call_api(prompt, system_prompt=system_prompt, max_tokens=max_tokens)
                response.response_time = time.time() - start_time

                self._log_response(response)
                return response

            except Exception as e:
                last_exception = e
                logger.debug(f"AI API attempt {attempt + 1} failed: {e}")

                if attempt < max_retries - 1:
                    wait_time = 2 ** attempt
                    logger.debug(f"Retrying in {wait_time} seconds...")
                    await asyncio.sleep(wait_time)

        raise last_exception


@dataclass
class ErrorDiagnosis:
    """User-facing explanation of a provider failure."""

    message: str
    suggestions: List[str] = field(default_factory=list)


def describe_error(error: Exception, provider: Optional[str] = None) -> ErrorDiagnosis:
    """Classify a provider failure into a message with suggestions."""
    name = provider or "AI provider"
    text = str(error)
    lowered = text.lower()
    status = getattr(error, "status", None)

    if status in (401, 403) or "unauthorized" in lowered or "api key" in lowered:
        return ErrorDiagnosis(
            f"{name} rejected the credentials",
            ["Check the API key (AI_API_KEY, OPENAI_API_KEY or ANTHROPIC_API_KEY)"],
        )
    if status == 429 or "rate limit" in lowered:
        return ErrorDiagnosis(
            f"{name} rate limit reached",
            ["Wait and retry", "Lower changelog.concurrency"],
        )
    if status == 404 or ("model" in lowered and "not found" in lowered):
        return ErrorDiagnosis(
            f"{name} does not know the configured model",
            ["Run 'ai-changelog test' to list available models", "Set AI_MODEL"],
        )
    if "timed out" in lowered or isinstance(error, asyncio.TimeoutError):
        return ErrorDiagnosis(
            f"{name} did not answer in time",
            ["Increase ai.timeout", "Use a smaller model or --mode standard"],
        )
    if "request failed" in lowered or "connect" in lowered or isinstance(error, aiohttp.ClientConnectionError):
        return ErrorDiagnosis(
            f"Could not reach {name}",
            ["Check that the server is running", "Check AI_API_URL"],
        )
    return ErrorDiagnosis(f"{name} failed: {text}", [])


class AIBackendError(Exception):
    """Custom exception for AI provider failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
