"""
Anthropic Messages API backend.
"""

from typing import Dict, List, Optional

from loguru import logger

from .base import AIBackend, AIResponse


ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 2000


class AnthropicBackend(AIBackend):
    """Anthropic AI backend implementation."""

    default_url = "https://api.anthropic.com"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def call_api(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AIResponse:
        """Call the messages endpoint."""
        self._log_request(prompt)

        payload = {
            "model": self.model,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(f"{self.api_url}/v1/messages", payload, headers=self._headers())

        content = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        tokens = (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)

        return AIResponse(
            content=content,
            model=data.get("model", self.model),
            tokens_used=tokens or None,
            backend_type=self.backend_type,
            raw_response=data
        )

    async def health_check(self) -> bool:
        """Anthropic is considered available when a key is set and models list."""
        if not self.api_key:
            logger.debug("Anthropic health check skipped: no API key")
            return False
        try:
            await self._get_json(f"{self.api_url}/v1/models", headers=self._headers(), timeout=5)
            return True
        except Exception as e:
            logger.debug(f"Anthropic health check failed: {e}")
            return False

    async def list_models(self) -> List[str]:
        try:
            data = await self._get_json(f"{self.api_url}/v1/models", headers=self._headers())
        except Exception as e:
            logger.error(f"Failed to list Anthropic models: {e}")
            return []

        return [model.get("id", "") for model in data.get("data", []) if model.get("id")]
