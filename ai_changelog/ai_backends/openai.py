"""
OpenAI-compatible chat completions backend.

Works with OpenAI itself and with local servers exposing the same API
(LM Studio, llama.cpp server, vLLM).
"""

from typing import Dict, List, Optional

from loguru import logger

from .base import AIBackend, AIResponse


class OpenAIBackend(AIBackend):
    """OpenAI-compatible AI backend implementation."""

    default_url = "https://api.openai.com"

    @property
    def _base(self) -> str:
        return self.api_url if self.api_url.endswith("/v1") else f"{self.api_url}/v1"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def call_api(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AIResponse:
        """Call the chat completions endpoint."""
        self._log_request(prompt)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "stream": False,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        data = await self._post_json(f"{self._base}/chat/completions", payload, headers=self._headers())

        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""
        usage = data.get("usage") or {}

        return AIResponse(
            content=content,
            model=data.get("model", self.model),
            tokens_used=usage.get("total_tokens"),
            backend_type=self.backend_type,
            raw_response=data
        )

    async def health_check(self) -> bool:
        """Check if the models endpoint answers."""
        try:
            await self._get_json(f"{self._base}/models", headers=self._headers(), timeout=5)
            return True
        except Exception as e:
            logger.debug(f"OpenAI-compatible health check failed: {e}")
            return False

    async def list_models(self) -> List[str]:
        try:
            data = await self._get_json(f"{self._base}/models", headers=self._headers())
        except Exception as e:
            logger.error(f"Failed to list models: {e}")
            return []

        return [model.get("id", "") for model in data.get("data", []) if model.get("id")]
