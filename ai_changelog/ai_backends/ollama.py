"""
Ollama AI backend implementation.
"""

from typing import List, Optional

from loguru import logger

from .base import AIBackend, AIResponse


class OllamaBackend(AIBackend):
    """Ollama AI backend implementation."""

    default_url = "http://localhost:11434"

    async def call_api(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AIResponse:
        """Call the Ollama API."""
        self._log_request(prompt)

        options = {
            "temperature": self.temperature if temperature is None else temperature,
            "top_p": 0.9,
        }
        if max_tokens:
            options["num_predict"] = max_tokens

        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(f"{self.api_url}/api/generate", payload)

        return AIResponse(
            content=data.get("response", ""),
            model=self.model,
            tokens_used=data.get("eval_count"),
            backend_type=self.backend_type,
            raw_response=data
        )

    async def health_check(self) -> bool:
        """Check if Ollama is healthy."""
        try:
            await self._get_json(f"{self.api_url}/api/tags", timeout=5)
            return True
        except Exception as e:
            logger.debug(f"Ollama health check failed: {e}")
            return False

    async def list_models(self) -> List[str]:
        """List available Ollama models."""
        try:
            data = await self._get_json(f"{self.api_url}/api/tags")
        except Exception as e:
            logger.error(f"Failed to list Ollama models: {e}")
            return []

        models = [model.get("name", "") for model in data.get("models", [])]
        return [m for m in models if m]

    async def auto_detect_model(self) -> str:
        """Pick the configured model if installed, otherwise a preferred one."""
        models = await self.list_models()
        if any(self.model == m or m.startswith(f"{self.model}:") for m in models):
            return self.model

        preferred = ["llama3.2:3b", "qwen2.5-coder:7b", "qwen3:8b", "mistral:7b", "llama3.2:1b"]
        for model in preferred:
            if model in models:
                logger.info(f"Auto-detected Ollama model: {model}")
                return model

        if models:
            logger.info(f"Using first available model: {models[0]}")
            return models[0]

        logger.warning("No Ollama models found, using configured model")
        return self.model
