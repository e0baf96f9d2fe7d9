"""
AI backend factory with auto-detection capabilities.
"""

from typing import Dict, List, Optional

from loguru import logger

from .anthropic import AnthropicBackend
from .base import AIBackend
from .ollama import OllamaBackend
from .openai import OpenAIBackend
from ..config.settings import Settings


OLLAMA_DEFAULT_URL = "http://localhost:11434"


class BackendFactory:
    """Factory for creating AI backends with auto-detection."""

    _backends = {
        "ollama": OllamaBackend,
        "openai": OpenAIBackend,
        "anthropic": AnthropicBackend,
    }

    @classmethod
    async def create_backend(
        cls,
        settings: Settings,
        backend_type: Optional[str] = None
    ) -> Optional[AIBackend]:
        """Create an AI backend, or None when AI analysis is disabled or unavailable."""
        provider = backend_type or settings.ai.provider

        if provider == "none":
            logger.info("AI provider disabled, using rule-based analysis")
            return None

        if provider != "auto":
            return cls._create_backend_instance(provider, settings)

        logger.info("Auto-detecting AI backend...")
        detected = await cls._detect_backend(settings)

        if not detected:
            logger.warning("Could not auto-detect an AI backend, using rule-based analysis")
            return None

        return cls._create_backend_instance(detected, settings)

    @classmethod
    def _create_backend_instance(cls, backend_type: str, settings: Settings, timeout: Optional[int] = None) -> AIBackend:
        """Create a backend instance of the specified type."""
        if backend_type not in cls._backends:
            raise ValueError(f"Unknown backend type: {backend_type}")

        backend_class = cls._backends[backend_type]

        # The stock URL points at Ollama; hosted providers use their own
        api_url = settings.ai.api_url
        if backend_type != "ollama" and api_url.rstrip("/") == OLLAMA_DEFAULT_URL:
            api_url = backend_class.default_url

        return backend_class(
            api_url=api_url,
            model=settings.ai.model,
            timeout=timeout or settings.ai.timeout,
            api_key=settings.ai.api_key,
            temperature=settings.ai.temperature,
        )

    @classmethod
    async def _detect_backend(cls, settings: Settings) -> Optional[str]:
        """Auto-detect the backend type by probing endpoints."""
        ollama = cls._create_backend_instance("ollama", settings, timeout=10)
        if await ollama.health_check():
            logger.info("Auto-detected Ollama backend")
            return "ollama"

        openai = cls._create_backend_instance("openai", settings, timeout=10)
        if await openai.health_check():
            logger.info("Auto-detected OpenAI-compatible backend")
            return "openai"

        logger.warning("No backend detected via health checks")
        return None

    @classmethod
    async def test_all_backends(cls, settings: Settings) -> Dict[str, bool]:
        """Test all backend types and return their status."""
        results = {}

        for backend_type in cls._backends:
            try:
                backend = cls._create_backend_instance(backend_type, settings)
                results[backend_type] = await backend.health_check()
            except Exception as e:
                logger.debug(f"Failed to test {backend_type}: {e}")
                results[backend_type] = False

        return results

    @classmethod
    def list_supported_backends(cls) -> List[str]:
        """List all supported backend types."""
        return list(cls._backends.keys())
