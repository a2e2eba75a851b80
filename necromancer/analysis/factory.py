from typing import ClassVar

from necromancer.analysis.client_base import BaseAnalysisClient
from necromancer.analysis.example_client_adapter import ExampleClientAdapter
from necromancer.analysis.openai_client_adapter import OpenAIClientAdapter
from necromancer.config.settings import Settings


class AnalysisClientFactory:
    """Creates the configured analysis client adapter."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "deepseek": "https://api.deepseek.com/v1",
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "together": "https://api.together.xyz/v1",
    }

    @classmethod
    def supported_providers(cls) -> list[str]:
        return [
            "example",
            "ollama",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]

    @classmethod
    def create(cls, settings: Settings) -> BaseAnalysisClient:
        """Create a configured client from application settings.

        Raises:
            ValueError: for an unknown provider or a missing compatible base URL.
        """
        provider = settings.analysis_provider.lower()
        if provider == "example":
            return ExampleClientAdapter()
        return OpenAIClientAdapter(
            api_key=cls._resolve_api_key(provider, settings),
            timeout_seconds=cls._resolve_timeout_seconds(provider, settings),
            base_url=cls._resolve_base_url(provider, settings),
        )

    @classmethod
    def model_name(cls, settings: Settings) -> str:
        provider = settings.analysis_provider.lower()
        key_map = {
            "example": "example",
            "openai": settings.openai_model_name,
            "deepseek": settings.deepseek_model_name,
            "ollama": settings.ollama_model_name,
            "openrouter": settings.openrouter_model_name,
            "groq": settings.groq_model_name,
            "together": settings.together_model_name,
            "openai_compatible": settings.openai_compatible_model_name,
        }
        return key_map.get(provider, "") or ""

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "ollama":
            return settings.ollama_base_url
        if provider == "openai_compatible":
            url = settings.openai_compatible_base_url.strip()
            if not url:
                raise ValueError(
                    "openai_compatible_base_url is required for "
                    "analysis_provider=openai_compatible"
                )
            return url
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return default_base_url
        raise ValueError(
            f"Unknown analysis provider '{provider}'. "
            f"Choose from: {cls.supported_providers()}"
        )

    @classmethod
    def _resolve_api_key(cls, provider: str, settings: Settings) -> str:
        key_map = {
            "openai": settings.openai_api_key,
            "deepseek": settings.deepseek_api_key,
            "ollama": settings.ollama_api_key,
            "openrouter": settings.openrouter_api_key,
            "groq": settings.groq_api_key,
            "together": settings.together_api_key,
            "openai_compatible": settings.openai_compatible_api_key,
        }
        return key_map.get(provider, "") or ""

    @classmethod
    def _resolve_timeout_seconds(cls, provider: str, settings: Settings) -> int:
        key_map = {
            "openai": settings.openai_timeout_seconds,
            "deepseek": settings.deepseek_timeout_seconds,
            "ollama": settings.ollama_timeout_seconds,
            "openrouter": settings.openrouter_timeout_seconds,
            "groq": settings.groq_timeout_seconds,
            "together": settings.together_timeout_seconds,
            "openai_compatible": settings.openai_compatible_timeout_seconds,
        }
        return key_map.get(provider, 120) or 120
