"""Tests for AnalysisClientFactory."""

from unittest.mock import patch

import pytest

from necromancer.analysis.client_base import BaseAnalysisClient
from necromancer.analysis.example_client_adapter import ExampleClientAdapter
from necromancer.analysis.factory import AnalysisClientFactory
from necromancer.config.settings import Settings


class TestAnalysisClientFactory:
    def test_creates_example_adapter_for_example_provider(self) -> None:
        settings = Settings(analysis_provider="example")
        client = AnalysisClientFactory.create(settings)
        assert isinstance(client, BaseAnalysisClient)
        assert isinstance(client, ExampleClientAdapter)

    def test_uses_openai_settings(self) -> None:
        settings = Settings(
            analysis_provider="openai",
            openai_api_key="openai-key",
            openai_model_name="gpt-4",
            openai_timeout_seconds=42,
        )
        with patch("necromancer.analysis.factory.OpenAIClientAdapter") as mock_adapter:
            AnalysisClientFactory.create(settings)
        mock_adapter.assert_called_once_with(
            api_key="openai-key",
            timeout_seconds=42,
            base_url=None,
        )

    def test_uses_default_base_url_for_deepseek(self) -> None:
        settings = Settings(analysis_provider="deepseek", deepseek_api_key="k")
        with patch("necromancer.analysis.factory.OpenAIClientAdapter") as mock_adapter:
            AnalysisClientFactory.create(settings)
        mock_adapter.assert_called_once_with(
            api_key="k",
            timeout_seconds=120,
            base_url="https://api.deepseek.com/v1",
        )

    def test_uses_ollama_base_url(self) -> None:
        settings = Settings(
            analysis_provider="ollama",
            ollama_base_url="http://gpu-box:11434/v1",
        )
        with patch("necromancer.analysis.factory.OpenAIClientAdapter") as mock_adapter:
            AnalysisClientFactory.create(settings)
        mock_adapter.assert_called_once_with(
            api_key="ollama",
            timeout_seconds=300,
            base_url="http://gpu-box:11434/v1",
        )

    def test_uses_custom_base_url_for_openai_compatible(self) -> None:
        settings = Settings(
            analysis_provider="openai_compatible",
            openai_compatible_api_key="k",
            openai_compatible_model_name="m",
            openai_compatible_base_url="https://llm.internal/v1",
        )
        with patch("necromancer.analysis.factory.OpenAIClientAdapter") as mock_adapter:
            AnalysisClientFactory.create(settings)
        mock_adapter.assert_called_once_with(
            api_key="k",
            timeout_seconds=120,
            base_url="https://llm.internal/v1",
        )

    def test_openai_compatible_requires_base_url(self) -> None:
        settings = Settings(
            analysis_provider="openai_compatible",
            openai_compatible_base_url="  ",
        )
        with pytest.raises(ValueError, match="openai_compatible_base_url"):
            AnalysisClientFactory.create(settings)

    def test_unknown_provider_raises_value_error(self) -> None:
        settings = Settings(analysis_provider="unknown")
        with pytest.raises(ValueError, match="Unknown analysis provider"):
            AnalysisClientFactory.create(settings)

    def test_model_name(self) -> None:
        assert AnalysisClientFactory.model_name(
            Settings(analysis_provider="groq", groq_model_name="llama-3.1-70b")
        ) == "llama-3.1-70b"
        assert AnalysisClientFactory.model_name(Settings(analysis_provider="example")) == "example"
        assert AnalysisClientFactory.model_name(Settings(analysis_provider="nope")) == ""

    def test_supported_providers(self) -> None:
        providers = AnalysisClientFactory.supported_providers()
        assert {"example", "openai", "deepseek", "ollama", "openai_compatible"} <= set(providers)
