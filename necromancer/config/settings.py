from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    sample_size: int = 20
    max_relationships: int = 200

    # None = enabled for every remote provider, disabled for ollama
    privacy_cloak: bool | None = None
    save_mapping: bool = False
    mapping_dir: str = ".necromancer"
    redaction_marker: str = "[REDACTED]"

    analysis_provider: str = "deepseek"
    analysis_temperature: float = 0.7

    openai_api_key: str = ""
    openai_model_name: str = "gpt-4o-mini"
    openai_timeout_seconds: int = 120

    deepseek_api_key: str = ""
    deepseek_model_name: str = "deepseek-chat"
    deepseek_timeout_seconds: int = 120

    ollama_api_key: str = "ollama"
    ollama_model_name: str = "llama3"
    ollama_base_url: str = "http://localhost:11434/v1"
    ollama_timeout_seconds: int = 300

    openrouter_api_key: str = ""
    openrouter_model_name: str = ""
    openrouter_timeout_seconds: int = 120

    groq_api_key: str = ""
    groq_model_name: str = ""
    groq_timeout_seconds: int = 120

    together_api_key: str = ""
    together_model_name: str = ""
    together_timeout_seconds: int = 120

    openai_compatible_api_key: str = ""
    openai_compatible_model_name: str = ""
    openai_compatible_base_url: str = ""
    openai_compatible_timeout_seconds: int = 120

    def cloak_enabled(self) -> bool:
        """Resolve the privacy cloak toggle against the selected provider."""
        if self.privacy_cloak is not None:
            return self.privacy_cloak
        return self.analysis_provider.lower() != "ollama"
