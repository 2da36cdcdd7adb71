from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from models.provider import Provider

class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API Settings
    PROJECT_NAME: str = "Image Edit Relay"
    VERSION: str = "1.0.0"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Provider selection
    PROVIDER: str = "gemini"

    # Gemini
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash-image-preview"
    GEMINI_FALLBACK_MODEL: str = ""
    GEMINI_TIMEOUT_MS: int = 15000

    # OpenRouter
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_MODEL: str = "google/gemini-2.0-flash-exp"

    # Runware
    RUNWARE_API_KEY: str = ""
    RUNWARE_MODEL: str = "runware:101@1"
    RUNWARE_TIMEOUT_MS: int = 60000
    RUNWARE_WIDTH: int = 1024
    RUNWARE_HEIGHT: int = 1024

    # Request Limits
    DEFAULT_RESULTS_COUNT: int = 1
    MAX_BODY_BYTES: int = 25 * 1024 * 1024  # 25MB

    # Retry Configuration
    RETRY_MAX_RETRIES: int = 2
    RETRY_BASE_DELAY_MS: int = 400
    RETRY_MAX_DELAY_MS: int = 2000

    # Session Storage
    SESSIONS_DIR: str = "sessions"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._validate_provider()

    def _validate_provider(self):
        """Normalize PROVIDER and reject unknown values at startup."""
        value = (self.PROVIDER or "").strip().lower()
        allowed = [p.value for p in Provider]
        if value not in allowed:
            raise ValueError(
                f"Unknown PROVIDER '{self.PROVIDER}'. Expected one of: {', '.join(allowed)}"
            )
        self.PROVIDER = value

    @property
    def active_provider(self) -> Provider:
        return Provider(self.PROVIDER)

    def credential_for(self, provider: Provider) -> Optional[str]:
        """Return the API key configured for a provider, or None when unset."""
        key = {
            Provider.GEMINI: self.GEMINI_API_KEY,
            Provider.OPENROUTER: self.OPENROUTER_API_KEY,
            Provider.RUNWARE: self.RUNWARE_API_KEY,
        }[provider]
        return key or None

    @property
    def gemini_fallback_model(self) -> Optional[str]:
        """Fallback model name, only when set and distinct from the primary."""
        fallback = self.GEMINI_FALLBACK_MODEL.strip()
        if fallback and fallback != self.GEMINI_MODEL:
            return fallback
        return None

    @property
    def default_results_count(self) -> int:
        return max(1, min(4, self.DEFAULT_RESULTS_COUNT))


@lru_cache()
def get_settings() -> Settings:
    """Build the settings object once per process."""
    return Settings()
