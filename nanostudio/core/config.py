"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Nano Studio API"
    DEBUG: bool = False

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./nano_banana.db"

    # Redis (background reconciliation queue)
    REDIS_URL: str = "redis://localhost:6379"

    # Synchronous multimodal engine (Gemini image models)
    # Comma-separated list; each attempt rotates to the next key
    GEMINI_API_KEYS: str = ""
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-3-pro-image-preview"
    GEMINI_MAX_RETRIES: int = 3  # Retries after the first attempt
    GEMINI_INITIAL_BACKOFF: float = 1.5  # Seconds, doubled per attempt on rate limits
    GEMINI_RETRY_DELAY: float = 1.0  # Seconds, for any other error

    # Queue engines (Kie.ai proxy for Midjourney and nano-banana-pro)
    KIE_API_KEY: str = ""
    KIE_BASE_URL: str = "https://api.kie.ai/api/v1"
    KIE_UPLOAD_URL: str = "https://kieai.redpandaai.co/api/file-base64-upload"
    KIE_POLL_INTERVAL: float = 2.0
    KIE_MAX_POLL_ATTEMPTS: int = 150  # 5 minutes at 2s
    KIE_HTTP_TIMEOUT: float = 60.0
    KIE_FALLBACK_TO_GEMINI: bool = True

    # Generation
    DEFAULT_ENGINE: str = "kie"
    CREDIT_DEBIT_POLICY: str = "on_success"  # on_success | on_accept

    # Users & credits
    DEFAULT_USER_ID: int = 1
    DEFAULT_CREDITS: int = 100

    # History
    HISTORY_LIMIT: int = 200

    # Local image cache
    CACHE_IMAGES_LOCALLY: bool = False
    LOCAL_STORAGE_PATH: str = "./generations"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Client submission queue
    CLIENT_BASE_URL: str = "http://localhost:8000"
    CLIENT_MAX_CONCURRENT: int = 2
    CLIENT_POLL_INTERVAL: float = 3.0

    # Worker settings
    RECONCILE_BATCH_SIZE: int = 50
    JOB_TIMEOUT_RECONCILE: int = 300

    @field_validator('GEMINI_API_KEYS', 'GEMINI_API_KEY', 'KIE_API_KEY', mode='before')
    @classmethod
    def strip_api_keys(cls, v):
        """Strip whitespace and newlines from API keys loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('CREDIT_DEBIT_POLICY')
    @classmethod
    def validate_debit_policy(cls, v):
        if v not in ("on_success", "on_accept"):
            raise ValueError("CREDIT_DEBIT_POLICY must be 'on_success' or 'on_accept'")
        return v

    @property
    def gemini_keys(self) -> List[str]:
        """All configured Gemini keys, GEMINI_API_KEYS taking precedence."""
        raw = self.GEMINI_API_KEYS or self.GEMINI_API_KEY
        return [k.strip() for k in raw.split(",") if k.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
