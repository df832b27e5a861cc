"""Application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    STATIC_DIR: Path | None = None  # Optional UI served at /

    # Upload settings
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 MB

    # Job settings
    MAX_CONCURRENT_JOBS: int = 4
    MAX_FRAMES: int = 10_000  # Captures per render, rejects very long animations
    DONE_RETENTION_SECONDS: float = 10 * 60.0
    ERROR_RETENTION_SECONDS: float = 60.0

    # Capture settings
    SETTLE_DELAY_SECONDS: float = 0.04  # Wait after each seek
    BROWSER_HEADLESS: bool = True

    LOG_LEVEL: str = "INFO"

    model_config = {"env_prefix": "STAGREEL_"}


settings = Settings()
