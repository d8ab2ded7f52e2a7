"""
Narrative Pipeline - Configuration
"""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Paths
    BASE_DIR: Path = Path(__file__).parent
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).parent / "data")
    DATABASE_PATH: Path = Field(default_factory=lambda: Path(__file__).parent / "data" / "insights.db")
    LOG_DIR: Optional[Path] = Field(default_factory=lambda: Path(__file__).parent / "data" / "logs")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # LLM
    LLM_PROVIDER: str = Field(default="openai", description="openai | anthropic")
    LLM_MODEL: str = Field(default="")
    LLM_BASE_URL: Optional[str] = Field(default=None, description="OpenAI-compatible endpoint override")
    LLM_VERIFY_SSL: bool = Field(default=True)
    LLM_TIMEOUT_SECONDS: float = Field(default=120.0)
    OPENAI_API_KEY: str = Field(default="", description="OpenAI (or compatible) API key")
    ANTHROPIC_API_KEY: str = Field(default="", description="Claude API key")

    # Pipeline
    PIPELINE_INTERVAL_HOURS: float = Field(default=2.0)
    PIPELINE_AUTOSTART: bool = Field(default=True, description="Start the periodic job with the API process; first pass runs immediately")
    PIPELINE_SOURCE: str = Field(default="minermag", description="Only items from this origin are processed")
    PIPELINE_BATCH_LIMIT: Optional[int] = Field(default=None, description="Max items considered per pass")
    EXTRACTION_CONCURRENCY: int = Field(default=1, ge=1)
    ITEM_DELAY_SECONDS: float = Field(default=1.0, ge=0)

    # Retry / backoff for the generative model
    RETRY_MAX_RETRIES: int = Field(default=5, ge=0)
    RETRY_BASE_SECONDS: float = Field(default=1.0, gt=0)
    RETRY_MAX_DELAY_SECONDS: float = Field(default=60.0, gt=0)

    # API
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def ensure_directories():
    """Ensure all required directories exist."""
    dirs = [settings.DATA_DIR, settings.DATABASE_PATH.parent]
    if settings.LOG_DIR:
        dirs.append(settings.LOG_DIR)
    for dir_path in dirs:
        dir_path.mkdir(parents=True, exist_ok=True)
