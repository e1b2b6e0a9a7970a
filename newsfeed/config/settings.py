"""Application settings with environment variable support."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


# Compute base_dir at module level
_BASE_DIR = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NF_",  # NF_DATABASE_URL, NF_FETCH_TIMEOUT_SECONDS, etc.
    )

    # Paths - computed from base_dir
    base_dir: Path = _BASE_DIR
    data_dir: Path = _BASE_DIR / "data"
    feeds_config_path: Path = _BASE_DIR / "config" / "feeds.json"

    # Database
    database_url: str = f"sqlite:///{_BASE_DIR / 'data' / 'newsfeed.db'}"

    # Fetching
    fetch_timeout_seconds: float = 10.0
    fetch_max_attempts: int = 1  # 1 = no retry within a run
    max_concurrent_fetches: int = 5
    user_agent: str = "NewsfeedIngestBot/1.0"

    # Ingestion
    default_time_filter: str = "24h"

    # Article assembly
    default_author: str = "Staff Writer"
    fallback_image_url: str = "https://images.unsplash.com/photo-1504711434969-e33886168f5c?w=800&q=80"
    title_max_length: int = 200
    summary_max_length: int = 500


settings = Settings()
