from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT = Path(__file__).resolve().parents[4]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables as early as possible so Settings picks them up.
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Recipe Generator API"
    app_version: str = "0.1.0"
    docs_url: str = "/docs"
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = f"sqlite:///{(PROJECT_ROOT / 'recipegen.db').as_posix()}"
    database_echo: bool = False
    seed_sample_data: bool = True

    cors_origins: List[str] = ["http://localhost:3000"]
    client_url: str = "http://localhost:3000"

    jwt_secret: str = "default-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 7 * 24 * 60

    openai_api_key: Optional[str] = None
    openai_primary_model: str = "gpt-4"
    openai_fallback_model: str = "gpt-3.5-turbo"
    openai_vision_model: str = "gpt-4o"
    openai_timeout: float = 60.0
    openai_max_retries: int = 2
    openai_temperature: float = 0.7

    max_upload_bytes: int = 10 * 1024 * 1024
    image_max_side: int = 1024
    image_jpeg_quality: int = 85

    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    github_client_id: Optional[str] = None
    github_client_secret: Optional[str] = None
    oauth_redirect_base: str = "http://localhost:8000"

    nutrition_api_id: Optional[str] = None
    nutrition_api_key: Optional[str] = None
    nutrition_api_url: str = "https://api.edamam.com/api/nutrition-data"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
