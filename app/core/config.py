from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Tile Allocator API"
    app_env: str = "dev"
    database_url: str = "sqlite:///./tile_allocator.db"
    upload_dir: Path = Path("data/uploads")
    max_upload_mb: int = 20
    ingest_timeout_seconds: float = 60.0
    ingest_chunk_size: int = 500
    upload_ttl_minutes: int = 60
    log_level: str = "INFO"
    cors_origins: str = ""
    cors_allow_all: bool = False

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    return settings
