from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """Runtime settings, read from ``INVESTTRACK_*`` environment variables or ``.env``."""

    app_name: str = "InvestTrack API"
    api_prefix: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"

    data_dir: Path = BACKEND_ROOT / "data"
    # Empty means a SQLite file inside data_dir.
    database_url: str = ""
    auto_create_schema: bool = True
    seed_demo_data: bool = True

    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(
        env_prefix="INVESTTRACK_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _default_database(self) -> "Settings":
        if not self.database_url:
            self.database_url = f"sqlite+pysqlite:///{self.data_dir / 'investtrack.db'}"
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
