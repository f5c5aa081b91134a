"""
Configuration settings for the house-edge console.

Uses Pydantic Settings to load environment variables for the durability
backend (memory snapshot, REST API, or Postgres), logging, and the defaults the
bulk-mutation engine applies to templates.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Durability backend
    store_backend: Literal["memory", "http", "postgres"] = Field("memory", alias="STORE_BACKEND")
    snapshot_path: Optional[str] = Field("data/house_edges.json", alias="SNAPSHOT_PATH")

    # REST API
    api_base_url: str = Field("http://localhost:8080", alias="API_BASE_URL")
    api_token: Optional[str] = Field(None, alias="API_TOKEN")
    api_timeout_seconds: float = Field(10.0, alias="API_TIMEOUT_SECONDS")

    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("house_edge", alias="DB_NAME")

    # Engine defaults
    bulk_batch_size: int = Field(250, alias="BULK_BATCH_SIZE", ge=1)
    default_per_page: int = Field(10, alias="DEFAULT_PER_PAGE")
    default_window_days: int = Field(365, alias="DEFAULT_WINDOW_DAYS")
    default_max_bet: str = Field("1000", alias="DEFAULT_MAX_BET")
    default_variant: str = Field("classic", alias="DEFAULT_VARIANT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
