from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CARGO_", env_file=".env", extra="ignore")

    # --- App ---
    APP_NAME: str = "Space Station Cargo Placement System"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Database ---
    DATABASE_URL: str = "sqlite:///./space_station.db"

    # --- Placement ---
    # Try every axis permutation of an item when looking for a fit
    ALLOW_ROTATION: bool = False
    # Re-plans from a fresh snapshot when a capacity post-check fails
    PLACEMENT_MAX_RETRIES: int = 3

    # --- CSV import ---
    DEFAULT_CONTAINER_MAX_WEIGHT: float = 1000.0


settings = Settings()
