"""Application configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "FitTrack"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Auth (fitness service) ---
    jwt_secret: str | None = None  # required to start the fitness service
    jwt_algorithm: str = "HS256"

    # --- Tracker (device side) ---
    fitness_api_url: str = "http://localhost:3002"
    state_dir: Path = Path.home() / ".fittrack" / "state"
    request_timeout_seconds: float = 10.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "FITTRACK_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
