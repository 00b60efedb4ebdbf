"""Application configuration using Pydantic settings."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Maze Solver"
    app_version: str = "1.0.0"
    debug: bool = False

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:3000,http://localhost:8080"

    # LLM endpoint (LLM_ENDPOINT / LLM_API_KEY / LLM_MODEL)
    llm_endpoint: Optional[str] = None
    llm_api_key: str = ""
    llm_model: str = ""
    llm_max_output_tokens: int = 4096
    llm_request_timeout_seconds: float = 600.0

    # Rate-limit retry policy: attempts in total, first wait doubles each retry
    llm_max_retries: int = 5
    llm_retry_base_delay_seconds: float = 10.0

    # Solver
    solver_max_iterations: int = 10_000
    force_adjacent_discovery: bool = True
    use_verbose_description: bool = True
    event_log_size: int = 1000

    # Maze generation
    maze_default_width: int = 21
    maze_default_height: int = 21
    maze_max_generation_attempts: int = 100

    @field_validator(
        "llm_max_output_tokens",
        "llm_max_retries",
        "solver_max_iterations",
        "event_log_size",
        "maze_max_generation_attempts",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Counts and limits must be positive."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("llm_retry_base_delay_seconds")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        """Backoff delay cannot be negative."""
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
