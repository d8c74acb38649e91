"""Runtime settings via pydantic-settings: env vars with a ``LOGSHAPER_`` prefix."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """logshaper defaults, overridable from env vars / .env and then CLI flags."""

    model_config = SettingsConfigDict(env_prefix="LOGSHAPER_", env_file=".env", extra="ignore")

    output_directory: Path = Field(
        default=Path.home() / "tmp" / "logshaper",
        description="Where parsed and hash output files are written",
    )
    threads: int = Field(default=6, ge=1, description="Worker threads when processing a directory")
    data_buffer: int = Field(default=100, ge=1, description="Scanner data channel capacity")
    error_buffer: int = Field(default=100, ge=1, description="Scanner error channel capacity")
    log_level: str = Field(default="INFO", description="Root log level")
    log_file: str = Field(default="", description="Log file name in output_directory; empty logs to stderr only")


settings = Settings()
