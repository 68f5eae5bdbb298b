"""
Application settings using Pydantic.

Provides environment-based configuration loading with DASHREPORT_ prefix.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Grafana
    grafana_url: str = "http://localhost:3000"
    grafana_token: str | None = None
    api_version: Literal["v4", "v5"] = "v5"
    ssl_check: bool = True

    # HTTP client settings
    http_timeout: float = 60.0

    # Panel rendering
    grid_layout: bool = False
    panel_max_attempts: int = 3
    panel_retry_delay: float = 10.0
    render_workers: int = 8

    # Document output
    template_dir: str = "templates"
    pdflatex_path: str = "pdflatex"
    compile_timeout: float = 120.0

    # HTTP front-end
    host: str = "127.0.0.1"
    port: int = 8686
    debug: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "DASHREPORT_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
