"""dashreport configuration (environment variables, .env files)."""

from dashreport.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
