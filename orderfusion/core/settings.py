"""
Runtime settings read from the environment.

All environment variables are read once and validated; tunable algorithm
constants live in ``orderfusion.core.config`` instead.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """General application settings."""

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    CATALOG_PATH: Optional[str] = None
    ENABLE_REFERENCE_CORRECTION: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}

    @property
    def catalog_path(self) -> Optional[Path]:
        """Resolved catalog location, or None when not configured."""
        if not self.CATALOG_PATH or not self.CATALOG_PATH.strip():
            return None
        return Path(self.CATALOG_PATH.strip()).resolve()


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
