"""
Configuration management using pydantic-settings.
"""
import os
from pydantic_settings import BaseSettings
from typing import Mapping, Optional
from functools import lru_cache


KEY_ENV_PREFIX = "MXTOOLBOX_API_KEY"


def load_numbered_keys(environ: Optional[Mapping[str, str]] = None) -> list[str]:
    """
    Read MXTOOLBOX_API_KEY_1, MXTOOLBOX_API_KEY_2, ... until the first gap.

    The unnumbered MXTOOLBOX_API_KEY stands in for slot 1 when
    MXTOOLBOX_API_KEY_1 is not set.
    """
    env = os.environ if environ is None else environ
    keys = []
    i = 1
    while True:
        key = env.get(f"{KEY_ENV_PREFIX}_{i}") or (env.get(KEY_ENV_PREFIX) if i == 1 else None)
        if not key:
            break
        keys.append(key.strip())
        i += 1
    return keys


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_env: str = "development"
    api_port: int = 8000
    api_host: str = "0.0.0.0"

    # MXToolbox: numbered keys (MXTOOLBOX_API_KEY_1..N) or a comma-separated list
    mxtoolbox_api_key: str = ""
    mxtoolbox_api_keys: str = ""
    mxtoolbox_max_requests_per_key: int = 50
    mxtoolbox_block_seconds: float = 60.0
    mxtoolbox_request_timeout: float = 10.0

    # Delay between targets in a batch check
    check_delay_seconds: float = 0.5

    # Logging
    log_level: str = "INFO"

    @property
    def mxtoolbox_key_list(self) -> list[str]:
        """Numbered keys first, then MXTOOLBOX_API_KEYS (comma-separated), then MXTOOLBOX_API_KEY."""
        keys = load_numbered_keys()
        if keys:
            return keys
        if self.mxtoolbox_api_keys:
            return [k.strip() for k in self.mxtoolbox_api_keys.split(",") if k.strip()]
        if self.mxtoolbox_api_key:
            return [self.mxtoolbox_api_key]
        return []

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields in .env


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
