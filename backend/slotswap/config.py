# backend/slotswap/config.py

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root


class Settings(BaseSettings):
    database_url: str
    redis_url: str

    redis_socket_timeout: float = 2.0
    redis_max_retries: int = 3

    # Seconds. Per-user slot lists and slot detail
    slots_cache_ttl: int = 900
    # Seconds. Offered-slots and per-user proposal lists
    swaps_cache_ttl: int = 600

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @field_validator("slots_cache_ttl", "swaps_cache_ttl")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if not 1 <= v <= 3600:
            raise ValueError("cache TTL must be between 1 and 3600 seconds")
        return v

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative sqlite path is resolved against the repo root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
