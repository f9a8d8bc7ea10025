# backend/slotswap/services/swaps/config.py
"""
Cache configuration for the swap engine.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import settings


@dataclass(frozen=True)
class SwapCacheConfig:
    """
    Attributes:
        slots_ttl_seconds: TTL for per-user slot lists and slot detail
        swaps_ttl_seconds: TTL for offered-slots and per-user proposal lists
    """
    slots_ttl_seconds: int = 900
    swaps_ttl_seconds: int = 600

    def __post_init__(self):
        for name in ("slots_ttl_seconds", "swaps_ttl_seconds"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")


@lru_cache
def get_cache_config() -> SwapCacheConfig:
    """Cache configuration built from settings (singleton)."""
    return SwapCacheConfig(
        slots_ttl_seconds=settings.slots_cache_ttl,
        swaps_ttl_seconds=settings.swaps_cache_ttl,
    )
