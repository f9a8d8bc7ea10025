# backend/slotswap/services/swaps/__init__.py
"""
Swap negotiation engine.

Slot Store and Swap Ledger hold durable state; the Coordinator moves
slots and proposals through their transitions atomically; the
Availability Cache serves read views and is invalidated after every
committed transition.
"""

from .cache import AvailabilityCache, CacheKeys
from .config import SwapCacheConfig, get_cache_config
from .coordinator import SwapCoordinator
from .ledger import SwapLedger
from .store import SlotStore

__all__ = [
    "AvailabilityCache",
    "CacheKeys",
    "SwapCacheConfig",
    "get_cache_config",
    "SwapCoordinator",
    "SwapLedger",
    "SlotStore",
]
