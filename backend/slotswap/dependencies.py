# backend/slotswap/dependencies.py

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .redis_client import redis_client
from .services.swaps import AvailabilityCache, SwapCoordinator


def get_cache() -> AvailabilityCache:
    return AvailabilityCache(redis_client)


def get_coordinator(
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
) -> SwapCoordinator:
    return SwapCoordinator(db, cache)
