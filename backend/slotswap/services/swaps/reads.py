# backend/slotswap/services/swaps/reads.py
"""
Read paths: cache first, database on miss, then populate the cache.

The fill is skipped if an invalidation ran while the database was being
read (see AvailabilityCache.set), so a snapshot taken just before a
commit is never cached after that commit's invalidation.
"""

from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from .cache import AvailabilityCache, CacheKeys
from .ledger import SwapLedger
from .projections import project_offered_slots, project_proposals, project_slot
from .store import SlotStore


def _read_through(cache: AvailabilityCache, key: str, ttl: int, load: Callable[[], Any]) -> Any:
    cached = cache.get(key)
    if cached is not None:
        return cached

    generation = cache.generation()
    result = load()
    if result is not None and generation is not None:
        cache.set(key, result, ttl, generation=generation)
    return result


def list_offered_slots(db: Session, cache: AvailabilityCache, viewer_id: int) -> list[dict]:
    """OFFERED slots of everyone except the viewer, start time ascending."""
    def load():
        slots = SlotStore(db).list_offered(excluding_owner=viewer_id)
        return project_offered_slots(db, slots)

    return _read_through(cache, CacheKeys.offered(viewer_id), cache.config.swaps_ttl_seconds, load)


def list_user_slots(db: Session, cache: AvailabilityCache, user_id: int) -> list[dict]:
    def load():
        return [project_slot(s) for s in SlotStore(db).list_by_owner(user_id)]

    return _read_through(cache, CacheKeys.user_slots(user_id), cache.config.slots_ttl_seconds, load)


def get_slot_detail(
    db: Session,
    cache: AvailabilityCache,
    slot_id: int,
) -> Optional[dict]:
    def load():
        slot = SlotStore(db).get(slot_id)
        return project_slot(slot) if slot is not None else None

    return _read_through(cache, CacheKeys.slot(slot_id), cache.config.slots_ttl_seconds, load)


def list_user_proposals(db: Session, cache: AvailabilityCache, user_id: int) -> dict:
    def load():
        incoming, outgoing = SwapLedger(db).list_for_user(user_id)
        return project_proposals(db, incoming, outgoing)

    return _read_through(cache, CacheKeys.user_swaps(user_id), cache.config.swaps_ttl_seconds, load)
