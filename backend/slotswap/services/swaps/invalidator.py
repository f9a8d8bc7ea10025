# backend/slotswap/services/swaps/invalidator.py
"""
Cache invalidation for slot and swap views.

Triggers:
✓ Swap proposed / accepted / rejected → offered scope, both owners'
  slot lists and proposal lists, both slots' detail
✓ Slot created / edited / deleted by its owner → owner's slot list,
  slot detail, offered scope if the slot was or becomes OFFERED

Always called after the transaction commits. A failed invalidation is
logged and left to the TTL.
"""

import logging
from typing import Iterable

from .cache import AvailabilityCache, CacheKeys

logger = logging.getLogger(__name__)


def invalidate_swap_participants(
    cache: AvailabilityCache,
    user_ids: Iterable[int],
    slot_ids: Iterable[int],
) -> bool:
    """
    Invalidate every view a swap transition can change.

    Returns:
        True if all deletes reached Redis
    """
    user_ids = sorted(set(user_ids))
    keys = [CacheKeys.user_slots(u) for u in user_ids]
    keys += [CacheKeys.user_swaps(u) for u in user_ids]
    keys += [CacheKeys.slot(s) for s in sorted(set(slot_ids))]

    # Bump before deleting: a load racing this write then cannot refill
    ok = cache.bump_generation()
    ok = cache.invalidate_scope(CacheKeys.OFFERED_SCOPE) and ok
    ok = cache.invalidate(*keys) and ok
    if not ok:
        logger.error(f"Stale cache possible for users={user_ids} until TTL expiry")
    return ok


def invalidate_owner_slot(
    cache: AvailabilityCache,
    owner_id: int,
    slot_id: int,
    offered_changed: bool,
) -> bool:
    """Invalidate views affected by an owner's edit of one slot."""
    ok = cache.bump_generation()
    ok = cache.invalidate(CacheKeys.user_slots(owner_id), CacheKeys.slot(slot_id)) and ok
    if offered_changed:
        ok = cache.invalidate_scope(CacheKeys.OFFERED_SCOPE) and ok
    return ok
