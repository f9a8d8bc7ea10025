# backend/slotswap/routers/slots.py
"""
Owner slot management.

Every write goes through the Slot Store in one transaction, then
invalidates the owner's cached views. LOCKED slots cannot be edited or
deleted; they belong to a pending swap.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import atomic, get_db
from ..dependencies import get_cache
from ..identity import get_current_user_id
from ..models import SlotState
from ..schemas.slots import SlotCreate, SlotRead, SlotUpdate
from ..services.swaps import AvailabilityCache, SlotStore
from ..services.swaps.invalidator import invalidate_owner_slot
from ..services.swaps.reads import get_slot_detail, list_user_slots

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/", response_model=list[SlotRead])
def list_my_slots(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    return list_user_slots(db, cache, user_id)


@router.get("/{id}", response_model=SlotRead)
def get_my_slot(
    id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    slot = get_slot_detail(db, cache, id)
    if not slot or slot["owner_id"] != user_id:
        raise HTTPException(status_code=404, detail="Slot not found")
    return slot


@router.post("/", response_model=SlotRead, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: SlotCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    with atomic(db):
        slot = SlotStore(db).create(
            owner_id=user_id,
            title=data.title,
            start=data.start_time,
            end=data.end_time,
            state=SlotState(data.state),
        )

    invalidate_owner_slot(cache, user_id, slot.id, offered_changed=slot.state == SlotState.OFFERED)
    return slot


@router.patch("/{id}", response_model=SlotRead)
def update_slot(
    id: int,
    data: SlotUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    store = SlotStore(db)
    with atomic(db):
        was_offered = store.get_owned(id, user_id).state == SlotState.OFFERED
        slot = store.update(id, user_id, changes)
        offered_changed = was_offered or slot.state == SlotState.OFFERED

    invalidate_owner_slot(cache, user_id, id, offered_changed=offered_changed)
    return slot


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(
    id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    with atomic(db):
        slot = SlotStore(db).delete(id, user_id)
        was_offered = slot.state == SlotState.OFFERED

    invalidate_owner_slot(cache, user_id, id, offered_changed=was_offered)
