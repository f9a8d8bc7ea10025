# backend/slotswap/services/swaps/store.py
"""
Slot Store: durable slot records.

Methods flush but never commit; the caller owns the transaction
(see database.atomic). State changes into or out of LOCKED are only
made by the swap coordinator.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import (
    InvalidSlotState,
    InvalidSlotUpdate,
    InvalidTimeRange,
    SlotLocked,
    SlotNotFound,
    SwapConflict,
)
from ...models import SlotState, Slots as DBSlot

# Owner edits may only move a slot between these states
OWNER_STATES = (SlotState.BUSY, SlotState.OFFERED)


def _check_time_range(start: datetime, end: datetime) -> None:
    if end <= start:
        raise InvalidTimeRange()


class SlotStore:
    def __init__(self, db: Session):
        self.db = db

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, slot_id: int) -> Optional[DBSlot]:
        return self.db.get(DBSlot, slot_id)

    def get_owned(self, slot_id: int, owner_id: int) -> DBSlot:
        """Slot owned by owner_id; another owner's slot reads as not found."""
        slot = self.get(slot_id)
        if not slot or slot.owner_id != owner_id:
            raise SlotNotFound()
        return slot

    def list_by_owner(self, owner_id: int) -> list[DBSlot]:
        return (
            self.db.query(DBSlot)
            .filter(DBSlot.owner_id == owner_id)
            .order_by(DBSlot.start_time.asc(), DBSlot.id.asc())
            .all()
        )

    def list_offered(self, excluding_owner: Optional[int] = None) -> list[DBSlot]:
        query = self.db.query(DBSlot).filter(DBSlot.state == SlotState.OFFERED.value)
        if excluding_owner is not None:
            query = query.filter(DBSlot.owner_id != excluding_owner)
        return query.order_by(DBSlot.start_time.asc(), DBSlot.id.asc()).all()

    # ── Owner writes ─────────────────────────────────────────────────────

    def create(
        self,
        owner_id: int,
        title: str,
        start: datetime,
        end: datetime,
        state: SlotState = SlotState.BUSY,
    ) -> DBSlot:
        _check_time_range(start, end)
        if state not in OWNER_STATES:
            raise InvalidSlotState(f"Slot cannot be created in state {state}")

        slot = DBSlot(
            owner_id=owner_id,
            title=title,
            start_time=start,
            end_time=end,
            state=SlotState(state).value,
        )
        self.db.add(slot)
        self.db.flush()
        return slot

    def update(self, slot_id: int, owner_id: int, changes: dict) -> DBSlot:
        """
        Owner edit of title / start_time / end_time / state.

        Refused with SlotLocked while the slot is LOCKED. The update is
        conditional on the slot not being LOCKED at write time, so an edit
        racing a proposal cannot overwrite the lock.
        """
        slot = self.get_owned(slot_id, owner_id)
        if slot.state == SlotState.LOCKED:
            raise SlotLocked()

        values = dict(changes)
        cleared = sorted(k for k, v in values.items() if v is None)
        if cleared:
            raise InvalidSlotUpdate(f"Fields cannot be cleared: {', '.join(cleared)}")
        if "state" in values:
            if values["state"] not in OWNER_STATES:
                raise InvalidSlotState(f"Owner cannot set state {values['state']}")
            values["state"] = SlotState(values["state"]).value

        _check_time_range(
            values.get("start_time", slot.start_time),
            values.get("end_time", slot.end_time),
        )
        values["updated_at"] = datetime.utcnow()

        updated = (
            self.db.query(DBSlot)
            .filter(
                DBSlot.id == slot_id,
                DBSlot.owner_id == owner_id,
                DBSlot.state != SlotState.LOCKED.value,
            )
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            raise SlotLocked()

        self.db.flush()
        self.db.refresh(slot)
        return slot

    def delete(self, slot_id: int, owner_id: int) -> DBSlot:
        """Delete an owner's slot. LOCKED slots are never deleted."""
        slot = self.get_owned(slot_id, owner_id)
        if slot.state == SlotState.LOCKED:
            raise SlotLocked("Slot is involved in a pending swap and cannot be deleted")

        deleted = (
            self.db.query(DBSlot)
            .filter(
                DBSlot.id == slot_id,
                DBSlot.owner_id == owner_id,
                DBSlot.state != SlotState.LOCKED.value,
            )
            .delete(synchronize_session=False)
        )
        if deleted == 0:
            raise SlotLocked("Slot is involved in a pending swap and cannot be deleted")

        self.db.expunge(slot)
        return slot

    # ── Coordinator writes ───────────────────────────────────────────────

    def update_state(
        self,
        slot_id: int,
        expected_state: SlotState,
        new_state: SlotState,
    ) -> DBSlot:
        """
        Compare-and-swap on slot state.

        Raises:
            SwapConflict: current state is not expected_state (lost race)
        """
        updated = (
            self.db.query(DBSlot)
            .filter(DBSlot.id == slot_id, DBSlot.state == SlotState(expected_state).value)
            .update(
                {"state": SlotState(new_state).value, "updated_at": datetime.utcnow()},
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise SwapConflict(f"Slot {slot_id} is no longer {SlotState(expected_state).value}")
        return self._reload(slot_id)

    def set_state(self, slot_id: int, new_state: SlotState) -> DBSlot:
        """Unconditional state write (reject path)."""
        self.db.query(DBSlot).filter(DBSlot.id == slot_id).update(
            {"state": SlotState(new_state).value, "updated_at": datetime.utcnow()},
            synchronize_session=False,
        )
        return self._reload(slot_id)

    def transfer_ownership(
        self,
        slot_id: int,
        from_owner: int,
        new_owner: int,
        new_state: SlotState = SlotState.BUSY,
    ) -> DBSlot:
        """
        Move a LOCKED slot from from_owner to new_owner.

        Only used inside an accepted-swap transaction.

        Raises:
            SwapConflict: slot is no longer LOCKED or no longer owned by from_owner
        """
        updated = (
            self.db.query(DBSlot)
            .filter(
                DBSlot.id == slot_id,
                DBSlot.owner_id == from_owner,
                DBSlot.state == SlotState.LOCKED.value,
            )
            .update(
                {
                    "owner_id": new_owner,
                    "state": SlotState(new_state).value,
                    "updated_at": datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise SwapConflict(f"Slot {slot_id} changed before ownership transfer")
        return self._reload(slot_id)

    def _reload(self, slot_id: int) -> DBSlot:
        slot = self.get(slot_id)
        if slot is None:
            raise SlotNotFound()
        self.db.refresh(slot)
        return slot
