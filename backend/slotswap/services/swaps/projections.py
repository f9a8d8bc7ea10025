# backend/slotswap/services/swaps/projections.py
"""
Read projections: slots and proposals decorated for display.

Pure joins over the Slot Store / Swap Ledger / users table. Output is
plain JSON-ready dicts so it can be cached as-is.
"""

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models import Slots as DBSlot, SwapRequests as DBSwapRequest, Users as DBUser
from ...schemas.slots import SlotRead, OfferedSlotRead
from ...schemas.swaps import SwapProposalView


def _users_by_id(db: Session, user_ids: Iterable[int]) -> dict[int, DBUser]:
    ids = set(user_ids)
    if not ids:
        return {}
    return {u.id: u for u in db.query(DBUser).filter(DBUser.id.in_(ids)).all()}


def _slots_by_id(db: Session, slot_ids: Iterable[int]) -> dict[int, DBSlot]:
    ids = set(slot_ids)
    if not ids:
        return {}
    return {s.id: s for s in db.query(DBSlot).filter(DBSlot.id.in_(ids)).all()}


def project_slot(slot: DBSlot) -> dict:
    return SlotRead.model_validate(slot).model_dump(mode="json")


def project_offered_slots(db: Session, slots: list[DBSlot]) -> list[dict]:
    """Offered slots with owner name / email."""
    owners = _users_by_id(db, (s.owner_id for s in slots))
    result = []
    for slot in slots:
        owner = owners.get(slot.owner_id)
        view = OfferedSlotRead(
            **SlotRead.model_validate(slot).model_dump(),
            owner_name=owner.name if owner else None,
            owner_email=owner.email if owner else None,
        )
        result.append(view.model_dump(mode="json"))
    return result


def _project_proposal(
    proposal: DBSwapRequest,
    users: dict[int, DBUser],
    slots: dict[int, DBSlot],
) -> dict:
    proposer: Optional[DBUser] = users.get(proposal.proposer_id)
    counterpart: Optional[DBUser] = users.get(proposal.counterpart_id)
    proposer_slot: Optional[DBSlot] = slots.get(proposal.proposer_slot_id)
    counterpart_slot: Optional[DBSlot] = slots.get(proposal.counterpart_slot_id)

    # A slot deleted after resolution leaves its fields empty
    view = SwapProposalView(
        id=proposal.id,
        proposer_id=proposal.proposer_id,
        counterpart_id=proposal.counterpart_id,
        proposer_slot_id=proposal.proposer_slot_id,
        counterpart_slot_id=proposal.counterpart_slot_id,
        status=proposal.status,
        created_at=proposal.created_at,
        resolved_at=proposal.resolved_at,
        proposer_name=proposer.name if proposer else None,
        proposer_email=proposer.email if proposer else None,
        counterpart_name=counterpart.name if counterpart else None,
        counterpart_email=counterpart.email if counterpart else None,
        proposer_slot_title=proposer_slot.title if proposer_slot else None,
        proposer_slot_start=proposer_slot.start_time if proposer_slot else None,
        proposer_slot_end=proposer_slot.end_time if proposer_slot else None,
        counterpart_slot_title=counterpart_slot.title if counterpart_slot else None,
        counterpart_slot_start=counterpart_slot.start_time if counterpart_slot else None,
        counterpart_slot_end=counterpart_slot.end_time if counterpart_slot else None,
    )
    return view.model_dump(mode="json")


def project_proposals(
    db: Session,
    incoming: list[DBSwapRequest],
    outgoing: list[DBSwapRequest],
) -> dict:
    """{"incoming": [...], "outgoing": [...]} with both parties and both slots."""
    proposals = incoming + outgoing
    users = _users_by_id(
        db, [p.proposer_id for p in proposals] + [p.counterpart_id for p in proposals]
    )
    slots = _slots_by_id(
        db,
        [p.proposer_slot_id for p in proposals] + [p.counterpart_slot_id for p in proposals],
    )
    return {
        "incoming": [_project_proposal(p, users, slots) for p in incoming],
        "outgoing": [_project_proposal(p, users, slots) for p in outgoing],
    }
