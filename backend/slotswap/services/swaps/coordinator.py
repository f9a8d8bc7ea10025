# backend/slotswap/services/swaps/coordinator.py
"""
Swap Coordinator: the proposal state machine.

    Slot:      OFFERED --propose--> LOCKED --accept--> BUSY (new owner)
                                    LOCKED --reject--> OFFERED
    Proposal:  PENDING --accept--> ACCEPTED
               PENDING --reject--> REJECTED

Each transition is one database transaction (database.atomic): either
every slot and ledger write lands, or none does. Cache invalidation runs
only after the commit and never raises.
"""

import logging

from sqlalchemy.orm import Session

from ...database import atomic
from ...errors import (
    AlreadyResolved,
    InvalidSlotId,
    NotEligible,
    ProposalNotFound,
    SelfSwapRejected,
    SlotLocked,
    SlotNotFound,
    SlotVanished,
    Unauthorized,
)
from ...models import SlotState, Slots as DBSlot, SwapRequests as DBSwapRequest, SwapStatus
from .cache import AvailabilityCache
from .invalidator import invalidate_swap_participants
from .ledger import SwapLedger
from .store import SlotStore

logger = logging.getLogger(__name__)


def _check_slot_id(slot_id) -> None:
    # bool is an int subclass
    if isinstance(slot_id, bool) or not isinstance(slot_id, int) or slot_id <= 0:
        raise InvalidSlotId(f"Invalid slot ID: {slot_id!r}")


def _require_offered(slot: DBSlot, whose: str) -> None:
    if slot.state == SlotState.LOCKED:
        raise SlotLocked(f"{whose} slot is already involved in a pending swap")
    if slot.state != SlotState.OFFERED:
        raise NotEligible(f"{whose} slot is not offered for swap")


class SwapCoordinator:
    def __init__(self, db: Session, cache: AvailabilityCache):
        self.db = db
        self.cache = cache
        self.store = SlotStore(db)
        self.ledger = SwapLedger(db)

    # ── Propose ──────────────────────────────────────────────────────────

    def propose(self, actor_id: int, my_slot_id: int, their_slot_id: int) -> DBSwapRequest:
        """
        Offer my_slot in exchange for their_slot.

        Raises:
            InvalidSlotId, SlotNotFound, NotEligible, SlotLocked, SelfSwapRejected,
            SwapConflict (lost race, retryable)
        """
        _check_slot_id(my_slot_id)
        _check_slot_id(their_slot_id)
        with atomic(self.db):
            my_slot = self.store.get(my_slot_id)
            their_slot = self.store.get(their_slot_id)
            if my_slot is None or their_slot is None:
                raise SlotNotFound("Slot not found")

            if my_slot.owner_id != actor_id:
                raise NotEligible("Your slot not found or not swappable")
            _require_offered(my_slot, "Your")
            _require_offered(their_slot, "Target")

            if their_slot.owner_id == actor_id:
                raise SelfSwapRejected()

            if self.ledger.find_pending_for([my_slot_id, their_slot_id]):
                raise SlotLocked("One or both slots are already involved in a pending swap")

            counterpart_id = their_slot.owner_id

            # Lock in id order so concurrent proposals contend in the same sequence
            for slot_id in sorted((my_slot_id, their_slot_id)):
                self.store.update_state(slot_id, SlotState.OFFERED, SlotState.LOCKED)

            proposal = self.ledger.create_proposal(
                proposer_id=actor_id,
                counterpart_id=counterpart_id,
                proposer_slot_id=my_slot_id,
                counterpart_slot_id=their_slot_id,
            )

        logger.info(
            f"Swap request {proposal.id} created: user {actor_id} slot {my_slot_id} "
            f"↔ user {counterpart_id} slot {their_slot_id}"
        )
        invalidate_swap_participants(
            self.cache, [actor_id, counterpart_id], [my_slot_id, their_slot_id]
        )
        return proposal

    # ── Respond ──────────────────────────────────────────────────────────

    def respond(self, actor_id: int, proposal_id: int, accept: bool) -> DBSwapRequest:
        """
        Accept or reject a pending proposal as its counterpart.

        Accept exchanges the owners of both slots (both end BUSY).
        Reject returns both slots to OFFERED with owners unchanged.

        Raises:
            ProposalNotFound, Unauthorized, AlreadyResolved, SlotVanished,
            SwapConflict (lost race, retryable)
        """
        with atomic(self.db):
            proposal = self.ledger.get(proposal_id)
            if proposal is None:
                raise ProposalNotFound()
            if proposal.counterpart_id != actor_id:
                raise Unauthorized()
            if proposal.status != SwapStatus.PENDING:
                raise AlreadyResolved()

            proposer_id = proposal.proposer_id
            counterpart_id = proposal.counterpart_id
            proposer_slot_id = proposal.proposer_slot_id
            counterpart_slot_id = proposal.counterpart_slot_id

            if self.store.get(proposer_slot_id) is None or self.store.get(counterpart_slot_id) is None:
                raise SlotVanished()

            # Ledger first: a racing second response fails here before touching slots
            outcome = SwapStatus.ACCEPTED if accept else SwapStatus.REJECTED
            proposal = self.ledger.resolve(proposal_id, outcome)

            if accept:
                self.store.transfer_ownership(
                    proposer_slot_id, proposer_id, counterpart_id, SlotState.BUSY
                )
                self.store.transfer_ownership(
                    counterpart_slot_id, counterpart_id, proposer_id, SlotState.BUSY
                )
            else:
                self.store.set_state(proposer_slot_id, SlotState.OFFERED)
                self.store.set_state(counterpart_slot_id, SlotState.OFFERED)

        logger.info(f"Swap request {proposal_id} {outcome.value.lower()} by user {actor_id}")
        invalidate_swap_participants(
            self.cache,
            [proposer_id, counterpart_id],
            [proposer_slot_id, counterpart_slot_id],
        )
        return proposal

    # ── Operator ─────────────────────────────────────────────────────────

    def operator_reject(self, proposal_id: int) -> DBSwapRequest:
        """
        Administrative reject for a proposal stuck behind SlotVanished.

        Resolves the proposal to REJECTED and returns every surviving
        LOCKED slot to OFFERED.

        Raises:
            ProposalNotFound, AlreadyResolved, SwapConflict
        """
        with atomic(self.db):
            proposal = self.ledger.get(proposal_id)
            if proposal is None:
                raise ProposalNotFound()
            if proposal.status != SwapStatus.PENDING:
                raise AlreadyResolved()

            user_ids = [proposal.proposer_id, proposal.counterpart_id]
            slot_ids = [proposal.proposer_slot_id, proposal.counterpart_slot_id]

            proposal = self.ledger.resolve(proposal_id, SwapStatus.REJECTED)
            for slot_id in slot_ids:
                slot = self.store.get(slot_id)
                if slot is None:
                    logger.warning(f"Swap request {proposal_id}: slot {slot_id} is gone, skipping")
                    continue
                if slot.state == SlotState.LOCKED:
                    self.store.update_state(slot_id, SlotState.LOCKED, SlotState.OFFERED)

        logger.info(f"Swap request {proposal_id} rejected by operator")
        invalidate_swap_participants(self.cache, user_ids, slot_ids)
        return proposal
