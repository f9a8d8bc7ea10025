# backend/slotswap/services/swaps/ledger.py
"""
Swap Ledger: append-only record of swap proposals.

A proposal is written once as PENDING and resolved exactly once to
ACCEPTED or REJECTED. Rows are never deleted.
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...errors import SwapConflict
from ...models import SwapRequests as DBSwapRequest, SwapStatus

TERMINAL_STATUSES = (SwapStatus.ACCEPTED, SwapStatus.REJECTED)


class SwapLedger:
    def __init__(self, db: Session):
        self.db = db

    def create_proposal(
        self,
        proposer_id: int,
        counterpart_id: int,
        proposer_slot_id: int,
        counterpart_slot_id: int,
    ) -> DBSwapRequest:
        if proposer_id == counterpart_id:
            raise ValueError("Proposer and counterpart must differ")

        proposal = DBSwapRequest(
            proposer_id=proposer_id,
            counterpart_id=counterpart_id,
            proposer_slot_id=proposer_slot_id,
            counterpart_slot_id=counterpart_slot_id,
            status=SwapStatus.PENDING.value,
            created_at=datetime.utcnow(),
        )
        self.db.add(proposal)
        self.db.flush()
        return proposal

    def find_pending_for(self, slot_ids: Iterable[int]) -> Optional[DBSwapRequest]:
        """First PENDING proposal referencing any of slot_ids on either side."""
        slot_ids = list(slot_ids)
        if not slot_ids:
            return None
        return (
            self.db.query(DBSwapRequest)
            .filter(DBSwapRequest.status == SwapStatus.PENDING.value)
            .filter(
                or_(
                    DBSwapRequest.proposer_slot_id.in_(slot_ids),
                    DBSwapRequest.counterpart_slot_id.in_(slot_ids),
                )
            )
            .order_by(DBSwapRequest.id.asc())
            .first()
        )

    def get(self, proposal_id: int) -> Optional[DBSwapRequest]:
        return self.db.get(DBSwapRequest, proposal_id)

    def resolve(self, proposal_id: int, outcome: SwapStatus) -> DBSwapRequest:
        """
        Move a proposal from PENDING to outcome.

        Raises:
            SwapConflict: proposal is not PENDING any more (double resolution)
        """
        outcome = SwapStatus(outcome)
        if outcome not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot resolve a proposal to {outcome.value}")

        updated = (
            self.db.query(DBSwapRequest)
            .filter(
                DBSwapRequest.id == proposal_id,
                DBSwapRequest.status == SwapStatus.PENDING.value,
            )
            .update(
                {"status": outcome.value, "resolved_at": datetime.utcnow()},
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise SwapConflict(f"Swap request {proposal_id} was resolved concurrently")

        proposal = self.get(proposal_id)
        self.db.refresh(proposal)
        return proposal

    def list_for_user(self, user_id: int) -> tuple[list[DBSwapRequest], list[DBSwapRequest]]:
        """
        Returns:
            (incoming, outgoing): proposals where user_id is the counterpart /
            the proposer, newest first
        """
        order = (DBSwapRequest.created_at.desc(), DBSwapRequest.id.desc())
        incoming = (
            self.db.query(DBSwapRequest)
            .filter(DBSwapRequest.counterpart_id == user_id)
            .order_by(*order)
            .all()
        )
        outgoing = (
            self.db.query(DBSwapRequest)
            .filter(DBSwapRequest.proposer_id == user_id)
            .order_by(*order)
            .all()
        )
        return incoming, outgoing
