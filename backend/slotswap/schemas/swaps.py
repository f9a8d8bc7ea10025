# backend/slotswap/schemas/swaps.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, StrictBool, StrictInt


class SwapProposalCreate(BaseModel):
    """Body of POST /swaps/requests."""
    my_slot_id: StrictInt = Field(gt=0)
    their_slot_id: StrictInt = Field(gt=0)

    model_config = {"extra": "forbid"}


class SwapResponseCreate(BaseModel):
    """Body of POST /swaps/requests/{id}/response."""
    accepted: StrictBool

    model_config = {"extra": "forbid"}


class SwapProposalRead(BaseModel):
    id: int
    proposer_id: int
    counterpart_id: int
    proposer_slot_id: int
    counterpart_slot_id: int
    status: str
    created_at: datetime
    resolved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SwapProposalView(SwapProposalRead):
    """Proposal with both parties' names and both slots' title / times."""
    proposer_name: Optional[str] = None
    proposer_email: Optional[str] = None
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None

    proposer_slot_title: Optional[str] = None
    proposer_slot_start: Optional[datetime] = None
    proposer_slot_end: Optional[datetime] = None
    counterpart_slot_title: Optional[str] = None
    counterpart_slot_start: Optional[datetime] = None
    counterpart_slot_end: Optional[datetime] = None


class SwapProposalsResponse(BaseModel):
    incoming: list[SwapProposalView]
    outgoing: list[SwapProposalView]


class SwapResponseResult(BaseModel):
    message: str
    proposal: SwapProposalRead
