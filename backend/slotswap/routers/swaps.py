# backend/slotswap/routers/swaps.py
"""
Swap negotiation API.

GET  /swaps/offered-slots                 offered slots of other users
POST /swaps/requests                      propose a swap
POST /swaps/requests/{id}/response        accept / reject as counterpart
GET  /swaps/requests                      incoming and outgoing proposals
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_cache, get_coordinator
from ..identity import get_current_user_id
from ..schemas.slots import OfferedSlotRead
from ..schemas.swaps import (
    SwapProposalCreate,
    SwapProposalRead,
    SwapProposalsResponse,
    SwapResponseCreate,
    SwapResponseResult,
)
from ..services.swaps import AvailabilityCache, SwapCoordinator
from ..services.swaps.reads import list_offered_slots, list_user_proposals

router = APIRouter(prefix="/swaps", tags=["swaps"])


@router.get("/offered-slots", response_model=list[OfferedSlotRead])
def get_offered_slots(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    return list_offered_slots(db, cache, user_id)


@router.post("/requests", response_model=SwapProposalRead, status_code=status.HTTP_201_CREATED)
def propose_swap(
    data: SwapProposalCreate,
    user_id: int = Depends(get_current_user_id),
    coordinator: SwapCoordinator = Depends(get_coordinator),
):
    return coordinator.propose(user_id, data.my_slot_id, data.their_slot_id)


@router.post("/requests/{id}/response", response_model=SwapResponseResult)
def respond_to_swap(
    data: SwapResponseCreate,
    id: int = Path(gt=0),
    user_id: int = Depends(get_current_user_id),
    coordinator: SwapCoordinator = Depends(get_coordinator),
):
    proposal = coordinator.respond(user_id, id, data.accepted)
    verb = "accepted" if data.accepted else "rejected"
    return SwapResponseResult(
        message=f"Swap request {verb} successfully",
        proposal=SwapProposalRead.model_validate(proposal),
    )


@router.get("/requests", response_model=SwapProposalsResponse)
def get_my_proposals(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    return list_user_proposals(db, cache, user_id)
