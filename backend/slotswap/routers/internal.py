# backend/slotswap/routers/internal.py
"""
Internal API endpoints for operators.

These endpoints are NOT exposed through a public proxy.

Access: localhost only
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from ..dependencies import get_coordinator
from ..schemas.swaps import SwapProposalRead
from ..services.swaps import SwapCoordinator

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("127.0.0.1", "localhost", "::1")


def require_local_caller(request: Request) -> None:
    client_host = request.client.host if request.client else None
    if client_host not in LOCAL_HOSTS:
        logger.warning(f"Internal endpoint called from non-localhost: {client_host}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Internal endpoints are only accessible from localhost"
        )


router = APIRouter(
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(require_local_caller)],
)


@router.post("/swaps/{id}/reject", response_model=SwapProposalRead)
def operator_reject_swap(
    id: int = Path(gt=0),
    coordinator: SwapCoordinator = Depends(get_coordinator),
):
    """
    Reject a pending swap request on behalf of its participants.

    Used for requests that cannot be answered normally because one of
    their slots has vanished. Surviving slots go back to OFFERED.
    """
    return coordinator.operator_reject(id)
