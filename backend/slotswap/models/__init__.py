from .generated import Base, Slots, SwapRequests, Users, metadata
from .states import SlotState, SwapStatus

__all__ = [
    "Base",
    "metadata",
    "Users",
    "Slots",
    "SwapRequests",
    "SlotState",
    "SwapStatus",
]
