from enum import Enum


class SlotState(str, Enum):
    BUSY = "BUSY"
    OFFERED = "OFFERED"
    LOCKED = "LOCKED"


class SwapStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
