# backend/slotswap/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


def _to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC."""
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


class SlotCreate(BaseModel):
    title: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    # LOCKED is reachable only through a swap proposal
    state: Literal["BUSY", "OFFERED"] = "BUSY"

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)


class SlotUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    state: Optional[Literal["BUSY", "OFFERED"]] = None

    # Omitted fields stay unchanged; an explicit null is not a value
    @field_validator("title", "start_time", "end_time", "state", mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(v)


class SlotRead(BaseModel):
    id: int
    owner_id: int
    title: str
    start_time: datetime
    end_time: datetime
    state: str

    model_config = {"from_attributes": True}


class OfferedSlotRead(SlotRead):
    """Offered slot with its owner's display data."""
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
