from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import declarative_base, relationship

from .states import SlotState, SwapStatus

Base = declarative_base()
metadata = Base.metadata


class Users(Base):
    __tablename__ = 'users'

    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    slots = relationship('Slots', back_populates='owner')


class Slots(Base):
    __tablename__ = 'slots'
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='ck_slots_time_range'),
        Index('ix_slots_state_start', 'state', 'start_time'),
        # Ids are never reused: the swap ledger keeps referencing deleted slots
        {'sqlite_autoincrement': True},
    )

    owner_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(Text, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    state = Column(
        Enum(*[s.value for s in SlotState], name='slot_state', native_enum=False),
        nullable=False,
        default=SlotState.BUSY.value,
    )
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship('Users', back_populates='slots')


class SwapRequests(Base):
    """
    Append-only swap ledger.

    Slot ids are plain integers, not foreign keys: the ledger outlives
    the slots it references (an owner may delete a slot once a swap on
    it is resolved).
    """
    __tablename__ = 'swap_requests'
    __table_args__ = {'sqlite_autoincrement': True}

    proposer_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    counterpart_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    proposer_slot_id = Column(Integer, nullable=False, index=True)
    counterpart_slot_id = Column(Integer, nullable=False, index=True)
    status = Column(
        Enum(*[s.value for s in SwapStatus], name='swap_status', native_enum=False),
        nullable=False,
        default=SwapStatus.PENDING.value,
    )
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    resolved_at = Column(DateTime)

    proposer = relationship('Users', foreign_keys=[proposer_id])
    counterpart = relationship('Users', foreign_keys=[counterpart_id])
