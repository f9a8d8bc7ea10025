"""Swap Coordinator: state machine, atomicity and post-commit invalidation.

Invariants:
    - Slot states stay within BUSY / OFFERED / LOCKED; every slot has one owner
    - A proposal leaves PENDING at most once; a second response is AlreadyResolved
    - At most one PENDING proposal references any slot
    - A failure anywhere inside propose/respond leaves no partial writes
    - Cache invalidation happens after the commit
"""

import pytest

from slotswap.errors import (
    AlreadyResolved,
    InvalidSlotId,
    NotEligible,
    ProposalNotFound,
    SelfSwapRejected,
    SlotLocked,
    SlotNotFound,
    SlotVanished,
    SwapConflict,
    Unauthorized,
)
from slotswap.models import Slots, SlotState, SwapRequests, SwapStatus
from slotswap.services.swaps import CacheKeys


@pytest.fixture
def parties(make_user, make_slot):
    """User A with offered slot S1, user B with offered slot S2."""
    a, b = make_user("Alice"), make_user("Bob")
    s1 = make_slot(a, SlotState.OFFERED, title="S1")
    s2 = make_slot(b, SlotState.OFFERED, title="S2")
    return a, b, s1, s2


def _slot(db, slot_id):
    db.expire_all()
    return db.get(Slots, slot_id)


def _pending_count(db, slot_id):
    db.expire_all()
    return (
        db.query(SwapRequests)
        .filter(SwapRequests.status == SwapStatus.PENDING.value)
        .filter((SwapRequests.proposer_slot_id == slot_id) | (SwapRequests.counterpart_slot_id == slot_id))
        .count()
    )


# ── Propose ──────────────────────────────────────────────────────────────

def test_propose_locks_both_slots(coordinator, parties, db):
    a, b, s1, s2 = parties

    proposal = coordinator.propose(a.id, s1.id, s2.id)

    assert proposal.status == SwapStatus.PENDING
    assert proposal.proposer_id == a.id
    assert proposal.counterpart_id == b.id
    assert _slot(db, s1.id).state == SlotState.LOCKED
    assert _slot(db, s2.id).state == SlotState.LOCKED


def test_propose_missing_slot(coordinator, parties):
    a, _, s1, _ = parties
    with pytest.raises(SlotNotFound):
        coordinator.propose(a.id, s1.id, 9999)
    with pytest.raises(SlotNotFound):
        coordinator.propose(a.id, 9999, s1.id)


@pytest.mark.parametrize("bad_id", [0, -3, "7", True, None])
def test_propose_rejects_malformed_slot_ids(coordinator, parties, db, bad_id):
    a, _, s1, s2 = parties
    with pytest.raises(InvalidSlotId):
        coordinator.propose(a.id, s1.id, bad_id)
    with pytest.raises(InvalidSlotId):
        coordinator.propose(a.id, bad_id, s2.id)
    assert _slot(db, s1.id).state == SlotState.OFFERED


def test_propose_with_someone_elses_slot_is_not_eligible(coordinator, parties, make_user, make_slot):
    a, b, s1, s2 = parties
    c = make_user()
    s3 = make_slot(c, SlotState.OFFERED)
    with pytest.raises(NotEligible):
        coordinator.propose(a.id, s3.id, s2.id)


def test_propose_with_busy_slot_is_not_eligible(coordinator, parties, make_slot, db):
    a, b, s1, s2 = parties
    busy_mine = make_slot(a, SlotState.BUSY)
    busy_theirs = make_slot(b, SlotState.BUSY)

    with pytest.raises(NotEligible):
        coordinator.propose(a.id, busy_mine.id, s2.id)
    with pytest.raises(NotEligible):
        coordinator.propose(a.id, s1.id, busy_theirs.id)

    assert _slot(db, s1.id).state == SlotState.OFFERED
    assert _slot(db, s2.id).state == SlotState.OFFERED


def test_propose_against_own_slot_is_self_swap(coordinator, parties, make_slot):
    a, _, s1, _ = parties
    other_mine = make_slot(a, SlotState.OFFERED)
    with pytest.raises(SelfSwapRejected):
        coordinator.propose(a.id, s1.id, other_mine.id)
    with pytest.raises(SelfSwapRejected):
        coordinator.propose(a.id, s1.id, s1.id)


def test_reproposing_locked_slot_is_slot_locked(coordinator, parties, make_user, make_slot):
    a, b, s1, s2 = parties
    c = make_user()
    s3 = make_slot(c, SlotState.OFFERED)
    coordinator.propose(a.id, s1.id, s2.id)

    with pytest.raises(SlotLocked):
        coordinator.propose(a.id, s1.id, s3.id)
    with pytest.raises(SlotLocked):
        coordinator.propose(c.id, s3.id, s2.id)


def test_pending_proposal_blocks_slot_even_if_state_was_reset(coordinator, parties, db):
    """The ledger check catches a slot whose state no longer shows the lock."""
    a, b, s1, s2 = parties
    coordinator.propose(a.id, s1.id, s2.id)
    db.query(Slots).filter(Slots.id.in_([s1.id, s2.id])).update(
        {"state": SlotState.OFFERED.value}, synchronize_session=False
    )
    db.commit()

    with pytest.raises(SlotLocked):
        coordinator.propose(a.id, s1.id, s2.id)
    assert _pending_count(db, s1.id) == 1


def test_same_user_may_have_disjoint_pending_proposals(coordinator, parties, make_user, make_slot):
    a, b, s1, s2 = parties
    c = make_user()
    s1b = make_slot(a, SlotState.OFFERED)
    s3 = make_slot(c, SlotState.OFFERED)

    first = coordinator.propose(a.id, s1.id, s2.id)
    second = coordinator.propose(a.id, s1b.id, s3.id)

    assert first.status == second.status == SwapStatus.PENDING


def test_propose_lost_race_applies_nothing(coordinator, parties, db, monkeypatch):
    """Validation saw OFFERED but the lock CAS fails: nothing is committed."""
    a, b, s1, s2 = parties
    real_update_state = coordinator.store.update_state
    calls = {"n": 0}

    def racing_update_state(slot_id, expected, new):
        calls["n"] += 1
        if calls["n"] == 2:
            # Another worker locked this slot between validation and CAS
            raise SwapConflict(f"Slot {slot_id} is no longer OFFERED")
        return real_update_state(slot_id, expected, new)

    monkeypatch.setattr(coordinator.store, "update_state", racing_update_state)

    with pytest.raises(SwapConflict):
        coordinator.propose(a.id, s1.id, s2.id)

    assert _slot(db, s1.id).state == SlotState.OFFERED
    assert _slot(db, s2.id).state == SlotState.OFFERED
    assert db.query(SwapRequests).count() == 0


def test_propose_failure_after_locks_rolls_back(coordinator, parties, db, monkeypatch):
    a, b, s1, s2 = parties

    def broken_create(**kwargs):
        raise RuntimeError("ledger write failed")

    monkeypatch.setattr(coordinator.ledger, "create_proposal", broken_create)

    with pytest.raises(RuntimeError):
        coordinator.propose(a.id, s1.id, s2.id)

    assert _slot(db, s1.id).state == SlotState.OFFERED
    assert _slot(db, s2.id).state == SlotState.OFFERED


# ── Respond ──────────────────────────────────────────────────────────────

def test_accept_swaps_owners_exactly(coordinator, parties, make_user, make_slot, db):
    a, b, s1, s2 = parties
    bystander = make_user()
    s3 = make_slot(bystander, SlotState.OFFERED)
    proposal = coordinator.propose(a.id, s1.id, s2.id)

    resolved = coordinator.respond(b.id, proposal.id, accept=True)

    assert resolved.status == SwapStatus.ACCEPTED
    slot1, slot2, slot3 = _slot(db, s1.id), _slot(db, s2.id), _slot(db, s3.id)
    assert (slot1.owner_id, slot1.state) == (b.id, SlotState.BUSY)
    assert (slot2.owner_id, slot2.state) == (a.id, SlotState.BUSY)
    assert (slot3.owner_id, slot3.state) == (bystander.id, SlotState.OFFERED)


def test_second_accept_is_already_resolved(coordinator, parties, db):
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)
    coordinator.respond(b.id, proposal.id, accept=True)

    with pytest.raises(AlreadyResolved):
        coordinator.respond(b.id, proposal.id, accept=True)

    # No double swap
    assert _slot(db, s1.id).owner_id == b.id
    assert _slot(db, s2.id).owner_id == a.id


def test_reject_restores_offered_and_owners(coordinator, parties, db):
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)

    resolved = coordinator.respond(b.id, proposal.id, accept=False)

    assert resolved.status == SwapStatus.REJECTED
    slot1, slot2 = _slot(db, s1.id), _slot(db, s2.id)
    assert (slot1.owner_id, slot1.state) == (a.id, SlotState.OFFERED)
    assert (slot2.owner_id, slot2.state) == (b.id, SlotState.OFFERED)

    with pytest.raises(AlreadyResolved):
        coordinator.respond(b.id, proposal.id, accept=True)


def test_rejected_slots_can_be_proposed_again(coordinator, parties):
    a, b, s1, s2 = parties
    first = coordinator.propose(a.id, s1.id, s2.id)
    coordinator.respond(b.id, first.id, accept=False)

    second = coordinator.propose(a.id, s1.id, s2.id)
    assert second.id != first.id
    assert second.status == SwapStatus.PENDING


def test_respond_unknown_proposal(coordinator, parties):
    _, b, _, _ = parties
    with pytest.raises(ProposalNotFound):
        coordinator.respond(b.id, 424242, accept=True)


def test_only_counterpart_may_respond(coordinator, parties, make_user, db):
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)

    with pytest.raises(Unauthorized):
        coordinator.respond(a.id, proposal.id, accept=True)
    with pytest.raises(Unauthorized):
        coordinator.respond(make_user().id, proposal.id, accept=False)

    assert _pending_count(db, s1.id) == 1


def test_accept_failure_between_transfers_commits_nothing(coordinator, parties, db, monkeypatch):
    """Crash after the first ownership transfer: neither slot moves, ledger stays PENDING."""
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)
    proposal_id = proposal.id

    real_transfer = coordinator.store.transfer_ownership
    calls = {"n": 0}

    def crashing_transfer(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("injected failure")
        return real_transfer(*args, **kwargs)

    monkeypatch.setattr(coordinator.store, "transfer_ownership", crashing_transfer)

    with pytest.raises(RuntimeError):
        coordinator.respond(b.id, proposal_id, accept=True)

    db.expire_all()
    assert db.get(SwapRequests, proposal_id).status == SwapStatus.PENDING
    slot1, slot2 = _slot(db, s1.id), _slot(db, s2.id)
    assert (slot1.owner_id, slot1.state) == (a.id, SlotState.LOCKED)
    assert (slot2.owner_id, slot2.state) == (b.id, SlotState.LOCKED)

    # Retrying the whole call from scratch succeeds
    monkeypatch.setattr(coordinator.store, "transfer_ownership", real_transfer)
    assert coordinator.respond(b.id, proposal_id, accept=True).status == SwapStatus.ACCEPTED


def test_concurrent_resolution_is_conflict(coordinator, parties, db, monkeypatch):
    """Ledger CAS lost to a concurrent responder: slots untouched."""
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)

    def lost_race(proposal_id, outcome):
        raise SwapConflict(f"Swap request {proposal_id} was resolved concurrently")

    monkeypatch.setattr(coordinator.ledger, "resolve", lost_race)

    with pytest.raises(SwapConflict):
        coordinator.respond(b.id, proposal.id, accept=True)

    assert _slot(db, s1.id).owner_id == a.id
    assert _slot(db, s2.id).owner_id == b.id


def _vanish(db, slot_id):
    """Out-of-band delete that bypasses the Slot Store guard."""
    db.query(Slots).filter(Slots.id == slot_id).delete(synchronize_session=False)
    db.commit()


@pytest.mark.parametrize("accept", [True, False])
def test_vanished_slot_is_reported_not_resolved(coordinator, parties, db, accept):
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)
    proposal_id = proposal.id
    _vanish(db, s2.id)

    with pytest.raises(SlotVanished):
        coordinator.respond(b.id, proposal_id, accept=accept)

    db.expire_all()
    assert db.get(SwapRequests, proposal_id).status == SwapStatus.PENDING
    slot1 = _slot(db, s1.id)
    assert (slot1.owner_id, slot1.state) == (a.id, SlotState.LOCKED)


def test_operator_reject_releases_surviving_slot(coordinator, parties, db):
    a, b, s1, s2 = parties
    proposal = coordinator.propose(a.id, s1.id, s2.id)
    _vanish(db, s2.id)

    resolved = coordinator.operator_reject(proposal.id)

    assert resolved.status == SwapStatus.REJECTED
    assert _slot(db, s1.id).state == SlotState.OFFERED
    with pytest.raises(AlreadyResolved):
        coordinator.operator_reject(proposal.id)


# ── Invariants & cache ───────────────────────────────────────────────────

def test_states_and_single_owner_hold_through_lifecycle(coordinator, parties, db):
    a, b, s1, s2 = parties

    def check():
        db.expire_all()
        for slot in db.query(Slots).all():
            assert slot.state in {s.value for s in SlotState}
            assert slot.owner_id is not None
        for slot_id in (s1.id, s2.id):
            assert _pending_count(db, slot_id) <= 1

    check()
    first = coordinator.propose(a.id, s1.id, s2.id)
    check()
    coordinator.respond(b.id, first.id, accept=False)
    check()
    second = coordinator.propose(b.id, s2.id, s1.id)
    check()
    coordinator.respond(a.id, second.id, accept=True)
    check()


def test_invalidation_runs_after_commit(coordinator, parties, db, fake_redis, monkeypatch):
    a, b, s1, s2 = parties
    events = []
    real_commit = db.commit

    def recording_commit():
        events.append("commit")
        real_commit()

    monkeypatch.setattr(db, "commit", recording_commit)
    fake_redis.on_delete = lambda keys: events.append("invalidate")

    proposal = coordinator.propose(a.id, s1.id, s2.id)
    assert events and events[0] == "commit"
    assert "invalidate" in events

    events.clear()
    coordinator.respond(b.id, proposal.id, accept=True)
    assert events[0] == "commit"
    assert "invalidate" in events


def test_transitions_invalidate_both_participants(coordinator, parties, fake_redis):
    a, b, s1, s2 = parties
    fake_redis.setex(CacheKeys.offered(999), 600, "[]")

    coordinator.propose(a.id, s1.id, s2.id)

    for key in (
        CacheKeys.user_slots(a.id), CacheKeys.user_slots(b.id),
        CacheKeys.user_swaps(a.id), CacheKeys.user_swaps(b.id),
        CacheKeys.slot(s1.id), CacheKeys.slot(s2.id),
        CacheKeys.offered(999),
    ):
        assert key in fake_redis.deleted


def test_redis_down_does_not_fail_transitions(coordinator, parties, fake_redis, db):
    a, b, s1, s2 = parties
    fake_redis.fail = True

    proposal = coordinator.propose(a.id, s1.id, s2.id)
    resolved = coordinator.respond(b.id, proposal.id, accept=True)

    assert resolved.status == SwapStatus.ACCEPTED
    assert _slot(db, s1.id).owner_id == b.id
