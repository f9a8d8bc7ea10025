# backend/slotswap/errors.py
"""
Typed failures of the swap engine.

Every error carries a stable code, a category, an HTTP status and a
retryable flag. Only conflict/unavailable errors are safe to retry: the
transaction that raised them was rolled back in full.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    ELIGIBILITY = "eligibility"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTEGRITY = "integrity"
    UNAVAILABLE = "unavailable"


class SwapError(Exception):
    """Base class for every error the swap engine reports to callers."""

    code = "swap_error"
    category = ErrorCategory.CONFLICT
    http_status = 400
    retryable = False
    default_message = "Swap operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }


# ── Validation ──────────────────────────────────────────────────────────

class InvalidTimeRange(SwapError):
    code = "invalid_time_range"
    category = ErrorCategory.VALIDATION
    default_message = "End time must be after start time"


class InvalidSlotState(SwapError):
    code = "invalid_slot_state"
    category = ErrorCategory.VALIDATION
    default_message = "Slot state can only be set to BUSY or OFFERED"


class InvalidSlotUpdate(SwapError):
    code = "invalid_slot_update"
    category = ErrorCategory.VALIDATION
    default_message = "Slot fields cannot be cleared"


class InvalidSlotId(SwapError):
    code = "invalid_slot_id"
    category = ErrorCategory.VALIDATION
    default_message = "Invalid slot ID"


# ── Not found ───────────────────────────────────────────────────────────

class SlotNotFound(SwapError):
    code = "slot_not_found"
    category = ErrorCategory.NOT_FOUND
    http_status = 404
    default_message = "Slot not found"


class ProposalNotFound(SwapError):
    code = "proposal_not_found"
    category = ErrorCategory.NOT_FOUND
    http_status = 404
    default_message = "Swap request not found"


# ── Eligibility ─────────────────────────────────────────────────────────

class NotEligible(SwapError):
    code = "not_eligible"
    category = ErrorCategory.ELIGIBILITY
    default_message = "Slot is not offered for swap"


class SelfSwapRejected(SwapError):
    code = "self_swap_rejected"
    category = ErrorCategory.ELIGIBILITY
    default_message = "Cannot swap with your own slot"


class SlotLocked(SwapError):
    code = "slot_locked"
    category = ErrorCategory.ELIGIBILITY
    http_status = 409
    default_message = "Slot is involved in a pending swap"


class Unauthorized(SwapError):
    code = "unauthorized"
    category = ErrorCategory.ELIGIBILITY
    http_status = 403
    default_message = "You are not authorized to respond to this swap request"


class AlreadyResolved(SwapError):
    code = "already_resolved"
    category = ErrorCategory.ELIGIBILITY
    http_status = 409
    default_message = "Swap request has already been responded to"


# ── Integrity ───────────────────────────────────────────────────────────

class SlotVanished(SwapError):
    code = "slot_vanished"
    category = ErrorCategory.INTEGRITY
    http_status = 409
    default_message = "One or both slots no longer exist"


# ── Retryable ───────────────────────────────────────────────────────────

class SwapConflict(SwapError):
    code = "conflict"
    category = ErrorCategory.CONFLICT
    http_status = 409
    retryable = True
    default_message = "Concurrent update detected, retry the request"


class StoreUnavailable(SwapError):
    code = "unavailable"
    category = ErrorCategory.UNAVAILABLE
    http_status = 503
    retryable = True
    default_message = "Storage is temporarily unavailable"
