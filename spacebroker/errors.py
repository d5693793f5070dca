"""
Domain error taxonomy

Every error carries a stable machine-readable ``kind`` (the family) and
``code`` (the specific condition) plus a human message. The FastAPI handler in
main.py renders them as ``{"error": {"kind", "code", "message"}}``.
"""

import logging

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for all reservation/contract engine errors"""

    kind = "engine_error"
    code = "engine_error"
    status_code = 500

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"kind": self.kind, "code": self.code, "message": self.message}


# ============================================================================
# INPUT
# ============================================================================


class ValidationError(EngineError):
    """Malformed or out-of-range input, rejected before any write"""

    kind = "validation_error"
    code = "invalid_input"
    status_code = 400


class SnapshotIncomplete(ValidationError):
    code = "snapshot_incomplete"


class LegalIdentityIncomplete(ValidationError):
    """A contract party lacks the identity document their person type requires"""

    code = "legal_identity_incomplete"

    def __init__(self, message: str, user_id: int = None, missing: str = None):
        super().__init__(message)
        self.user_id = user_id
        self.missing = missing


class NotFoundError(EngineError):
    kind = "not_found"
    code = "not_found"
    status_code = 404


class PermissionDenied(EngineError):
    """Caller is not the party allowed to perform the operation"""

    kind = "permission_denied"
    code = "not_a_party"
    status_code = 403


class CapacityError(EngineError):
    """Requested quantity exceeds availability or price tier is missing"""

    kind = "capacity_error"
    code = "capacity_exceeded"
    status_code = 422


# ============================================================================
# STATE
# ============================================================================


class StateConflict(EngineError):
    """Operation not valid in the current state"""

    kind = "state_conflict"
    code = "state_conflict"
    status_code = 409


class InvalidTransition(StateConflict):
    code = "invalid_transition"


class RefundDenied(StateConflict):
    code = "refund_denied"


class AlreadySigned(StateConflict):
    code = "already_signed"


class RequesterMustSignFirst(StateConflict):
    code = "requester_must_sign_first"


class DuplicateContract(StateConflict):
    code = "duplicate_contract"


class SlotUnavailable(StateConflict):
    code = "slot_unavailable"


# ============================================================================
# ONE-TIME CODES
# ============================================================================


class CodeError(EngineError):
    kind = "code_error"
    code = "code_error"
    status_code = 400


class NoPendingCode(CodeError):
    code = "no_pending_code"


class CodeExpired(CodeError):
    code = "code_expired"


class InvalidCode(CodeError):
    code = "invalid_code"


# ============================================================================
# STORAGE GUARD
# ============================================================================


class ImmutabilityViolation(EngineError):
    """
    Raised when a write would alter frozen contractual data.

    Always a defect or tampering signal; logged as a critical alert on
    construction so it cannot go unnoticed even if a caller catches it.
    """

    kind = "immutability_violation"
    code = "frozen_data_immutable"
    status_code = 500

    def __init__(self, message: str, code: str = None):
        super().__init__(message, code)
        logger.critical(f"🚨 FROZEN_DATA_IMMUTABLE: {message}")
