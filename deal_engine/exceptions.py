"""
Error Taxonomy for the Deal Engine

Every policy violation is a typed exception. They subclass ValueError so the
HTTP layer keeps treating them as client errors, and carry a stable `code`
plus the HTTP status the API should answer with.
"""


class DealEngineError(ValueError):
    """Base class for all deal engine policy errors."""

    code = "deal_engine_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "status": "denied"}


class UnknownStatus(DealEngineError):
    code = "unknown_status"

    def __init__(self, status):
        super().__init__(f"Unknown deal status: {status!r}")
        self.status = status


class IllegalTargetStatus(DealEngineError):
    code = "illegal_target_status"

    def __init__(self, status: str, superseded_by: str | None = None):
        message = f"'{status}' is a legacy status and cannot be set directly"
        if superseded_by:
            message += f"; use '{superseded_by}' instead"
        super().__init__(message)
        self.status = status
        self.superseded_by = superseded_by


class InsufficientRole(DealEngineError):
    code = "insufficient_role"
    http_status = 403


class PreconditionNotMet(DealEngineError):
    code = "precondition_not_met"
    http_status = 422


class UseExplicitPaymentRequestAction(DealEngineError):
    code = "use_payment_request_action"
    http_status = 422

    def __init__(self, message: str = "Use the Request Payment action to mark a deal as Pending"):
        super().__init__(message)


class NoRepAssigned(DealEngineError):
    code = "no_rep_assigned"


class ConflictingCommissionRoles(DealEngineError):
    code = "conflicting_commission_roles"
    http_status = 409


class ReceiptAlreadyExists(DealEngineError):
    code = "receipt_already_exists"
    http_status = 409

    def __init__(self, deal_id: str, kind: str):
        super().__init__(
            f"A {kind} receipt already exists for deal {deal_id}; replace it explicitly to record a new one"
        )
        self.deal_id = deal_id
        self.kind = kind


class ConcurrentModification(DealEngineError):
    """The persisted deal changed since it was read. Re-read and retry."""

    code = "concurrent_modification"
    http_status = 409
    retryable = True

    def __init__(self, deal_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Deal {deal_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.deal_id = deal_id
        self.expected_version = expected_version
        self.actual_version = actual_version
