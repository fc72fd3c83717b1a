"""Error taxonomy shared by the booking and registration core.

Every error is recoverable: the caller fixes its input and tries again.
"""


class HMSError(Exception):
    """Base class; `code` is the stable identifier sent to API clients."""

    code = "HMS_ERROR"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class ValidationFailed(HMSError):
    """A required field is missing or malformed."""

    code = "VALIDATION_FAILED"

    def __init__(self, detail: str = "", fields: list[str] | None = None) -> None:
        super().__init__(detail)
        self.fields = fields or []


class InvalidSlot(HMSError):
    """The requested time is not on the generated slot grid."""

    code = "INVALID_SLOT"


class OutOfRangeDate(HMSError):
    """The requested date is before today or beyond the booking window."""

    code = "OUT_OF_RANGE_DATE"


class SlotUnavailable(HMSError):
    """The slot was booked (or elapsed) between display and commit."""

    code = "SLOT_UNAVAILABLE"


class AlreadyCancelled(HMSError):
    code = "ALREADY_CANCELLED"


class InvalidTransition(HMSError):
    """A status change that the entity's state machine does not allow."""

    code = "INVALID_TRANSITION"


class NotFound(HMSError):
    """Unknown doctor, hospital, appointment, registration or session."""

    code = "NOT_FOUND"


__all__ = [
    "HMSError",
    "ValidationFailed",
    "InvalidSlot",
    "OutOfRangeDate",
    "SlotUnavailable",
    "AlreadyCancelled",
    "InvalidTransition",
    "NotFound",
]
