"""Domain errors raised by the scheduling services.

Each error carries the HTTP status it maps to and a user-facing detail
message; ``app.main`` registers a handler that renders them.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for caller-recoverable scheduling errors."""

    status_code = 400
    kind = "booking_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(BookingError):
    status_code = 404
    kind = "not_found"


class ForbiddenError(BookingError):
    status_code = 403
    kind = "forbidden"


class InvalidInputError(BookingError):
    status_code = 400
    kind = "invalid_input"


class SlotUnavailableError(BookingError):
    status_code = 409
    kind = "slot_unavailable"


class ConflictError(BookingError):
    status_code = 409
    kind = "conflict"


class InvalidTransitionError(BookingError):
    """Raised when the appointment state machine refuses a move."""

    status_code = 400
    kind = "invalid_transition"

    def __init__(self, detail: str, current_status: Optional[str] = None):
        super().__init__(detail)
        self.current_status = current_status


class InvalidStateError(BookingError):
    """The referenced entity exists but cannot take part in the operation,
    e.g. booking with a user who is not a provider."""

    status_code = 400
    kind = "invalid_state"
