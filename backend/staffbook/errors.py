# backend/staffbook/errors.py
"""
Error hierarchy of the booking engine.

Availability "no" answers are data (AvailabilityDecision); these exceptions
are raised only at the service boundary.
"""


class BookingError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str, reasons: list[str] | tuple[str, ...] = ()):
        super().__init__(message)
        self.message = message
        self.reasons = tuple(reasons)


class ValidationError(BookingError):
    """Malformed input: bad date/time format, unknown timezone."""

    status_code = 400


class NotFoundError(BookingError):
    """Referenced staff, service or booking does not exist or is inactive."""

    status_code = 404


class ConflictError(BookingError):
    """Well-formed request rejected by the availability check or state rules."""

    status_code = 409

    def __init__(self, reasons: list[str] | tuple[str, ...], message: str | None = None):
        super().__init__(
            message or "Sorry, the selected time slot is no longer available.",
            reasons,
        )


class UnverifiableExternalStateError(BookingError):
    """The external calendar could not be queried or updated."""


class TransactionError(BookingError):
    """Persistence failure during a locked write; the transaction was rolled back."""

    def __init__(self, message: str = "Failed to save booking changes."):
        super().__init__(message)
