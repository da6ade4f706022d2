"""
Domain errors raised by the reservation and slot services.

The services never raise ``HTTPException`` themselves; ``app.main`` maps each
error kind to a status code at the HTTP boundary.
"""

class ReservationError(Exception):
    """Base class for failures of a booking, reschedule or cancel operation."""

    error = "Reservation Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ReservationError):
    """The referenced time slot or appointment does not exist."""

    error = "Not Found"


class ConflictError(ReservationError):
    """The time slot (or appointment) is not in a state that allows the operation."""

    error = "Conflict"


class UnauthorizedError(ReservationError):
    """The requester is neither the appointment owner nor an administrator."""

    error = "Unauthorized"


class StorageFailure(ReservationError):
    """The store rejected the transaction; it was rolled back entirely.

    ``retryable`` marks failures the caller may simply resubmit, such as a
    booking reference collision, a lock timeout or a deadlock victim.
    """

    error = "Storage Failure"

    def __init__(self, message: str = "The operation could not be completed", retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
