"""
Exceptions Module - GateCheck Event Check-in System

Error taxonomy shared by the ticket store, the check-in decision procedure
and the camera decoder. Every error here is recovered locally and rendered
as a verdict or an inline message; none of them is fatal to the process.
"""


class GateCheckError(Exception):
    """Base class for all check-in system errors."""


class UnknownCode(GateCheckError):
    """Raised when a scanned code matches no ticket."""

    def __init__(self, code: str):
        super().__init__(f"Unknown ticket code: {code}")
        self.code = code


class AlreadyUsed(GateCheckError):
    """Raised when a ticket has already been checked in."""

    def __init__(self, code: str, checked_in_at=None):
        super().__init__(f"Ticket {code} already checked in at {checked_in_at}")
        self.code = code
        self.checked_in_at = checked_in_at


class StoreUnavailable(GateCheckError):
    """Transport or backend failure while reading or writing the ticket store."""


class CameraUnavailable(GateCheckError):
    """The decoder could not acquire the camera."""


class DuplicateTicketCode(GateCheckError):
    """A ticket with the same code already exists."""

    def __init__(self, code: str):
        super().__init__(f"Ticket code already exists: {code}")
        self.code = code


class TicketValidationError(GateCheckError):
    """Ticket data is missing a required field."""
