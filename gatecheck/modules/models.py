"""
Models Module - GateCheck Event Check-in System

Data structures for tickets, scan attempts and check-in verdicts.

A Ticket is identified by its ticket_code and carries a nullable
checked_in_at timestamp that only ever moves from None to a value.
A Verdict is the sole output of the check-in decision procedure and is
one of Valid, Invalid or Duplicate.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from gatecheck.modules.exceptions import AlreadyUsed, StoreUnavailable, UnknownCode

STATUS_VALID = 'valid'
STATUS_INVALID = 'invalid'
STATUS_DUPLICATE = 'duplicate'

REASON_UNKNOWN_CODE = 'unknown code'
REASON_STORE_ERROR = 'store error'


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO-8601 text, normalised to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO-8601 text from the store back into an aware datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Ticket:
    """A record entitling one attendee to entry."""
    ticket_code: str
    attendee_name: str
    event_name: str
    checked_in_at: Optional[datetime] = None

    @property
    def is_checked_in(self) -> bool:
        return self.checked_in_at is not None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Ticket':
        return cls(
            ticket_code=row['ticket_code'],
            attendee_name=row['attendee_name'],
            event_name=row['event_name'],
            checked_in_at=parse_timestamp(row.get('checked_in_at'))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ticket_code': self.ticket_code,
            'attendee_name': self.attendee_name,
            'event_name': self.event_name,
            'checked_in_at': format_timestamp(self.checked_in_at)
        }


@dataclass(frozen=True)
class ScanAttempt:
    """A single decoded code, alive only for one evaluation."""
    raw_code: str
    observed_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Verdict(ABC):
    """Abstract base for the three-way classification of a scan attempt."""

    status = ''

    @property
    def is_valid(self) -> bool:
        return self.status == STATUS_VALID

    @property
    @abstractmethod
    def message(self) -> str:
        """Operator-facing text for the verdict."""

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""

    def raise_for_status(self) -> None:
        """
        Raise the matching exception for verdicts that are not Valid.
        Valid inherits this no-op: an admitted ticket has nothing to raise.
        """


@dataclass(frozen=True)
class Valid(Verdict):
    attendee_name: str
    event_name: str

    status = STATUS_VALID

    @property
    def message(self) -> str:
        return f"Verified - {self.event_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'message': self.message,
            'attendee_name': self.attendee_name,
            'event_name': self.event_name
        }


@dataclass(frozen=True)
class Invalid(Verdict):
    reason: str
    code: Optional[str] = None

    status = STATUS_INVALID

    @property
    def message(self) -> str:
        if self.reason == REASON_STORE_ERROR:
            return 'Error checking ticket'
        return 'Invalid ticket code'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'message': self.message,
            'reason': self.reason
        }

    def raise_for_status(self) -> None:
        if self.reason == REASON_STORE_ERROR:
            raise StoreUnavailable(self.message)
        raise UnknownCode(self.code or '')


@dataclass(frozen=True)
class Duplicate(Verdict):
    attendee_name: str
    previous_checked_in_at: datetime
    code: Optional[str] = None

    status = STATUS_DUPLICATE

    @property
    def message(self) -> str:
        return f"Already checked in: {self.attendee_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'message': self.message,
            'attendee_name': self.attendee_name,
            'previous_checked_in_at': format_timestamp(self.previous_checked_in_at)
        }

    def raise_for_status(self) -> None:
        raise AlreadyUsed(self.code or '', self.previous_checked_in_at)
