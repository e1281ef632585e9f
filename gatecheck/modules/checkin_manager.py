"""
Check-in Manager Module - GateCheck Event Check-in System

This module holds the scan-to-verdict decision procedure. Given a decoded
ticket code it decides whether the scan is Valid, Invalid or a Duplicate
and performs the single allowed state transition on the matching ticket.

The transition is a conditional update in the store (only applied while
checked_in_at is still null), never a read-then-write from here, so two
devices scanning the same ticket at the same instant get exactly one
Valid verdict between them.

Features:
- Exact-match ticket lookup
- At-most-once check-in through a conditional store write
- Duplicate detection reporting the original check-in time
- Optional audit hook for unknown codes
- Store failures reported as Invalid("store error")
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging

from gatecheck.modules.exceptions import StoreUnavailable
from gatecheck.modules.models import (
    REASON_STORE_ERROR,
    REASON_UNKNOWN_CODE,
    STATUS_INVALID,
    Duplicate,
    Invalid,
    ScanAttempt,
    Valid,
    Verdict,
    format_timestamp,
    utcnow,
)
from gatecheck.modules.notification_system import NotificationSystem
from gatecheck.modules.ticket_store import TicketStore

AuditHook = Callable[[ScanAttempt], None]


def store_audit_hook(ticket_store: TicketStore) -> AuditHook:
    """Build an audit hook that records unknown codes in the store's check_ins table."""
    def record_invalid_attempt(attempt: ScanAttempt) -> None:
        ticket_store.log_check_in(attempt, STATUS_INVALID, 'Unknown')
    return record_invalid_attempt


class CheckInManager:
    """
    Ticket verification and single-use check-in.
    """

    def __init__(self, ticket_store: TicketStore,
                 audit_hook: Optional[AuditHook] = None,
                 notification_system: Optional[NotificationSystem] = None,
                 clock: Callable[[], datetime] = utcnow):
        """
        Initialize the check-in manager.

        Args:
            ticket_store (TicketStore): Store holding the tickets
            audit_hook: Called with the ScanAttempt when a code is unknown
            notification_system (NotificationSystem): Receives verdict notifications
            clock: Returns the current time as an aware datetime
        """
        self.store = ticket_store
        self.audit_hook = audit_hook
        self.notifications = notification_system or ticket_store.notifications
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def evaluate(self, code: str) -> Verdict:
        """
        Decide the verdict for a decoded code and check the ticket in if it is fresh.

        Args:
            code (str): Decoded ticket code, used verbatim as the lookup key

        Returns:
            Verdict: Valid, Invalid or Duplicate
        """
        attempt = ScanAttempt(raw_code=code, observed_at=self.clock())

        if not code or not code.strip():
            return Invalid(reason=REASON_UNKNOWN_CODE, code=code)

        try:
            ticket = self.store.get_ticket(code)

            if ticket is None:
                self._audit(attempt)
                return Invalid(reason=REASON_UNKNOWN_CODE, code=code)

            if ticket.checked_in_at is not None:
                return Duplicate(
                    attendee_name=ticket.attendee_name,
                    previous_checked_in_at=ticket.checked_in_at,
                    code=code
                )

            if self.store.mark_checked_in(code, attempt.observed_at):
                self.logger.info(f"Ticket {code} checked in for {ticket.attendee_name}")
                return Valid(attendee_name=ticket.attendee_name, event_name=ticket.event_name)

            # Lost the race: another scan set checked_in_at between our read and write
            winner = self.store.get_ticket(code)
            if winner is None or winner.checked_in_at is None:
                self.logger.warning(f"Ticket {code} changed during check-in")
                return Invalid(reason=REASON_UNKNOWN_CODE, code=code)
            return Duplicate(
                attendee_name=winner.attendee_name,
                previous_checked_in_at=winner.checked_in_at,
                code=code
            )

        except StoreUnavailable as e:
            self.logger.error(f"Store unavailable while checking {code}: {str(e)}")
            return Invalid(reason=REASON_STORE_ERROR, code=code)

    def _audit(self, attempt: ScanAttempt) -> None:
        if self.audit_hook is None:
            return
        try:
            self.audit_hook(attempt)
        except Exception as e:
            self.logger.error(f"Audit hook failed for {attempt.raw_code}: {str(e)}")

    def process_scan(self, code: str) -> Dict[str, Any]:
        """
        Evaluate a scan and shape the outcome for the HTTP API.

        Args:
            code (str): Decoded ticket code

        Returns:
            Dict[str, Any]: Scan processing result
        """
        verdict = self.evaluate(code)
        verdict_data = verdict.to_dict()

        self.notifications.send_verdict_notification(dict(verdict_data, code=code))

        return {
            'success': verdict.is_valid,
            'status': verdict.status,
            'message': verdict.message,
            'verdict': verdict_data,
            'timestamp': format_timestamp(self.clock())
        }
