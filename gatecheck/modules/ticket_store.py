"""
Ticket Store Module - GateCheck Event Check-in System

Persistent ticket collection backed by SQLite. Supports point lookup by
code, the conditional check-in update, bulk insert with per-record
settlement, and change subscriptions.

The check-in write is a single UPDATE gated on checked_in_at IS NULL, so
of several concurrent writers on one ticket exactly one sees a changed row,
whether they share this process or only the database file.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging
import sqlite3

from gatecheck.modules.database_manager import DatabaseManager
from gatecheck.modules.exceptions import DuplicateTicketCode, StoreUnavailable
from gatecheck.modules.models import ScanAttempt, Ticket, format_timestamp
from gatecheck.modules.notification_system import NotificationData, NotificationSystem

TICKET_COLUMNS = "ticket_code, attendee_name, event_name, checked_in_at"


class TicketStore:
    """SQLite implementation of the ticket store."""

    def __init__(self, database_manager: DatabaseManager,
                 notification_system: Optional[NotificationSystem] = None):
        self.db = database_manager
        self.notifications = notification_system or NotificationSystem()
        self.logger = logging.getLogger(__name__)

    def get_ticket(self, code: str) -> Optional[Ticket]:
        """
        Look up a ticket by exact, case-sensitive code.

        Raises:
            StoreUnavailable: the database could not be read
        """
        try:
            row = self.db.execute_query(
                f"SELECT {TICKET_COLUMNS} FROM tickets WHERE ticket_code = ?",
                (code,),
                fetch_all=False
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Ticket lookup failed: {str(e)}") from e
        return self._to_ticket(row) if row else None

    def _to_ticket(self, row) -> Ticket:
        try:
            return Ticket.from_row(row)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreUnavailable(f"Corrupt ticket record {row.get('ticket_code')}: {str(e)}") from e

    def mark_checked_in(self, code: str, when: datetime) -> bool:
        """
        Set checked_in_at for a ticket only if it is still null.

        Returns:
            bool: True if this call performed the transition

        Raises:
            StoreUnavailable: the write could not be completed
        """
        try:
            changed = self.db.execute_update(
                """UPDATE tickets SET checked_in_at = ?
                   WHERE ticket_code = ? AND checked_in_at IS NULL""",
                (format_timestamp(when), code)
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Check-in update failed: {str(e)}") from e

        if changed:
            self.notifications.publish_tickets_changed('checked_in', ticket_code=code)
        return changed == 1

    def insert_ticket(self, ticket: Ticket) -> Ticket:
        """
        Insert one ticket.

        Raises:
            DuplicateTicketCode: the code is already present
            StoreUnavailable: the write could not be completed
        """
        self._insert(ticket)
        self.notifications.publish_tickets_changed('created', ticket_code=ticket.ticket_code)
        return ticket

    def insert_many(self, tickets: List[Ticket]) -> List[Dict[str, Any]]:
        """
        Insert tickets independently; one failure does not abort the batch.

        Returns:
            List[Dict[str, Any]]: One result per ticket, in input order, with
            'success' and either 'ticket' or 'error'
        """
        results = []
        for ticket in tickets:
            try:
                self._insert(ticket)
                results.append({'success': True, 'ticket': ticket})
            except (DuplicateTicketCode, StoreUnavailable) as e:
                self.logger.warning(f"Ticket insert failed for {ticket.ticket_code}: {str(e)}")
                results.append({'success': False, 'ticket': ticket, 'error': str(e)})

        created = sum(1 for result in results if result['success'])
        if created:
            self.notifications.publish_tickets_changed('imported', count=created)
        return results

    def _insert(self, ticket: Ticket) -> None:
        try:
            self.db.execute_update(
                f"INSERT INTO tickets ({TICKET_COLUMNS}) VALUES (?, ?, ?, ?)",
                (
                    ticket.ticket_code,
                    ticket.attendee_name,
                    ticket.event_name,
                    format_timestamp(ticket.checked_in_at)
                )
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateTicketCode(ticket.ticket_code) from e
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Ticket insert failed: {str(e)}") from e

    def list_tickets(self) -> List[Ticket]:
        try:
            rows = self.db.execute_query(
                f"SELECT {TICKET_COLUMNS} FROM tickets ORDER BY attendee_name"
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Ticket listing failed: {str(e)}") from e
        return [self._to_ticket(row) for row in rows]

    def count_tickets(self) -> int:
        try:
            result = self.db.execute_query(
                "SELECT COUNT(*) AS count FROM tickets", fetch_all=False
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Ticket count failed: {str(e)}") from e
        return result['count'] if result else 0

    def subscribe(self, on_change: Callable[[NotificationData], None]) -> Callable[[], None]:
        """
        Receive a notification after every write to the ticket collection.

        Returns:
            Callable[[], None]: Cancel handle
        """
        return self.notifications.subscribe(
            on_change, NotificationSystem.NOTIFICATION_TYPES['TICKETS_CHANGED']
        )

    def log_check_in(self, attempt: ScanAttempt, status: str,
                     attendee_name: str = 'Unknown') -> None:
        """Append a scan outcome to the check_ins audit table."""
        try:
            self.db.execute_update(
                """INSERT INTO check_ins (ticket_code, status, attendee_name, observed_at)
                   VALUES (?, ?, ?, ?)""",
                (attempt.raw_code, status, attendee_name, format_timestamp(attempt.observed_at))
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Audit log write failed: {str(e)}") from e

    def recent_check_ins(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            return self.db.execute_query(
                """SELECT ticket_code, status, attendee_name, observed_at
                   FROM check_ins ORDER BY observed_at DESC, id DESC LIMIT ?""",
                (limit,)
            )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Audit log read failed: {str(e)}") from e
