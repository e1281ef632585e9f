"""
Dashboard Manager Module - GateCheck Event Check-in System

Read-only projection of the ticket collection for the live dashboard.
Recomputes {total, checkedIn, notCheckedIn} on every change notification
and orders the roster with the most recent check-ins first, followed by
attendees not yet checked in in alphabetical order.
"""

from typing import Any, Callable, Dict, Iterable, List
import logging

from gatecheck.modules.models import Ticket
from gatecheck.modules.ticket_store import TicketStore


def summarize(tickets: Iterable[Ticket]) -> Dict[str, int]:
    """Count total, checked-in and not-checked-in tickets."""
    tickets = list(tickets)
    checked_in = sum(1 for ticket in tickets if ticket.checked_in_at is not None)
    return {
        'total': len(tickets),
        'checkedIn': checked_in,
        'notCheckedIn': len(tickets) - checked_in
    }


def sort_roster(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Checked-in tickets newest first, then the rest by attendee name."""
    tickets = list(tickets)
    checked_in = sorted(
        (ticket for ticket in tickets if ticket.checked_in_at is not None),
        key=lambda ticket: ticket.checked_in_at,
        reverse=True
    )
    waiting = sorted(
        (ticket for ticket in tickets if ticket.checked_in_at is None),
        key=lambda ticket: (ticket.attendee_name.casefold(), ticket.ticket_code)
    )
    return checked_in + waiting


class DashboardManager:
    """
    Live check-in dashboard over a ticket store.
    """

    def __init__(self, ticket_store: TicketStore):
        self.store = ticket_store
        self.logger = logging.getLogger(__name__)

    def snapshot(self) -> Dict[str, Any]:
        """
        Read the whole collection and build the dashboard view.

        Returns:
            Dict[str, Any]: {'stats': {...}, 'attendees': [ticket dicts]}
        """
        tickets = self.store.list_tickets()
        return {
            'stats': summarize(tickets),
            'attendees': [ticket.to_dict() for ticket in sort_roster(tickets)]
        }

    def subscribe(self, on_update: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """
        Push a fresh snapshot now and after every change to the ticket collection.

        Args:
            on_update: Called with each snapshot

        Returns:
            Callable[[], None]: Cancel handle; invoke on teardown
        """
        def handle_change(_notification) -> None:
            on_update(self.snapshot())

        cancel = self.store.subscribe(handle_change)
        try:
            on_update(self.snapshot())
        except Exception:
            cancel()
            raise
        return cancel
