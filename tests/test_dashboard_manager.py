"""Tests for the dashboard aggregation and live subscription."""

from datetime import timedelta

from gatecheck.modules.dashboard_manager import DashboardManager, sort_roster, summarize
from gatecheck.modules.models import Ticket

from conftest import T0


def _five_tickets():
    return [
        Ticket('T1', 'Eve', 'Conf'),
        Ticket('T2', 'bob', 'Conf', checked_in_at=T0),
        Ticket('T3', 'Alice', 'Conf'),
        Ticket('T4', 'Carl', 'Conf', checked_in_at=T0 + timedelta(minutes=5)),
        Ticket('T5', 'Dora', 'Conf'),
    ]


def test_summary_counts():
    assert summarize(_five_tickets()) == {'total': 5, 'checkedIn': 2, 'notCheckedIn': 3}
    assert summarize([]) == {'total': 0, 'checkedIn': 0, 'notCheckedIn': 0}


def test_roster_order_recent_check_ins_first_then_alphabetical():
    ordered = [ticket.ticket_code for ticket in sort_roster(_five_tickets())]

    assert ordered == ['T4', 'T2', 'T3', 'T5', 'T1']


def test_snapshot_reads_store(ticket_store, add_ticket):
    for ticket in _five_tickets():
        add_ticket(ticket.ticket_code, ticket.attendee_name, ticket.event_name, ticket.checked_in_at)

    snapshot = DashboardManager(ticket_store).snapshot()

    assert snapshot['stats'] == {'total': 5, 'checkedIn': 2, 'notCheckedIn': 3}
    assert snapshot['attendees'][0]['ticket_code'] == 'T4'
    assert snapshot['attendees'][0]['checked_in_at'] == (T0 + timedelta(minutes=5)).isoformat()


def test_subscription_recomputes_on_change_and_cancels(ticket_store, add_ticket, checkin_manager):
    dashboard = DashboardManager(ticket_store)
    updates = []

    cancel = dashboard.subscribe(updates.append)
    assert updates[-1]['stats'] == {'total': 0, 'checkedIn': 0, 'notCheckedIn': 0}

    add_ticket('TICKET001', 'John Doe')
    assert updates[-1]['stats'] == {'total': 1, 'checkedIn': 0, 'notCheckedIn': 1}

    checkin_manager.evaluate('TICKET001')
    assert updates[-1]['stats'] == {'total': 1, 'checkedIn': 1, 'notCheckedIn': 0}

    cancel()
    seen = len(updates)
    add_ticket('TICKET002', 'Jane Roe')
    assert len(updates) == seen
    assert ticket_store.notifications.listener_count() == 0
