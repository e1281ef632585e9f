"""Shared fixtures for the check-in tests."""

from datetime import datetime, timedelta, timezone

import pytest

from gatecheck.modules.checkin_manager import CheckInManager
from gatecheck.modules.database_manager import DatabaseManager
from gatecheck.modules.models import Ticket
from gatecheck.modules.notification_system import NotificationSystem
from gatecheck.modules.ticket_store import TicketStore

T0 = datetime(2025, 3, 14, 18, 30, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; every call returns the current value."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(tmp_path / 'tickets.db')
    yield manager
    manager.close_all_connections()


@pytest.fixture
def notification_system():
    return NotificationSystem()


@pytest.fixture
def ticket_store(db_manager, notification_system):
    return TicketStore(db_manager, notification_system)


@pytest.fixture
def checkin_manager(ticket_store, clock):
    return CheckInManager(ticket_store, clock=clock)


@pytest.fixture
def add_ticket(ticket_store):
    def _add(code, name, event='Conf', checked_in_at=None):
        return ticket_store.insert_ticket(Ticket(code, name, event, checked_in_at))
    return _add
