"""Tests for the scan-to-verdict decision procedure."""

import sqlite3
import threading

import pytest

from gatecheck.modules.checkin_manager import CheckInManager, store_audit_hook
from gatecheck.modules.exceptions import AlreadyUsed, StoreUnavailable, UnknownCode
from gatecheck.modules.models import (
    REASON_STORE_ERROR,
    REASON_UNKNOWN_CODE,
    Duplicate,
    Invalid,
    Ticket,
    Valid,
    Verdict,
)

from conftest import T0


def test_fresh_ticket_is_valid_then_duplicate(checkin_manager, ticket_store, add_ticket, clock):
    add_ticket('TICKET001', 'John Doe', 'Conf')

    first = checkin_manager.evaluate('TICKET001')
    assert first == Valid(attendee_name='John Doe', event_name='Conf')
    assert ticket_store.get_ticket('TICKET001').checked_in_at == T0

    clock.advance(30)
    second = checkin_manager.evaluate('TICKET001')
    assert isinstance(second, Duplicate)
    assert second.attendee_name == 'John Doe'
    assert second.previous_checked_in_at == T0


def test_unknown_code_on_empty_store(checkin_manager, ticket_store):
    verdict = checkin_manager.evaluate('NOPE')

    assert isinstance(verdict, Invalid)
    assert verdict.reason == REASON_UNKNOWN_CODE
    assert ticket_store.count_tickets() == 0


def test_lookup_is_exact_and_case_sensitive(checkin_manager, ticket_store, add_ticket):
    add_ticket('TICKET001', 'John Doe')

    assert checkin_manager.evaluate('ticket001').reason == REASON_UNKNOWN_CODE
    assert checkin_manager.evaluate('TICKET001 ').reason == REASON_UNKNOWN_CODE
    assert ticket_store.get_ticket('TICKET001').checked_in_at is None


def test_blank_code_is_invalid_without_lookup(ticket_store, clock):
    calls = []
    manager = CheckInManager(ticket_store, audit_hook=calls.append, clock=clock)

    assert manager.evaluate('').reason == REASON_UNKNOWN_CODE
    assert manager.evaluate('   ').reason == REASON_UNKNOWN_CODE
    assert calls == []


def test_already_checked_in_ticket_is_never_mutated(checkin_manager, ticket_store, add_ticket, clock):
    add_ticket('VIP-7', 'Ada Lovelace', checked_in_at=T0)

    for _ in range(5):
        clock.advance(60)
        verdict = checkin_manager.evaluate('VIP-7')
        assert isinstance(verdict, Duplicate)
        assert verdict.previous_checked_in_at == T0

    assert ticket_store.get_ticket('VIP-7').checked_in_at == T0


def test_concurrent_scans_yield_exactly_one_valid(tmp_path, clock):
    from gatecheck.modules.database_manager import DatabaseManager
    from gatecheck.modules.ticket_store import TicketStore

    db_manager = DatabaseManager(tmp_path / 'race.db')
    store = TicketStore(db_manager)
    store.insert_ticket(Ticket('RACE-1', 'Grace Hopper', 'Conf'))
    manager = CheckInManager(store, clock=clock)

    workers = 8
    barrier = threading.Barrier(workers)
    verdicts = []
    lock = threading.Lock()

    def scan():
        barrier.wait()
        verdict = manager.evaluate('RACE-1')
        with lock:
            verdicts.append(verdict)

    threads = [threading.Thread(target=scan) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    db_manager.close_all_connections()

    assert len(verdicts) == workers
    assert sum(1 for verdict in verdicts if isinstance(verdict, Valid)) == 1
    assert sum(1 for verdict in verdicts if isinstance(verdict, Duplicate)) == workers - 1


def test_losing_the_conditional_update_reports_duplicate(clock):
    class RacingStore:
        """Another device checks the ticket in between our read and our write."""

        def __init__(self):
            self.reads = 0

        def get_ticket(self, code):
            self.reads += 1
            if self.reads == 1:
                return Ticket(code, 'Grace Hopper', 'Conf')
            return Ticket(code, 'Grace Hopper', 'Conf', checked_in_at=T0)

        def mark_checked_in(self, code, when):
            return False

    manager = CheckInManager(RacingStore(), notification_system=object(), clock=clock)
    verdict = manager.evaluate('RACE-2')

    assert isinstance(verdict, Duplicate)
    assert verdict.previous_checked_in_at == T0


def test_store_failure_on_lookup_is_store_error(checkin_manager, ticket_store, monkeypatch):
    def broken_query(*args, **kwargs):
        raise sqlite3.OperationalError('disk I/O error')

    monkeypatch.setattr(ticket_store.db, 'execute_query', broken_query)

    verdict = checkin_manager.evaluate('TICKET001')
    assert isinstance(verdict, Invalid)
    assert verdict.reason == REASON_STORE_ERROR


def test_store_failure_on_update_is_store_error(checkin_manager, ticket_store, add_ticket, monkeypatch):
    add_ticket('TICKET001', 'John Doe')

    def broken_update(*args, **kwargs):
        raise sqlite3.OperationalError('database is locked')

    monkeypatch.setattr(ticket_store.db, 'execute_update', broken_update)

    verdict = checkin_manager.evaluate('TICKET001')
    assert verdict.reason == REASON_STORE_ERROR
    monkeypatch.undo()
    assert ticket_store.get_ticket('TICKET001').checked_in_at is None


def test_unknown_code_is_audited_when_hook_installed(ticket_store, clock):
    manager = CheckInManager(ticket_store, audit_hook=store_audit_hook(ticket_store), clock=clock)

    manager.evaluate('FORGED-1')

    entries = ticket_store.recent_check_ins()
    assert len(entries) == 1
    assert entries[0]['ticket_code'] == 'FORGED-1'
    assert entries[0]['status'] == 'invalid'
    assert entries[0]['attendee_name'] == 'Unknown'


def test_no_audit_without_hook(checkin_manager, ticket_store):
    checkin_manager.evaluate('FORGED-1')
    assert ticket_store.recent_check_ins() == []


def test_failing_audit_hook_does_not_change_verdict(ticket_store, clock):
    def failing_hook(attempt):
        raise StoreUnavailable('audit table missing')

    manager = CheckInManager(ticket_store, audit_hook=failing_hook, clock=clock)
    assert manager.evaluate('FORGED-1').reason == REASON_UNKNOWN_CODE


def test_process_scan_shapes_response_and_notifies(checkin_manager, add_ticket, notification_system):
    add_ticket('TICKET001', 'John Doe', 'Conf')
    received = []
    notification_system.subscribe(received.append, 'checkin_verdict')

    result = checkin_manager.process_scan('TICKET001')

    assert result['success'] is True
    assert result['status'] == 'valid'
    assert result['message'] == 'Verified - Conf'
    assert result['verdict']['attendee_name'] == 'John Doe'
    assert received[0].severity == 'success'
    assert received[0].message == 'Checked in: John Doe (Conf)'

    duplicate = checkin_manager.process_scan('TICKET001')
    assert duplicate['success'] is False
    assert duplicate['status'] == 'duplicate'
    assert duplicate['message'] == 'Already checked in: John Doe'
    assert received[-1].severity == 'warning'


def test_verdicts_raise_matching_exceptions(checkin_manager, add_ticket):
    add_ticket('TICKET001', 'John Doe')

    checkin_manager.evaluate('TICKET001').raise_for_status()

    with pytest.raises(AlreadyUsed) as excinfo:
        checkin_manager.evaluate('TICKET001').raise_for_status()
    assert excinfo.value.checked_in_at == T0

    with pytest.raises(UnknownCode) as excinfo:
        checkin_manager.evaluate('NOPE').raise_for_status()
    assert excinfo.value.code == 'NOPE'

    with pytest.raises(StoreUnavailable):
        Invalid(reason=REASON_STORE_ERROR, code='X').raise_for_status()


def test_verdict_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Verdict()

    assert Valid('John Doe', 'Conf').raise_for_status() is None


def test_corrupt_check_in_time_is_store_error(checkin_manager, ticket_store):
    ticket_store.db.execute_update(
        "INSERT INTO tickets (ticket_code, attendee_name, event_name, checked_in_at) VALUES (?, ?, ?, ?)",
        ('BROKEN-1', 'John Doe', 'Conf', 'yesterday evening')
    )

    verdict = checkin_manager.evaluate('BROKEN-1')

    assert isinstance(verdict, Invalid)
    assert verdict.reason == REASON_STORE_ERROR
