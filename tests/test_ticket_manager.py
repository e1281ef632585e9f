"""Tests for manual ticket entry and bulk import."""

from gatecheck.modules.ticket_manager import TicketManager, clean_ticket_row


def test_bulk_import_with_one_incomplete_row(ticket_store):
    manager = TicketManager(ticket_store)

    result = manager.bulk_create_tickets([
        {'ticket_code': 'T1', 'attendee_name': 'Alice', 'event_name': 'Conf'},
        {'ticket_code': 'T2', 'attendee_name': 'Bob', 'event_name': 'Conf'},
        {'ticket_code': 'T3', 'attendee_name': '   ', 'event_name': 'Conf'},
        {'ticket_code': 'T4', 'attendee_name': 'Dana', 'event_name': 'Conf'},
    ])

    assert result['created'] == 3
    assert result['rejected'] == 1
    assert result['status'] == 'partial'
    assert result['success'] is True
    assert result['errors'][0]['row'] == 3
    assert ticket_store.count_tickets() == 3
    assert ticket_store.get_ticket('T3') is None


def test_bulk_import_keeps_going_after_duplicate(ticket_store, add_ticket):
    add_ticket('T1', 'Already There')
    manager = TicketManager(ticket_store)

    result = manager.bulk_create_tickets([
        {'ticket_code': 'T1', 'attendee_name': 'Alice', 'event_name': 'Conf'},
        {'ticket_code': 'T2', 'attendee_name': 'Bob', 'event_name': 'Conf'},
    ])

    assert result['created'] == 1
    assert result['failed'] == 1
    assert result['status'] == 'partial'
    assert ticket_store.get_ticket('T1').attendee_name == 'Already There'


def test_fields_are_trimmed(ticket_store):
    manager = TicketManager(ticket_store)

    result = manager.bulk_create_tickets([
        {'ticket_code': '  T9 ', 'attendee_name': ' Zoe ', 'event_name': ' Conf '},
    ])

    assert result['status'] == 'complete'
    assert ticket_store.get_ticket('T9').attendee_name == 'Zoe'


def test_clean_ticket_row_requires_all_fields():
    assert clean_ticket_row({'ticket_code': 'A', 'attendee_name': 'B'}) is None
    assert clean_ticket_row({'ticket_code': 'A', 'attendee_name': 'B', 'event_name': None}) is None
    assert clean_ticket_row({'ticket_code': 'A', 'attendee_name': 'B', 'event_name': 'C'}) == {
        'ticket_code': 'A', 'attendee_name': 'B', 'event_name': 'C'
    }


def test_csv_import_skips_header_and_blank_lines(ticket_store):
    manager = TicketManager(ticket_store)
    csv_content = (
        "ticket_code,attendee_name,event_name\n"
        "TICKET001, John Doe, Conf\n"
        "\n"
        "TICKET002,Jane Roe,Conf\n"
        "TICKET003,,Conf\n"
        "TICKET004,Sam Poe,Conf\n"
        "\n"
    )

    result = manager.import_tickets_from_csv(csv_content)

    assert result['import_method'] == 'csv'
    assert result['total_rows'] == 4
    assert result['created'] == 3
    assert result['rejected'] == 1
    assert ticket_store.get_ticket('TICKET001').attendee_name == 'John Doe'


def test_csv_import_with_only_header(ticket_store):
    result = TicketManager(ticket_store).import_tickets_from_csv("ticket_code,attendee_name,event_name\n")

    assert result['success'] is False
    assert result['error'] == 'No valid tickets found in CSV'


def test_manual_entry_defaults_event_name(ticket_store):
    manager = TicketManager(ticket_store, default_event_name='My Event')

    result = manager.create_ticket({'ticket_code': 'QR12345', 'attendee_name': 'Ann Lee'})

    assert result['success'] is True
    assert result['ticket']['event_name'] == 'My Event'
    assert result['ticket']['checked_in_at'] is None


def test_manual_entry_rejects_missing_fields_and_duplicates(ticket_store):
    manager = TicketManager(ticket_store)

    missing = manager.create_ticket({'ticket_code': 'QR1', 'attendee_name': ' '})
    assert missing['success'] is False
    assert 'attendee_name' in missing['error']

    assert manager.create_ticket({'ticket_code': 'QR1', 'attendee_name': 'Ann'})['success']
    duplicate = manager.create_ticket({'ticket_code': 'QR1', 'attendee_name': 'Bea'})
    assert duplicate['success'] is False
    assert 'already exists' in duplicate['error']


def test_manual_entry_can_include_qr_image(ticket_store):
    result = TicketManager(ticket_store).create_ticket(
        {'ticket_code': 'QR2', 'attendee_name': 'Ann', 'event_name': 'Conf'},
        include_qr=True
    )

    assert result['qr_image']
