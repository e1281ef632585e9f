"""Tests for the roster export."""

import io

import pandas as pd

from gatecheck.modules.report_generator import ReportGenerator

from conftest import T0


def test_excel_statistics_match_roster_from_one_read(ticket_store, add_ticket, monkeypatch):
    add_ticket('T1', 'Alice')
    add_ticket('T2', 'Bob', checked_in_at=T0)

    reads = []
    original = ticket_store.list_tickets

    def counting_list_tickets():
        reads.append(1)
        tickets = original()
        # a ticket added between two reads would skew a second read
        add_ticket(f'LATE-{len(reads)}', 'Late Comer')
        return tickets

    monkeypatch.setattr(ticket_store, 'list_tickets', counting_list_tickets)

    result = ReportGenerator(ticket_store).generate_roster_report('excel')

    assert result['success'] is True
    assert len(reads) == 1
    workbook = io.BytesIO(result['content'])
    roster = pd.read_excel(workbook, sheet_name='Roster')
    stats = pd.read_excel(workbook, sheet_name='Statistics')
    assert len(roster) == 2
    assert stats.iloc[0].to_dict() == {'total': 2, 'checkedIn': 1, 'notCheckedIn': 1}


def test_csv_roster_lists_check_ins_first(ticket_store, add_ticket):
    add_ticket('T1', 'Alice')
    add_ticket('T2', 'Bob', checked_in_at=T0)

    result = ReportGenerator(ticket_store).generate_roster_report('csv')

    lines = result['content'].decode('utf-8').splitlines()
    assert result['rows'] == 2
    assert lines[1].startswith('T2,Bob,Conf')
    assert lines[1].endswith('Checked In')
    assert lines[2].endswith('Not Checked In')


def test_unsupported_format(ticket_store):
    result = ReportGenerator(ticket_store).generate_roster_report('pdf')

    assert result['success'] is False
    assert 'pdf' in result['error']
