"""
Report Generator Module - GateCheck Event Check-in System

Exports the check-in roster as CSV or Excel using pandas. The roster uses
the dashboard ordering: most recent check-ins first, then attendees still
expected, alphabetically.
"""

import io
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from gatecheck.modules.dashboard_manager import sort_roster, summarize
from gatecheck.modules.models import Ticket
from gatecheck.modules.ticket_store import TicketStore

ROSTER_COLUMNS = {
    'ticket_code': 'Ticket Code',
    'attendee_name': 'Attendee Name',
    'event_name': 'Event Name',
    'checked_in_at': 'Checked In At'
}


class ReportGenerator:
    """
    Roster export for the check-in desk.
    """

    supported_formats = ('csv', 'excel')

    def __init__(self, ticket_store: TicketStore):
        self.store = ticket_store
        self.logger = logging.getLogger(__name__)

    def build_roster_frame(self, tickets: Optional[List[Ticket]] = None) -> pd.DataFrame:
        if tickets is None:
            tickets = self.store.list_tickets()
        tickets = sort_roster(tickets)
        df = pd.DataFrame(
            [ticket.to_dict() for ticket in tickets],
            columns=list(ROSTER_COLUMNS)
        )
        df['status'] = df['checked_in_at'].map(
            lambda value: 'Checked In' if value else 'Not Checked In'
        )
        return df.rename(columns=dict(ROSTER_COLUMNS, status='Status'))

    def generate_roster_report(self, output_format: str = 'csv') -> Dict[str, Any]:
        """
        Export the roster.

        Args:
            output_format (str): 'csv' or 'excel'

        Returns:
            Dict[str, Any]: {'success', 'filename', 'mimetype', 'content', 'rows'}
        """
        if output_format not in self.supported_formats:
            return {
                'success': False,
                'error': f"Unsupported format: {output_format}"
            }

        tickets = self.store.list_tickets()
        df = self.build_roster_frame(tickets)
        stamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')

        if output_format == 'csv':
            content = df.to_csv(index=False).encode('utf-8')
            filename = f"roster_{stamp}.csv"
            mimetype = 'text/csv'
        else:
            buffer = io.BytesIO()
            with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
                df.to_excel(writer, sheet_name='Roster', index=False)
                pd.DataFrame([summarize(tickets)]).to_excel(writer, sheet_name='Statistics', index=False)
            content = buffer.getvalue()
            filename = f"roster_{stamp}.xlsx"
            mimetype = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

        self.logger.info(f"Roster exported as {output_format} ({len(df)} rows)")
        return {
            'success': True,
            'filename': filename,
            'mimetype': mimetype,
            'content': content,
            'rows': len(df)
        }
