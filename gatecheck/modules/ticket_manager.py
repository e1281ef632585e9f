"""
Ticket Manager Module - GateCheck Event Check-in System

This module handles ticket administration before the event: manual ticket
entry, bulk creation and CSV import. A row is accepted only when
ticket_code, attendee_name and event_name are all non-empty after trimming.
Accepted rows are inserted independently, so a bad or duplicate row never
aborts the rest of the batch.

Features:
- Manual ticket creation
- Bulk ticket creation with per-row results
- CSV import (ticket_code, attendee_name, event_name)
- QR image generation for created tickets
"""

from typing import Any, Dict, List, Optional
import csv
import io
import logging

from config import Config
from gatecheck.modules.exceptions import (
    DuplicateTicketCode,
    StoreUnavailable,
    TicketValidationError,
)
from gatecheck.modules.models import Ticket
from gatecheck.modules.qr_generator import QRGenerator
from gatecheck.modules.ticket_store import TicketStore

REQUIRED_FIELDS = ('ticket_code', 'attendee_name', 'event_name')


def clean_ticket_row(row: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Trim the three ticket fields; None when any of them is empty."""
    cleaned = {}
    for field_name in REQUIRED_FIELDS:
        value = row.get(field_name)
        value = '' if value is None else str(value).strip()
        if not value:
            return None
        cleaned[field_name] = value
    return cleaned


class TicketManager:
    """
    Ticket administration: manual entry and bulk import.
    """

    def __init__(self, ticket_store: TicketStore, qr_generator: Optional[QRGenerator] = None,
                 default_event_name: str = None):
        """
        Initialize the ticket manager.

        Args:
            ticket_store (TicketStore): Store receiving new tickets
            qr_generator (QRGenerator): Renders ticket QR images
            default_event_name (str): Event name used when manual entry omits one
        """
        self.store = ticket_store
        self.qr_generator = qr_generator or QRGenerator()
        self.default_event_name = default_event_name or Config.DEFAULT_EVENT_NAME
        self.logger = logging.getLogger(__name__)

    def create_ticket(self, ticket_data: Dict[str, Any],
                      include_qr: bool = False) -> Dict[str, Any]:
        """
        Create a single ticket from manual entry.

        Args:
            ticket_data (Dict[str, Any]): ticket_code, attendee_name and optional event_name
            include_qr (bool): Attach a base64 PNG of the ticket QR code

        Returns:
            Dict[str, Any]: Creation result
        """
        data = dict(ticket_data)
        if not str(data.get('event_name') or '').strip():
            data['event_name'] = self.default_event_name

        try:
            cleaned = clean_ticket_row(data)
            if cleaned is None:
                missing = [name for name in REQUIRED_FIELDS if not str(data.get(name) or '').strip()]
                raise TicketValidationError(f"Missing required field: {', '.join(missing)}")

            ticket = self.store.insert_ticket(Ticket(**cleaned))
            self.logger.info(f"Ticket created: {ticket.ticket_code} for {ticket.attendee_name}")

            result = {
                'success': True,
                'ticket': ticket.to_dict(),
                'message': 'Ticket created successfully!'
            }
            if include_qr:
                qr_result = self.qr_generator.generate_ticket_qr_code(ticket)
                result['qr_image'] = qr_result.get('image_base64') if qr_result['success'] else None
            return result

        except (TicketValidationError, DuplicateTicketCode) as e:
            return {'success': False, 'error': str(e)}
        except StoreUnavailable as e:
            self.logger.error(f"Ticket creation failed for {data.get('ticket_code', 'unknown')}: {str(e)}")
            return {'success': False, 'error': 'Failed to create ticket', 'store_error': True}

    def bulk_create_tickets(self, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Create many tickets; every accepted row is inserted on its own.

        Args:
            rows (List[Dict[str, Any]]): Rows with ticket_code, attendee_name, event_name

        Returns:
            Dict[str, Any]: Bulk creation result with status 'complete', 'partial' or 'failed'
        """
        results = {
            'total_rows': len(rows),
            'created': 0,
            'rejected': 0,
            'failed': 0,
            'errors': [],
            'created_tickets': []
        }

        accepted = []
        for row_number, row in enumerate(rows, start=1):
            cleaned = clean_ticket_row(row)
            if cleaned is None:
                results['rejected'] += 1
                results['errors'].append({
                    'row': row_number,
                    'ticket_code': str(row.get('ticket_code') or '').strip() or None,
                    'error': 'Missing ticket_code, attendee_name or event_name'
                })
                continue
            accepted.append((row_number, Ticket(**cleaned)))

        outcomes = self.store.insert_many([ticket for _, ticket in accepted])
        for (row_number, ticket), outcome in zip(accepted, outcomes):
            if outcome['success']:
                results['created'] += 1
                results['created_tickets'].append({
                    'row': row_number,
                    'ticket_code': ticket.ticket_code,
                    'attendee_name': ticket.attendee_name
                })
            else:
                results['failed'] += 1
                results['errors'].append({
                    'row': row_number,
                    'ticket_code': ticket.ticket_code,
                    'error': outcome['error']
                })

        if results['created'] == 0:
            results['status'] = 'failed'
        elif results['created'] == results['total_rows']:
            results['status'] = 'complete'
        else:
            results['status'] = 'partial'
        results['success'] = results['created'] > 0

        self.logger.info(
            f"Bulk ticket creation completed: {results['created']}/{results['total_rows']} created"
        )
        return results

    def import_tickets_from_csv(self, csv_content: str) -> Dict[str, Any]:
        """
        Import tickets from CSV text: a header row, then
        ticket_code, attendee_name, event_name per line.

        Args:
            csv_content (str): CSV content as string

        Returns:
            Dict[str, Any]: Import result
        """
        reader = csv.reader(io.StringIO(csv_content))
        lines = [line for line in reader if any(cell.strip() for cell in line)]

        # First non-blank line is the header
        rows = []
        for line in lines[1:]:
            padded = list(line) + [''] * (len(REQUIRED_FIELDS) - len(line))
            rows.append(dict(zip(REQUIRED_FIELDS, padded)))

        if not rows:
            return {
                'success': False,
                'status': 'failed',
                'error': 'No valid tickets found in CSV',
                'total_rows': 0,
                'created': 0,
                'rejected': 0,
                'failed': 0,
                'errors': []
            }

        result = self.bulk_create_tickets(rows)
        result['import_method'] = 'csv'
        if result['created'] == 0 and not result.get('error'):
            result['error'] = 'No valid tickets found in CSV'
        return result
