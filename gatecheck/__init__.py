# GateCheck - App Package
"""
Main package for the GateCheck event check-in system.
Attendees hold a ticket code, staff scan it, and each ticket is checked in
at most once while the dashboard follows the live counts.
"""

__version__ = "1.0.0"
__description__ = "Event ticket check-in with single-use QR verification and a live dashboard"

# Import core components for easy access
from .modules.checkin_manager import CheckInManager
from .modules.dashboard_manager import DashboardManager
from .modules.database_manager import DatabaseManager
from .modules.models import Duplicate, Invalid, ScanAttempt, Ticket, Valid, Verdict
from .modules.notification_system import NotificationSystem
from .modules.scanner_session import ScannerSession
from .modules.ticket_manager import TicketManager
from .modules.ticket_store import TicketStore

__all__ = [
    'CheckInManager',
    'DashboardManager',
    'DatabaseManager',
    'Duplicate',
    'Invalid',
    'NotificationSystem',
    'ScanAttempt',
    'ScannerSession',
    'Ticket',
    'TicketManager',
    'TicketStore',
    'Valid',
    'Verdict'
]
