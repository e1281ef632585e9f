"""
GateCheck Event Check-in System - Main Application

This module is the entry point for the Flask check-in service. It builds the
application and its components, exposes the JSON API used by scanner devices
and the dashboard, and registers the operator CLI commands.

Features:
- Ticket scan verification (valid / invalid / duplicate)
- Live dashboard snapshot and server-sent-events stream
- Manual ticket entry and CSV import
- Ticket QR images and roster export
- Camera scan station (flask scan-station)
"""

import asyncio
import json
import logging
import queue

import click
from flask import Blueprint, Flask, Response, current_app, jsonify, request

from config import init_config
from gatecheck.modules.checkin_manager import CheckInManager, store_audit_hook
from gatecheck.modules.dashboard_manager import DashboardManager
from gatecheck.modules.database_manager import DatabaseManager
from gatecheck.modules.exceptions import CameraUnavailable, StoreUnavailable
from gatecheck.modules.notification_system import NotificationSystem
from gatecheck.modules.qr_decoder import CameraDecoder
from gatecheck.modules.qr_generator import QRGenerator
from gatecheck.modules.report_generator import ReportGenerator
from gatecheck.modules.scanner_session import ScannerSession
from gatecheck.modules.ticket_manager import TicketManager
from gatecheck.modules.ticket_store import TicketStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def build_services(app):
    """Wire the check-in components for an application."""
    db_manager = DatabaseManager(app.config['DATABASE_PATH'])
    notification_system = NotificationSystem(app.config['NOTIFICATIONS_HISTORY_SIZE'])
    ticket_store = TicketStore(db_manager, notification_system)
    qr_generator = QRGenerator()

    audit_hook = store_audit_hook(ticket_store) if app.config['CHECKIN_AUDIT_INVALID'] else None

    return {
        'db_manager': db_manager,
        'notification_system': notification_system,
        'ticket_store': ticket_store,
        'qr_generator': qr_generator,
        'checkin_manager': CheckInManager(ticket_store, audit_hook=audit_hook),
        'ticket_manager': TicketManager(ticket_store, qr_generator, app.config['DEFAULT_EVENT_NAME']),
        'dashboard_manager': DashboardManager(ticket_store),
        'report_generator': ReportGenerator(ticket_store)
    }


def services():
    return current_app.extensions['gatecheck']


def create_app(config_name=None, database_path=None):
    """
    Application factory.

    Args:
        config_name (str): Key into config.config; defaults to FLASK_ENV
        database_path (str): Overrides the configured SQLite file
    """
    app = Flask(__name__)
    config_class = init_config(app, config_name)
    if database_path is not None:
        app.config['DATABASE_PATH'] = str(database_path)

    logging.getLogger('gatecheck').setLevel(config_class.LOG_LEVEL)

    app.extensions['gatecheck'] = build_services(app)
    app.register_blueprint(api)
    register_commands(app)

    return app


@api.errorhandler(StoreUnavailable)
def handle_store_unavailable(error):
    logger.error(f"Store unavailable: {str(error)}")
    return jsonify({
        'success': False,
        'message': 'Ticket store is unavailable, please try again'
    }), 503


@api.route('/')
def index():
    """Health check with current counts"""
    stats = services()['dashboard_manager'].snapshot()['stats']
    return jsonify({'success': True, 'service': 'gatecheck', 'stats': stats})


@api.route('/api/scan', methods=['POST'])
def process_scan():
    """Verify a scanned ticket code and check it in"""
    try:
        data = request.get_json(silent=True) or {}
        code = data.get('code', data.get('ticket_code', ''))

        if not isinstance(code, str) or not code.strip():
            return jsonify({
                'success': False,
                'message': 'No ticket code provided'
            }), 400

        return jsonify(services()['checkin_manager'].process_scan(code))

    except Exception as e:
        logger.error(f"Scan processing error: {str(e)}")
        return jsonify({
            'success': False,
            'message': 'An error occurred while processing the scan'
        }), 500


@api.route('/api/tickets', methods=['GET'])
def list_tickets():
    """Roster in dashboard order"""
    snapshot = services()['dashboard_manager'].snapshot()
    return jsonify({'success': True, 'tickets': snapshot['attendees'], 'stats': snapshot['stats']})


@api.route('/api/tickets', methods=['POST'])
def create_ticket():
    """Manual ticket entry"""
    data = request.get_json(silent=True) or request.form.to_dict()
    include_qr = request.args.get('qr', '').lower() in ['1', 'true', 'yes']

    result = services()['ticket_manager'].create_ticket(data, include_qr=include_qr)
    if result['success']:
        return jsonify(result), 201
    if result.get('store_error'):
        return jsonify(result), 503
    return jsonify(result), 400


@api.route('/api/tickets/import', methods=['POST'])
def import_tickets():
    """Bulk import from an uploaded CSV file or a text/csv body"""
    try:
        upload = request.files.get('file')
        if upload is not None:
            csv_content = upload.read().decode('utf-8-sig')
        else:
            csv_content = request.get_data(as_text=True)

        if not csv_content.strip():
            return jsonify({'success': False, 'error': 'No CSV content provided'}), 400

        result = services()['ticket_manager'].import_tickets_from_csv(csv_content)
        status_code = 200 if result['success'] else 400
        return jsonify(result), status_code

    except UnicodeDecodeError:
        return jsonify({'success': False, 'error': 'CSV file must be UTF-8 encoded'}), 400


@api.route('/api/tickets/<path:ticket_code>/qr')
def ticket_qr(ticket_code):
    """PNG QR code for a ticket"""
    ticket = services()['ticket_store'].get_ticket(ticket_code)
    if ticket is None:
        return jsonify({'success': False, 'message': 'Ticket not found'}), 404

    with_info = request.args.get('info', '').lower() in ['1', 'true', 'yes']
    png = services()['qr_generator'].generate_png(ticket, with_info=with_info)
    return Response(png, mimetype='image/png')


@api.route('/api/dashboard')
def dashboard():
    """Current counts and roster"""
    return jsonify(dict(services()['dashboard_manager'].snapshot(), success=True))


@api.route('/api/dashboard/stream')
def dashboard_stream():
    """Server-sent events: one snapshot now and one after every change"""
    dashboard_manager = services()['dashboard_manager']
    keepalive = current_app.config['DASHBOARD_STREAM_KEEPALIVE']
    updates = queue.Queue()
    cancel = dashboard_manager.subscribe(updates.put)

    def generate():
        try:
            while True:
                try:
                    snapshot = updates.get(timeout=keepalive)
                except queue.Empty:
                    yield ': keepalive\n\n'
                    continue
                yield f"data: {json.dumps(snapshot)}\n\n"
        finally:
            cancel()

    return Response(generate(), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache'})


@api.route('/api/reports/roster')
def roster_report():
    """Download the roster as CSV or Excel"""
    output_format = request.args.get('format', 'csv')
    result = services()['report_generator'].generate_roster_report(output_format)
    if not result['success']:
        return jsonify(result), 400

    return Response(
        result['content'],
        mimetype=result['mimetype'],
        headers={'Content-Disposition': f"attachment; filename={result['filename']}"}
    )


@api.route('/api/check-ins')
def recent_check_ins():
    """Recent audit log entries"""
    limit = request.args.get('limit', 50, type=int)
    entries = services()['ticket_store'].recent_check_ins(limit=max(1, min(limit, 500)))
    return jsonify({'success': True, 'check_ins': entries})


async def run_scan_station(session, echo, max_scans=None):
    """
    Run a camera scan station until interrupted or max_scans verdicts were shown.
    With stop_on_result the camera is restarted after every verdict.
    """
    scans = 0
    await session.start()
    try:
        while max_scans is None or scans < max_scans:
            verdict = await session.wait_for_verdict()
            scans += 1
            echo(f"[{verdict.status.upper()}] {verdict.message}")
            if session.stop_on_result and (max_scans is None or scans < max_scans):
                await session.drain()
                await session.start()
    finally:
        await session.stop()
        await session.drain()
    return scans


def register_commands(app):
    """Operator commands available through the flask CLI."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database schema."""
        current_app.extensions['gatecheck']['db_manager'].initialize_database()
        click.echo(f"Database ready at {current_app.config['DATABASE_PATH']}")

    @app.cli.command('import-tickets')
    @click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
    def import_tickets_command(csv_file):
        """Import tickets from CSV_FILE (ticket_code, attendee_name, event_name)."""
        result = current_app.extensions['gatecheck']['ticket_manager'].import_tickets_from_csv(csv_file.read())
        click.echo(f"{result['created']} tickets created, {result['rejected']} rejected, "
                   f"{result['failed']} failed ({result['status']})")
        for error in result['errors']:
            click.echo(f"  row {error['row']}: {error['error']}", err=True)

    @app.cli.command('scan-station')
    @click.option('--facing', default=None, help="Camera facing: environment or user.")
    @click.option('--continuous', is_flag=True, help="Keep the camera running between scans.")
    def scan_station_command(facing, continuous):
        """Scan tickets with the local camera and print each verdict."""
        components = current_app.extensions['gatecheck']
        decoder = CameraDecoder(camera_indexes=current_app.config['SCANNER_CAMERA_INDEXES'])
        session = ScannerSession(
            components['checkin_manager'],
            decoder,
            camera_facing=facing or current_app.config['SCANNER_CAMERA_FACING'],
            frame_rate=current_app.config['SCANNER_FRAME_RATE'],
            decode_region=current_app.config['SCANNER_DECODE_REGION'],
            stop_on_result=False if continuous else current_app.config['SCANNER_STOP_ON_RESULT']
        )
        try:
            asyncio.run(run_scan_station(session, click.echo))
        except CameraUnavailable as e:
            raise click.ClickException(f"Failed to start camera: {str(e)}")
        except KeyboardInterrupt:
            click.echo("Scanner stopped")


if __name__ == '__main__':
    application = create_app()
    application.run(debug=application.config.get('DEBUG', False), host='0.0.0.0', port=5000)
