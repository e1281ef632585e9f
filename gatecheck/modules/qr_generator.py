"""
QR Code Generator Module - GateCheck Event Check-in System

Renders ticket codes as QR images for printing or e-mailing to attendees.
The QR payload is the bare ticket_code, exactly the string the scanner
looks up, so any QR reader produces a valid lookup key.

Features:
- PNG generation for a ticket code
- Optional attendee/event caption below the code
- Base64 output for JSON responses
"""

import base64
import io
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import qrcode
from PIL import Image, ImageDraw, ImageFont

from config import QRCodeConfig
from gatecheck.modules.models import Ticket


class QRGenerator:
    """
    QR code generator for tickets.
    """

    def __init__(self, settings: Dict[str, Any] = None):
        """Initialize the QR code generator with default settings."""
        self.logger = logging.getLogger(__name__)

        self.default_settings = {
            'version': QRCodeConfig.VERSION,
            'error_correction': QRCodeConfig.ERROR_CORRECT[QRCodeConfig.ERROR_LEVEL],
            'box_size': QRCodeConfig.BOX_SIZE,
            'border': QRCodeConfig.BORDER,
            'fill_color': QRCodeConfig.FILL_COLOR,
            'back_color': QRCodeConfig.BACK_COLOR
        }
        if settings:
            self.default_settings.update(settings)

    def make_image(self, code: str) -> Image.Image:
        """Build the QR image for a raw code."""
        settings = self.default_settings
        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(code)
        qr.make(fit=True)
        img = qr.make_image(fill_color=settings['fill_color'], back_color=settings['back_color'])
        return img.get_image() if hasattr(img, 'get_image') else img

    def generate_png(self, ticket: Ticket, with_info: bool = False) -> bytes:
        """Render a ticket QR code as PNG bytes."""
        img = self.make_image(ticket.ticket_code)
        if with_info:
            img = self._add_ticket_info_overlay(img, ticket)
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    def generate_ticket_qr_code(self, ticket: Ticket, with_info: bool = True) -> Dict[str, Any]:
        """
        Generate a QR code for a ticket.

        Args:
            ticket (Ticket): Ticket to encode
            with_info (bool): Caption the image with attendee and event names

        Returns:
            Dict[str, Any]: Generation result with base64 image data
        """
        try:
            png = self.generate_png(ticket, with_info=with_info)
            return {
                'success': True,
                'qr_data': ticket.ticket_code,
                'image_base64': base64.b64encode(png).decode(),
                'filename': f"ticket_{ticket.ticket_code}.png",
                'generated_at': datetime.now(timezone.utc).isoformat()
            }
        except Exception as e:
            self.logger.error(f"QR code generation failed for {ticket.ticket_code}: {str(e)}")
            return {
                'success': False,
                'error': str(e),
                'qr_data': ticket.ticket_code
            }

    def _add_ticket_info_overlay(self, qr_img: Image.Image, ticket: Ticket) -> Image.Image:
        """Add attendee name, event name and code under the QR image."""
        try:
            original_size = qr_img.size
            new_img = Image.new('RGB', (original_size[0], original_size[1] + 70), 'white')
            new_img.paste(qr_img, (0, 0))

            draw = ImageDraw.Draw(new_img)
            font = ImageFont.load_default()

            text_y = original_size[1] + 5
            for line in (ticket.attendee_name, ticket.event_name, ticket.ticket_code):
                bbox = draw.textbbox((0, 0), line, font=font)
                line_width = bbox[2] - bbox[0]
                draw.text(((original_size[0] - line_width) // 2, text_y), line,
                          fill='black', font=font)
                text_y += 20

            return new_img

        except Exception as e:
            self.logger.warning(f"Failed to add overlay, returning original QR code: {str(e)}")
            return qr_img
