"""
QR code generation for conference registration links.
"""

import base64
import io
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_M

logger = logging.getLogger(__name__)

# Brand palette: deep green on off-white
QR_DARK = "#0F5C4A"
QR_LIGHT = "#F7F7F5"
QR_TARGET_WIDTH = 300
QR_BORDER = 2


def conference_url(base_url: str, conference_id: str) -> str:
    """Public registration URL for a conference."""
    return f"{base_url.rstrip('/')}/conference/{conference_id}"


def generate_qr_png(data: str) -> bytes:
    """Render `data` as a PNG QR code of roughly QR_TARGET_WIDTH pixels."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=1,
        border=QR_BORDER,
    )
    qr.add_data(data)
    qr.make(fit=True)

    modules = qr.modules_count + 2 * QR_BORDER
    qr.box_size = max(1, QR_TARGET_WIDTH // modules)

    image = qr.make_image(fill_color=QR_DARK, back_color=QR_LIGHT)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_data_url(data: str) -> str:
    """
    Render `data` as a base64 PNG data URL.

    Returns an empty string when rendering fails, so callers can still
    save the record and regenerate the code later.
    """
    try:
        png = generate_qr_png(data)
    except Exception as e:
        logger.error(f"Error generating QR code: {e}")
        return ""
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def conference_qr_code(base_url: str, conference_id: str) -> str:
    """QR code data URL pointing at a conference's registration page."""
    return generate_qr_data_url(conference_url(base_url, conference_id))
