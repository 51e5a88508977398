import logging

import cv2
import qrcode

from .errors import SessionError
from .period import extract_token

logger = logging.getLogger(__name__)


def render_qr(data, box_size=10, border=4):
    """Render ``data`` as a QR code and return it as an RGB Pillow image."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color='black', back_color='white')
    return img.get_image().convert('RGB')


_detector = None


def decode_qr(frame):
    """Decode the first QR code in a BGR frame; returns the text or ``None``."""
    global _detector
    if _detector is None:
        _detector = cv2.QRCodeDetector()
    try:
        data, points, _ = _detector.detectAndDecode(frame)
    except cv2.error as exc:
        logger.debug('QR detection failed: %s', exc)
        return None
    if points is None or not data:
        return None
    return data


def scan_token(frame):
    """Return the session token carried by a QR code in ``frame``, if any."""
    data = decode_qr(frame)
    if not data:
        return None
    try:
        return extract_token(data)
    except SessionError:
        logger.info('Scanned QR code does not carry a session token')
        return None
