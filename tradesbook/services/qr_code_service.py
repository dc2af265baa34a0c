"""QR code generation for booking tracking"""

import base64
import io
import logging
import secrets
import string

import qrcode

from ..config import PUBLIC_API_URL

logger = logging.getLogger(__name__)

QR_PREFIX = "TB-"
QR_ALPHABET = string.ascii_uppercase + string.digits
QR_LENGTH = 10


def generate_qr_reference() -> str:
    """Random public booking reference, e.g. TB-7K2M9QX4AB"""
    return QR_PREFIX + "".join(secrets.choice(QR_ALPHABET) for _ in range(QR_LENGTH))


def tracking_url(qr_reference: str) -> str:
    return f"{PUBLIC_API_URL}/qr-tracking/{qr_reference}"


def generate_qr_data_url(text: str, box_size: int = 8, border: int = 2) -> str:
    """Render text as a PNG QR code and return it as a data URL"""
    qr = qrcode.QRCode(version=1, box_size=box_size, border=border)
    qr.add_data(text)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/png;base64,{encoded}"
