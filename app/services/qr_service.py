"""
QR Service - scannable payload for drug batches
"""
import base64
import io
import json
import logging

import qrcode

logger = logging.getLogger(__name__)


def encode_qr_payload(data: dict) -> str:
    """Compact JSON text stored in the QR symbol"""
    return json.dumps(data, separators=(",", ":"), default=str)


def generate_qr_code(data: dict) -> str:
    """Render the payload as a PNG data URL"""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(encode_qr_payload(data))
    qr.make(fit=True)
    image = qr.make_image(fill_color="#000000", back_color="#ffffff")

    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
