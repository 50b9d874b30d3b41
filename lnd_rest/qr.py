"""QR rendering for payment requests, plus the decoder hook."""

import base64
import io
from typing import Protocol

import qrcode
from qrcode.constants import ERROR_CORRECT_L


class QrDecoder(Protocol):
    """Anything that can turn a QR image back into its text."""

    def decode(self, image: bytes) -> str: ...


class QrEncoder:
    """Render strings as PNG QR codes."""

    def __init__(self, box_size: int = 5, border: int = 2) -> None:
        self.box_size = box_size
        self.border = border

    def encode(self, data: str) -> bytes:
        """Return a PNG image of ``data`` as a QR code."""
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_L,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(data)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    def encode_data_uri(self, data: str) -> str:
        """Return the PNG as a ``data:`` URI ready for an <img> tag."""
        encoded = base64.b64encode(self.encode(data)).decode("ascii")
        return f"data:image/png;base64,{encoded}"
