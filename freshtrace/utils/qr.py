import os
from pathlib import Path
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_H

from freshtrace.core.config import settings


QR_CODE_DIR = settings.static_dir / "qrcodes"
STATIC_URL_PREFIX = "/static/qrcodes"


def render_qr(data: str, file_path: Path, box_size: int = 10, border: int = 2) -> Path:
    """
    Renders ``data`` as a PNG QR code at ``file_path``.
    High error correction so labels stay scannable when scuffed.
    """
    os.makedirs(file_path.parent, exist_ok=True)

    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img.save(file_path)
    return file_path


def generate_and_save_qr(data: str, filename: str, directory: Optional[Path] = None) -> str:
    """
    Generates a QR code for the given data, saves it under the static
    directory, and returns the web-accessible URL.
    """
    render_qr(data, (directory or QR_CODE_DIR) / f"{filename}.png")
    return f"{settings.public_url}{STATIC_URL_PREFIX}/{filename}.png"
