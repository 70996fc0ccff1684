"""
QR Code Generation for Order Verification

Builds the verification URL embedded in an order's QR code and renders it
as a PNG for suppliers to print on the package.
"""

import qrcode
import io
import base64
import os
from typing import Tuple, Optional
from pathlib import Path
from urllib.parse import quote
from dotenv import load_dotenv

load_dotenv()


def build_verification_url(qr_token: str, base_url: str = None) -> str:
    """
    Build the customer-facing verification URL for a QR token.

    Example:
        >>> build_verification_url("eyJvaWQiOjd9", "https://ledger.example")
        'https://ledger.example/verify?token=eyJvaWQiOjd9'
    """
    if base_url is None:
        base_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
    return f"{base_url.rstrip('/')}/verify?token={quote(qr_token, safe='')}"


def generate_verification_qr_code(
    qr_token: str,
    base_url: str = None,
    output_file: Optional[Path] = None
) -> Tuple[str, Optional[Path]]:
    """
    Generate QR code for an order's verification URL.

    Args:
        qr_token: Token stored on the signed order
        base_url: Frontend URL (default: FRONTEND_URL from env)
        output_file: Optional path to save the PNG

    Returns:
        Tuple of (base64_encoded_png, saved_file_path)
    """
    verification_url = build_verification_url(qr_token, base_url)

    qr = qrcode.QRCode(
        version=1,  # Auto-size
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(verification_url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    img_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')

    saved_path = None
    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        img.save(output_file)
        saved_path = output_file

    return img_base64, saved_path
