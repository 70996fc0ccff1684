"""
QR code generation and authenticity verification.
"""

from .qr_codes import build_verification_url, generate_verification_qr_code
from .verify_service import verify_qr_token, get_order_qr_details

__all__ = [
    "build_verification_url",
    "generate_verification_qr_code",
    "verify_qr_token",
    "get_order_qr_details",
]
