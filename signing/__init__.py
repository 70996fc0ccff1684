"""
Signing package: supplier keys, order hashing, signatures and QR tokens.
"""

from .keys import generate_key_pair, canonicalize_private_key, hash_private_key, validate_private_key
from .order_hash import compute_order_hash
from .signatures import sign_data, verify_signature
from .qr_token import QrTokenPayload, generate_qr_token, parse_qr_token
from .server_keys import get_server_private_key, get_server_public_key, load_server_keys

__all__ = [
    "generate_key_pair",
    "canonicalize_private_key",
    "hash_private_key",
    "validate_private_key",
    "compute_order_hash",
    "sign_data",
    "verify_signature",
    "QrTokenPayload",
    "generate_qr_token",
    "parse_qr_token",
    "get_server_private_key",
    "get_server_public_key",
    "load_server_keys",
]
