"""
QR Token Module

The token printed in an order's QR code is a URL-safe, unpadded base64 JSON
envelope carrying the order id, both signatures, a timestamp and a nonce.
It is self-describing only: authenticity always comes from comparing it with
the signatures persisted on the order.
"""

import base64
import binascii
import json
import secrets
import time
from dataclasses import dataclass
from typing import Optional

# Order ids are int4 on PostgreSQL
MAX_ORDER_ID = 2 ** 31 - 1


@dataclass
class QrTokenPayload:
    order_id: int
    supplier_signature: str
    server_signature: str
    timestamp: int  # epoch milliseconds
    nonce: str

    def to_dict(self) -> dict:
        return {
            "oid": self.order_id,
            "ss": self.supplier_signature,
            "svs": self.server_signature,
            "ts": self.timestamp,
            "nonce": self.nonce,
        }


def generate_qr_token(order_id: int, supplier_signature: str, server_signature: str) -> str:
    """
    Encode a QR token for a signed order.

    Example:
        >>> token = generate_qr_token(7, "c2ln...", "c3Zz...")
        >>> parse_qr_token(token).order_id
        7
    """
    payload = QrTokenPayload(
        order_id=order_id,
        supplier_signature=supplier_signature,
        server_signature=server_signature,
        timestamp=int(time.time() * 1000),
        nonce=secrets.token_hex(8),
    )
    encoded = json.dumps(payload.to_dict(), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(encoded).decode("ascii").rstrip("=")


def parse_qr_token(token: str) -> Optional[QrTokenPayload]:
    """
    Decode a QR token.

    Returns None for anything that is not a well-formed token: bad base64,
    bad JSON (including nesting too deep to parse), a non-object payload,
    missing/mistyped fields, or an order id outside the database id range.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError, RecursionError):
        return None

    if not isinstance(data, dict):
        return None

    order_id = data.get("oid")
    supplier_signature = data.get("ss")
    server_signature = data.get("svs")
    timestamp = data.get("ts", 0)
    nonce = data.get("nonce", "")

    if not isinstance(order_id, int) or isinstance(order_id, bool):
        return None
    if not 1 <= order_id <= MAX_ORDER_ID:
        return None
    if not isinstance(supplier_signature, str) or not supplier_signature:
        return None
    if not isinstance(server_signature, str) or not server_signature:
        return None
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        return None
    if not isinstance(nonce, str):
        return None

    return QrTokenPayload(
        order_id=order_id,
        supplier_signature=supplier_signature,
        server_signature=server_signature,
        timestamp=timestamp,
        nonce=nonce,
    )
