"""
Signature Module

RSA PKCS#1 v1.5 signatures over SHA-256, exchanged as standard base64.
Used for both layers of the order seal: the supplier signs the order hash
and the server countersigns the supplier's signature.
"""

import base64
import binascii
import logging
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from signing.keys import load_private_key, load_public_key

logger = logging.getLogger(__name__)


def sign_data(data: str, private_key_pem: str) -> str:
    """
    Sign UTF-8 text with an RSA private key.

    Args:
        data: Text to sign (an order hash or a signature being countersigned)
        private_key_pem: PKCS#8 PEM private key

    Returns:
        Base64-encoded signature

    Raises:
        ValueError: If the key cannot be parsed
    """
    private_key = load_private_key(private_key_pem)
    signature = private_key.sign(data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("utf-8")


def verify_signature(data: str, signature_b64: str, public_key_pem: str) -> bool:
    """
    Verify a base64 signature over UTF-8 text.

    Returns False for a bad signature, undecodable base64 or an unparseable
    public key; never raises.
    """
    if not data or not signature_b64 or not public_key_pem:
        return False
    try:
        public_key = load_public_key(public_key_pem)
        signature = base64.b64decode(signature_b64, validate=True)
        public_key.verify(signature, data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
        return True
    except InvalidSignature:
        return False
    except (ValueError, TypeError, binascii.Error) as e:
        logger.warning(f"Signature verification failed on malformed input: {type(e).__name__}")
        return False
