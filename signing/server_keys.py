"""
Server Keypair Module

The server countersigns every supplier signature. Its keypair comes from the
environment (SERVER_PRIVATE_KEY / SERVER_PUBLIC_KEY); literal "\n" sequences
are expanded so PEMs can be stored on one line in .env files.
"""

import logging
import os
from dotenv import load_dotenv

from fulfillment.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)


def _read_pem(name: str) -> str:
    value = os.getenv(name)
    if not value or not value.strip():
        raise ConfigurationError(
            f"{name} is not configured. Run scripts/generate_server_keys.py and add it to .env"
        )
    return value.replace("\\n", "\n").strip()


def get_server_private_key() -> str:
    return _read_pem("SERVER_PRIVATE_KEY")


def get_server_public_key() -> str:
    return _read_pem("SERVER_PUBLIC_KEY")


def load_server_keys() -> dict:
    """Read both halves of the server keypair, failing fast if either is missing."""
    keys = {
        "private_key": get_server_private_key(),
        "public_key": get_server_public_key(),
    }
    logger.info("Server signing keypair loaded")
    return keys
