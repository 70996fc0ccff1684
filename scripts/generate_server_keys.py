#!/usr/bin/env python3
"""
Generate Server Keys

One-time script that creates the server's RSA keypair used to countersign
supplier signatures. Add the printed lines to your .env file.

Usage:
    python scripts/generate_server_keys.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from signing.keys import generate_key_pair


def to_env_line(name: str, pem: str) -> str:
    """Collapse a PEM to one line with literal \\n separators."""
    return f'{name}="' + pem.strip().replace("\n", "\\n") + '"'


def main():
    print("Generating server RSA key pair (2048-bit)...\n")
    keys = generate_key_pair()

    print("=" * 80)
    print("ADD THESE TO YOUR .env FILE:")
    print("=" * 80)
    print()
    print("# Server RSA Keys for QR Digital Signatures")
    print(to_env_line("SERVER_PRIVATE_KEY", keys["private_key"]))
    print()
    print(to_env_line("SERVER_PUBLIC_KEY", keys["public_key"]))
    print()
    print("=" * 80)
    print("IMPORTANT: Keep SERVER_PRIVATE_KEY secret! Never commit it to git.")
    print("=" * 80)


if __name__ == "__main__":
    main()
