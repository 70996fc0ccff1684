#!/usr/bin/env python3
"""
Regenerate Supplier Keys

Issues a new signing keypair to a supplier identified by email. The private
key is written to a local PEM file (and optionally emailed); only its hash
is stored in the database.

Usage:
    python scripts/regenerate_supplier_keys.py supplier@example.com [--send-email]
"""

import sys
import os
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import SessionLocal
from database.models import User
from fulfillment.admin import provision_supplier_keys
from fulfillment.errors import FulfillmentError


def regenerate_supplier_keys(email: str, send_email: bool = False) -> bool:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            print(f"❌ User with email {email} not found")
            return False
        if not user.supplier_profile:
            print(f"❌ User {email} is not a supplier")
            return False

        keys = provision_supplier_keys(db, user.supplier_profile.id, send_email=send_email)

        key_file = Path.cwd() / f"supplier_{user.id}_private_key.pem"
        key_file.write_text(keys["private_key"])
        os.chmod(key_file, 0o600)

        print("\n" + "=" * 60)
        print("✅ Keys regenerated successfully!")
        print("=" * 60)
        print(f"\nSupplier: {user.name}")
        print(f"Email: {user.email}")
        print(f"\n⚠️  IMPORTANT: The private key has been saved to:")
        print(f"  {key_file}")
        if send_email:
            print("  It is also being emailed to the supplier.")
        print("\nCopy the key from this file and use it for order approval.")
        print("Delete this file after copying the key!\n")
        return True
    except FulfillmentError as e:
        print(f"❌ Error regenerating keys: {e.message}")
        return False
    finally:
        db.close()


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Regenerate a supplier signing keypair')
    parser.add_argument('email', help='Email of the supplier user')
    parser.add_argument('--send-email', action='store_true',
                        help='Also email the private key to the supplier')
    args = parser.parse_args()

    ok = regenerate_supplier_keys(args.email, send_email=args.send_email)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
