"""
Supplier Key Provisioning

Issues a fresh signing keypair to a supplier. Only the public key and the
salted private key hash are stored; the private key is emailed once, after
the transaction commits, and then exists only with the supplier.
"""

import logging
from sqlalchemy.orm import Session

from database.connection import transaction, run_after_commit
from database.crud import get_supplier_profile, get_user
from fulfillment.errors import NotFoundError
from fulfillment.notifications import email_notifier
from signing.keys import generate_key_pair, hash_private_key

logger = logging.getLogger(__name__)


def provision_supplier_keys(db: Session, supplier_id: int, send_email: bool = True) -> dict:
    """
    Generate and store a new keypair for a supplier.

    Any previous key stops validating immediately. Verification reads the
    supplier's current public key, so QR codes on orders signed with the
    old key no longer verify after a regeneration.

    Args:
        db: Database session
        supplier_id: Supplier profile id
        send_email: Email the private key to the supplier's user after commit

    Returns:
        Dict with supplier_id, public_key and private_key. The caller is
        responsible for the private key; it is not recoverable.
    """
    with transaction(db):
        supplier = get_supplier_profile(db, supplier_id)
        user = get_user(db, supplier.user_id)
        if not user:
            raise NotFoundError("Supplier user not found")

        keys = generate_key_pair()
        supplier.public_key = keys["public_key"]
        supplier.private_key_hash = hash_private_key(keys["private_key"])

        if send_email:
            run_after_commit(db, _email_private_key, user.email, user.name, keys["private_key"])

    logger.info(f"Provisioned signing keys for supplier {supplier_id}")
    return {
        "supplier_id": supplier_id,
        "public_key": keys["public_key"],
        "private_key": keys["private_key"],
    }


def _email_private_key(email: str, name: str, private_key: str):
    email_notifier.send_private_key_email_async(email, name, private_key)
