"""
Admin endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.connection import get_session
from fulfillment.admin import provision_supplier_keys
from fulfillment.service.auth import CallerIdentity, require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/suppliers/{supplier_id}/keys")
def regenerate_supplier_keys(
    supplier_id: int,
    caller: CallerIdentity = Depends(require_admin),
    db: Session = Depends(get_session)
):
    """
    Issue a new signing keypair to a supplier.

    The private key goes to the supplier by email only; the response carries
    the public key.
    """
    keys = provision_supplier_keys(db, supplier_id, send_email=True)
    return {
        "message": "New keys generated. The private key has been emailed to the supplier.",
        "supplier_id": supplier_id,
        "public_key": keys["public_key"],
    }
