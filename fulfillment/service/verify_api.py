"""
QR verification endpoints.

Verification always answers 200; the body's "valid" flag and "error" code
carry the outcome so a scanning app can show a tamper warning.
"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database.connection import get_session
from fulfillment.service.auth import CallerIdentity, require_customer
from fulfillment.verification import verify_qr_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verify", tags=["verification"])


@router.get("/health")
async def verification_health():
    """Health check for verification service."""
    return {"status": "healthy", "service": "verification-api"}


@router.get("")
def verify(
    token: str = Query(..., min_length=1),
    caller: CallerIdentity = Depends(require_customer),
    db: Session = Depends(get_session)
):
    """
    Verify a scanned order QR token.

    Example:
        GET /api/verify?token=eyJvaWQiOjcsInNzIjoi...
    """
    return verify_qr_token(db, token, caller.user_id)
