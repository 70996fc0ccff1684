"""
API Key Authentication and Caller Identity

Requests carry a shared X-API-Key plus identity headers set by the upstream
identity service, which owns login and sessions:

    X-User-Id, X-User-Role, X-Supplier-Profile-Id, X-Distributor-Profile-Id
"""

import hmac
import os
from typing import Optional
from fastapi import Depends, Header, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from pydantic import BaseModel

from database.models import Role

API_KEY_NAME = "X-API-Key"
_api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


def get_expected_api_key() -> str:
    """
    Retrieve the expected API key from environment variables.

    Returns:
        The API key from CUSTODY_LEDGER_API_KEY environment variable
    """
    return os.getenv("CUSTODY_LEDGER_API_KEY", "")


async def verify_api_key(
    api_key: str = Security(_api_key_header),
):
    """
    Verify that the provided API key matches the expected key.

    Raises:
        HTTPException: If API key is missing, invalid, or not configured
    """
    expected = get_expected_api_key()
    if not expected:
        # API key not configured, reject requests
        raise HTTPException(status_code=500, detail="API key not configured")
    if not hmac.compare_digest((api_key or "").encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return True


class CallerIdentity(BaseModel):
    """Authenticated caller as asserted by the identity service."""
    user_id: int
    role: str
    supplier_profile_id: Optional[int] = None
    distributor_profile_id: Optional[int] = None


async def get_caller(
    x_user_id: int = Header(...),
    x_user_role: str = Header(...),
    x_supplier_profile_id: Optional[int] = Header(None),
    x_distributor_profile_id: Optional[int] = Header(None),
    _: bool = Depends(verify_api_key),
) -> CallerIdentity:
    return CallerIdentity(
        user_id=x_user_id,
        role=x_user_role.upper(),
        supplier_profile_id=x_supplier_profile_id,
        distributor_profile_id=x_distributor_profile_id,
    )


async def require_customer(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    """Any authenticated user can act as a customer."""
    return caller


async def require_supplier(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    if caller.role != Role.SUPPLIER or caller.supplier_profile_id is None:
        raise HTTPException(status_code=403, detail="Supplier access required")
    return caller


async def require_distributor(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    if caller.role != Role.DISTRIBUTOR or caller.distributor_profile_id is None:
        raise HTTPException(status_code=403, detail="Distributor access required")
    return caller


async def require_admin(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    if caller.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return caller
