"""
QR Authenticity Verification

A customer scans the QR code on a package. The token is decoded, the order
hash is recomputed from the persisted order, and both signature layers are
checked before the token's signatures are compared with the stored ones.

Verification never raises for a bad token: every failure comes back as
{"valid": False, "error": <code>, "message": ...}. A successful scan of a
package that is out for delivery finalizes the order as DELIVERED.
"""

import hmac
import logging
from sqlalchemy.orm import Session

from database.connection import transaction
from database.crud import get_order, get_order_for_update, get_latest_leg, add_tracking_event
from database.models import Order, OrderStatus, LegStatus, PartyType
from fulfillment.errors import ForbiddenError, InvalidStateError
from fulfillment.verification.qr_codes import build_verification_url, generate_verification_qr_code
from signing.order_hash import compute_order_hash
from signing.qr_token import parse_qr_token
from signing.server_keys import get_server_public_key
from signing.signatures import verify_signature

logger = logging.getLogger(__name__)

INVALID_TOKEN = "INVALID_TOKEN"
ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
NOT_YOUR_ORDER = "NOT_YOUR_ORDER"
NOT_SIGNED = "NOT_SIGNED"
NO_PUBLIC_KEY = "NO_PUBLIC_KEY"
SUPPLIER_SIGNATURE_INVALID = "SUPPLIER_SIGNATURE_INVALID"
SERVER_SIGNATURE_INVALID = "SERVER_SIGNATURE_INVALID"
SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"

FAILURE_MESSAGES = {
    INVALID_TOKEN: "The QR code is invalid or corrupted.",
    ORDER_NOT_FOUND: "Order not found. This QR code may be fake.",
    NOT_YOUR_ORDER: "This order does not belong to you.",
    NOT_SIGNED: "This order was not digitally signed.",
    NO_PUBLIC_KEY: "Supplier public key not found. Cannot verify.",
    SUPPLIER_SIGNATURE_INVALID: "WARNING: Order data has been TAMPERED with! Supplier signature verification failed.",
    SERVER_SIGNATURE_INVALID: "WARNING: Server signature verification failed. This may be a forged QR code.",
    SIGNATURE_MISMATCH: "WARNING: QR signature does not match stored signature. Possible tampering detected.",
}

# Customer-bound leg states from which a successful scan completes delivery
FINALIZABLE_LEG_STATES = (LegStatus.PENDING, LegStatus.ACCEPTED, LegStatus.IN_TRANSIT)


def _failure(code: str) -> dict:
    return {"valid": False, "error": code, "message": FAILURE_MESSAGES[code]}


def _same(a: str, b: str) -> bool:
    return hmac.compare_digest((a or "").encode("utf-8"), (b or "").encode("utf-8"))


def _finalize_delivery(db: Session, order_id: int, customer_id: int) -> str:
    """
    Mark a verified order DELIVERED if its last leg is headed to the customer.

    Returns the order status after the attempt. Re-checks under the order
    lock so concurrent scans finalize at most once.
    """
    with transaction(db):
        order = get_order_for_update(db, order_id)
        if order.status in OrderStatus.TERMINAL:
            return order.status

        last_leg = get_latest_leg(db, order.id, lock=True)
        if not last_leg or last_leg.to_type != PartyType.CUSTOMER \
                or last_leg.status not in FINALIZABLE_LEG_STATES:
            return order.status

        last_leg.status = LegStatus.DELIVERED
        order.status = OrderStatus.DELIVERED
        add_tracking_event(
            db, order.id, customer_id, OrderStatus.DELIVERED,
            "Order delivered and verified by customer via QR code",
            to_user_id=order.supplier.user_id, leg_id=last_leg.id
        )
        status = order.status

    logger.info(f"Order {order_id} finalized as DELIVERED by QR verification")
    return status


def _order_summary(order: Order, status: str) -> dict:
    return {
        "id": order.id,
        "product": {
            "name": order.product.name,
            "category": order.product.category,
            "batch_no": order.product.batch_no,
        },
        "quantity": order.quantity,
        "total_amount": order.total_amount,
        "supplier": {
            "name": order.supplier.business_name,
            "contact": order.supplier.contact_number,
        },
        "order_date": order.order_date.isoformat() if order.order_date else None,
        "signed_at": order.signed_at.isoformat() if order.signed_at else None,
        "status": status,
    }


def verify_qr_token(db: Session, token: str, customer_id: int) -> dict:
    """
    Verify a scanned QR token for the logged-in customer.

    Checks, in order: token decodes, order exists, caller is the order's
    customer, order is signed, supplier has a public key, supplier signature
    covers the recomputed order hash, server signature covers the supplier
    signature, and the token's signatures equal the stored ones.

    Args:
        db: Database session
        token: Token from the verification URL
        customer_id: User id of the caller

    Returns:
        Verification result dict; never contains signatures or keys

    Example:
        >>> verify_qr_token(db, "not-a-token", 11)
        {'valid': False, 'error': 'INVALID_TOKEN', 'message': 'The QR code is invalid or corrupted.'}
    """
    payload = parse_qr_token(token)
    if payload is None:
        logger.info("QR verification failed: undecodable token")
        return _failure(INVALID_TOKEN)

    order = db.query(Order).filter(Order.id == payload.order_id).first()
    if not order:
        logger.info(f"QR verification failed: order {payload.order_id} not found")
        return _failure(ORDER_NOT_FOUND)

    if order.customer_id != customer_id:
        logger.warning(f"QR verification for order {order.id} attempted by non-owner {customer_id}")
        return _failure(NOT_YOUR_ORDER)

    if not order.is_signed:
        return _failure(NOT_SIGNED)

    supplier_public_key = order.supplier.public_key
    if not supplier_public_key:
        return _failure(NO_PUBLIC_KEY)

    recomputed_hash = compute_order_hash(order)
    if not verify_signature(recomputed_hash, payload.supplier_signature, supplier_public_key):
        logger.warning(f"QR verification for order {order.id}: supplier signature invalid")
        return _failure(SUPPLIER_SIGNATURE_INVALID)

    if not verify_signature(payload.supplier_signature, payload.server_signature, get_server_public_key()):
        logger.warning(f"QR verification for order {order.id}: server signature invalid")
        return _failure(SERVER_SIGNATURE_INVALID)

    if not _same(payload.supplier_signature, order.supplier_signature) \
            or not _same(payload.server_signature, order.server_signature):
        logger.warning(f"QR verification for order {order.id}: token signatures differ from stored")
        return _failure(SIGNATURE_MISMATCH)

    status = order.status
    if status != OrderStatus.DELIVERED:
        status = _finalize_delivery(db, order.id, customer_id)

    if status == OrderStatus.DELIVERED:
        message = "AUTHENTIC ORDER - Original Supplier Packaging Verified & Delivered"
    else:
        message = "AUTHENTIC ORDER - Original Supplier Packaging Verified"

    logger.info(f"QR verification succeeded for order {order.id} (status {status})")
    return {
        "valid": True,
        "message": message,
        "order": _order_summary(order, status),
    }


def get_order_qr_details(db: Session, order_id: int, supplier_id: int, include_image: bool = False) -> dict:
    """
    QR details a supplier prints and attaches to the package.

    Raises:
        NotFoundError: Unknown order
        ForbiddenError: Order belongs to another supplier
        InvalidStateError: Order has not been signed yet
    """
    order = get_order(db, order_id)
    if order.supplier_id != supplier_id:
        raise ForbiddenError("This order is not yours")
    if not order.qr_token:
        raise InvalidStateError("Order has not been signed yet")

    details = {
        "order_id": order.id,
        "product_name": order.product.name,
        "customer_name": order.customer.name,
        "quantity": order.quantity,
        "qr_token": order.qr_token,
        "verification_url": build_verification_url(order.qr_token),
        "signed_at": order.signed_at.isoformat() if order.signed_at else None,
    }
    if include_image:
        details["qr_code_png_base64"], _ = generate_verification_qr_code(order.qr_token)
    return details
