"""
Order endpoints for customers and suppliers.

Endpoints:
- POST /api/orders - Place an order (customer)
- GET  /api/orders/{order_id} - Order with legs and tracking history
- POST /api/orders/{order_id}/cancel - Cancel before shipment (customer)
- POST /api/orders/{order_id}/confirm-delivery - Confirm receipt (customer)
- POST /api/orders/{order_id}/approve - Approve and sign (supplier)
- POST /api/orders/{order_id}/reject - Reject a pending order (supplier)
- POST /api/orders/{order_id}/legs/{leg_id}/ship - Ship leg to distributor (supplier)
- POST /api/orders/{order_id}/reassign - Pick a new distributor (supplier)
- GET  /api/orders/{order_id}/qr - QR details for the package label (supplier)
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.connection import get_session
from fulfillment.orders import (
    create_order, approve_order, reject_order, cancel_order, ship_order,
    reassign_order, confirm_delivery, get_order_by_id
)
from fulfillment.service.auth import CallerIdentity, require_customer, require_supplier, get_caller
from fulfillment.service.schemas import (
    CreateOrderRequest, ApproveOrderRequest, ReasonRequest, AssignRequest,
    serialize_order, serialize_leg
)
from fulfillment.verification import get_order_qr_details

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", status_code=201)
def place_order(
    request: CreateOrderRequest,
    caller: CallerIdentity = Depends(require_customer),
    db: Session = Depends(get_session)
):
    order = create_order(
        db,
        customer_id=caller.user_id,
        supplier_id=request.supplier_id,
        product_id=request.product_id,
        quantity=request.quantity,
        delivery_address=request.delivery_address
    )
    return {"message": "Order placed successfully", "order": serialize_order(order)}


@router.get("/{order_id}")
def read_order(
    order_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_session)
):
    order = get_order_by_id(db, order_id, viewer_user_id=caller.user_id)
    return {"order": serialize_order(order, include_history=True)}


@router.post("/{order_id}/cancel")
def cancel(
    order_id: int,
    caller: CallerIdentity = Depends(require_customer),
    db: Session = Depends(get_session)
):
    order = cancel_order(db, order_id, caller.user_id)
    return {"message": "Order cancelled", "order": serialize_order(order)}


@router.post("/{order_id}/confirm-delivery")
def confirm(
    order_id: int,
    caller: CallerIdentity = Depends(require_customer),
    db: Session = Depends(get_session)
):
    order = confirm_delivery(db, order_id, caller.user_id)
    return {"message": "Delivery confirmed", "order": serialize_order(order)}


@router.post("/{order_id}/approve")
def approve(
    order_id: int,
    request: ApproveOrderRequest,
    caller: CallerIdentity = Depends(require_supplier),
    db: Session = Depends(get_session)
):
    """
    Approve and sign an order.

    The private key is used to sign and then discarded; it is never
    persisted or logged.
    """
    result = approve_order(
        db,
        order_id=order_id,
        supplier_id=caller.supplier_profile_id,
        distributor_id=request.distributor_id,
        transporter_id=request.transporter_id,
        private_key=request.private_key
    )
    return {
        "message": "Order approved and signed",
        "order": serialize_order(result["order"]),
        "leg": serialize_leg(result["leg"]),
        "qr_token": result["qr_token"],
        "verification_url": result["verification_url"],
    }


@router.post("/{order_id}/reject")
def reject(
    order_id: int,
    request: ReasonRequest,
    caller: CallerIdentity = Depends(require_supplier),
    db: Session = Depends(get_session)
):
    order = reject_order(db, order_id, caller.supplier_profile_id, request.reason)
    return {"message": "Order rejected", "order": serialize_order(order)}


@router.post("/{order_id}/legs/{leg_id}/ship")
def ship(
    order_id: int,
    leg_id: int,
    caller: CallerIdentity = Depends(require_supplier),
    db: Session = Depends(get_session)
):
    leg = ship_order(db, order_id, caller.supplier_profile_id, leg_id)
    return {"message": "Order shipped", "leg": serialize_leg(leg)}


@router.post("/{order_id}/reassign")
def reassign(
    order_id: int,
    request: AssignRequest,
    caller: CallerIdentity = Depends(require_supplier),
    db: Session = Depends(get_session)
):
    result = reassign_order(
        db, order_id, caller.supplier_profile_id, request.distributor_id, request.transporter_id
    )
    return {
        "message": "Order reassigned",
        "order": serialize_order(result["order"]),
        "leg": serialize_leg(result["leg"]),
    }


@router.get("/{order_id}/qr")
def qr_details(
    order_id: int,
    include_image: bool = False,
    caller: CallerIdentity = Depends(require_supplier),
    db: Session = Depends(get_session)
):
    return get_order_qr_details(db, order_id, caller.supplier_profile_id, include_image=include_image)
