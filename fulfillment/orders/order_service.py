"""
Order Service

Customer and supplier side of the order state machine:

    PENDING -> APPROVED -> IN_PROGRESS -> DELIVERED
    PENDING -> CANCELLED (supplier rejects or customer cancels)
    APPROVED -> PENDING_REASSIGN -> APPROVED (first distributor declined)

Every operation runs in a single transaction: it either completes with its
tracking event recorded or leaves no trace.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from database.connection import transaction
from database.crud import (
    get_supplier_profile, get_distributor_profile, get_product, get_order,
    get_order_for_update, get_leg_for_update, get_latest_leg,
    get_supplier_transporter, add_tracking_event
)
from database.models import Order, OrderLeg, OrderStatus, LegStatus, PartyType
from fulfillment.errors import (
    NotFoundError, ForbiddenError, InvalidStateError, SelfOrderDeniedError,
    ValidationError, InvalidCredentialError
)
from fulfillment.inventory import check_availability, reserve_stock, release_stock
from fulfillment.verification.qr_codes import build_verification_url
from signing.keys import validate_private_key
from signing.order_hash import compute_order_hash
from signing.qr_token import generate_qr_token
from signing.server_keys import get_server_private_key
from signing.signatures import sign_data

logger = logging.getLogger(__name__)


def create_order(
    db: Session,
    customer_id: int,
    supplier_id: int,
    product_id: int,
    quantity: int,
    delivery_address: str
) -> Order:
    """
    Place an order against a supplier's warehouse stock.

    Stock is only checked here; it is reserved when the supplier approves.

    Raises:
        ValidationError: Non-positive quantity or empty delivery address
        NotFoundError: Unknown supplier, product or inventory row
        SelfOrderDeniedError: Supplier ordering from itself
        InsufficientStockError: Not enough stock right now
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
    if not delivery_address or not delivery_address.strip():
        raise ValidationError("Delivery address is required")

    with transaction(db):
        supplier = get_supplier_profile(db, supplier_id)
        if supplier.user_id == customer_id:
            raise SelfOrderDeniedError("You cannot order your own products")

        product = get_product(db, product_id)
        if product.supplier_id != supplier_id:
            raise NotFoundError("Product not found for this supplier")

        check_availability(db, supplier_id, product_id, quantity)

        order = Order(
            customer_id=customer_id,
            supplier_id=supplier_id,
            product_id=product_id,
            quantity=quantity,
            total_amount=round(product.price * quantity, 2),
            delivery_address=delivery_address.strip(),
            status=OrderStatus.PENDING
        )
        db.add(order)
        db.flush()

        add_tracking_event(
            db, order.id, customer_id, OrderStatus.PENDING,
            f"Order placed for {quantity} x {product.name}",
            to_user_id=supplier.user_id
        )

    logger.info(f"Order {order.id} placed by customer {customer_id} with supplier {supplier_id}")
    return order


def approve_order(
    db: Session,
    order_id: int,
    supplier_id: int,
    distributor_id: int,
    transporter_id: int,
    private_key: str
) -> dict:
    """
    Approve, sign and dispatch an order to its first distributor.

    The supplier proves possession of its private key, stock is reserved,
    the order hash is signed by the supplier and countersigned by the
    server, and leg #1 (supplier -> distributor) is created.

    Returns:
        Dict with order, leg, qr_token and verification_url

    Raises:
        ValidationError: Private key missing
        InvalidCredentialError: Private key does not match the profile
        InvalidStateError: Order not PENDING or supplier has no keys
        ForbiddenError: Order or transporter belongs to another supplier
        InsufficientStockError: Stock ran out since the order was placed
    """
    if not private_key or not private_key.strip():
        raise ValidationError("Private key is required to approve orders")

    with transaction(db):
        supplier = get_supplier_profile(db, supplier_id)
        if not supplier.private_key_hash:
            raise InvalidStateError("Supplier has no signing keys. Ask an administrator to provision them")

        order = get_order_for_update(db, order_id)
        if order.supplier_id != supplier_id:
            raise ForbiddenError("Not authorized to approve this order")
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError(f"Cannot approve order with status {order.status}")

        if not validate_private_key(private_key, supplier.private_key_hash):
            logger.warning(f"Rejected approval of order {order_id}: private key mismatch for supplier {supplier_id}")
            raise InvalidCredentialError("Invalid private key")

        distributor = get_distributor_profile(db, distributor_id)
        get_supplier_transporter(db, transporter_id, supplier_id)

        reserve_stock(db, supplier_id, order.product_id, order.quantity)

        order_hash = compute_order_hash(order)
        try:
            supplier_signature = sign_data(order_hash, private_key)
        except (ValueError, TypeError) as e:
            raise InvalidCredentialError("Invalid private key") from e
        server_signature = sign_data(supplier_signature, get_server_private_key())
        qr_token = generate_qr_token(order.id, supplier_signature, server_signature)

        order.order_hash = order_hash
        order.supplier_signature = supplier_signature
        order.server_signature = server_signature
        order.qr_token = qr_token
        order.signed_at = datetime.now(timezone.utc)
        order.status = OrderStatus.APPROVED

        leg = OrderLeg(
            order_id=order.id,
            leg_number=1,
            from_type=PartyType.SUPPLIER,
            from_supplier_id=supplier_id,
            to_type=PartyType.DISTRIBUTOR,
            to_distributor_id=distributor.id,
            transporter_id=transporter_id,
            status=LegStatus.PENDING
        )
        db.add(leg)
        db.flush()

        add_tracking_event(
            db, order.id, supplier.user_id, OrderStatus.APPROVED,
            f"Order approved and signed. Awaiting distributor {distributor.business_name} acceptance.",
            to_user_id=distributor.user_id, leg_id=leg.id
        )

    logger.info(f"Order {order_id} approved and signed by supplier {supplier_id}")
    return {
        "order": order,
        "leg": leg,
        "qr_token": qr_token,
        "verification_url": build_verification_url(qr_token),
    }


def reject_order(db: Session, order_id: int, supplier_id: int, reason: Optional[str] = None) -> Order:
    """Supplier declines a PENDING order."""
    with transaction(db):
        supplier = get_supplier_profile(db, supplier_id)
        order = get_order_for_update(db, order_id)
        if order.supplier_id != supplier_id:
            raise ForbiddenError("Not authorized to reject this order")
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError(f"Cannot reject order with status {order.status}")

        order.status = OrderStatus.CANCELLED
        add_tracking_event(
            db, order.id, supplier.user_id, OrderStatus.CANCELLED,
            reason or "Order rejected by supplier",
            to_user_id=order.customer_id
        )

    logger.info(f"Order {order_id} rejected by supplier {supplier_id}")
    return order


def cancel_order(db: Session, order_id: int, customer_id: int) -> Order:
    """
    Customer cancels an order that has not shipped yet.

    Stock reserved by an approval goes back to the warehouse and any
    outstanding legs are closed as REJECTED.
    """
    with transaction(db):
        order = get_order_for_update(db, order_id)
        if order.customer_id != customer_id:
            raise ForbiddenError("Not authorized to cancel this order")
        if order.status in OrderStatus.TERMINAL:
            raise InvalidStateError(f"Cannot cancel order with status {order.status}")

        legs = db.query(OrderLeg).filter(OrderLeg.order_id == order.id).with_for_update().populate_existing().all()
        if any(leg.status in LegStatus.SHIPPED for leg in legs):
            raise InvalidStateError("Cannot cancel order after it has been shipped")

        if order.status in OrderStatus.RESERVED:
            release_stock(db, order.supplier_id, order.product_id, order.quantity)

        for leg in legs:
            if leg.status in (LegStatus.PENDING, LegStatus.ACCEPTED):
                leg.status = LegStatus.REJECTED

        order.status = OrderStatus.CANCELLED
        add_tracking_event(
            db, order.id, customer_id, OrderStatus.CANCELLED,
            "Order cancelled by customer",
            to_user_id=order.supplier.user_id
        )

    logger.info(f"Order {order_id} cancelled by customer {customer_id}")
    return order


def ship_order(db: Session, order_id: int, supplier_id: int, leg_id: int) -> OrderLeg:
    """
    Supplier hands goods to the transporter for an accepted supplier leg.

    The order moves to IN_PROGRESS once its first custody hop is under way.
    """
    with transaction(db):
        supplier = get_supplier_profile(db, supplier_id)
        order = get_order_for_update(db, order_id)
        leg = get_leg_for_update(db, leg_id)

        if leg.order_id != order.id:
            raise NotFoundError("Leg not found for this order")
        if order.supplier_id != supplier_id or leg.from_type != PartyType.SUPPLIER \
                or leg.from_supplier_id != supplier_id:
            raise ForbiddenError("Not authorized to ship this leg")
        if leg.status != LegStatus.ACCEPTED:
            raise InvalidStateError(f"Cannot ship leg with status {leg.status}. Distributor must accept first")

        leg.status = LegStatus.IN_TRANSIT
        order.status = OrderStatus.IN_PROGRESS

        add_tracking_event(
            db, order.id, supplier.user_id, LegStatus.IN_TRANSIT,
            f"Shipped to distributor {leg.to_distributor.business_name}",
            to_user_id=leg.to_distributor.user_id, leg_id=leg.id
        )

    logger.info(f"Order {order_id} leg #{leg.leg_number} shipped by supplier {supplier_id}")
    return leg


def reassign_order(
    db: Session,
    order_id: int,
    supplier_id: int,
    distributor_id: int,
    transporter_id: int
) -> dict:
    """
    Send an order to another distributor after the first one declined.

    Only valid while the most recent leg is a REJECTED supplier leg. The new
    leg gets the next leg number; the rejected leg stays in the history.
    """
    with transaction(db):
        supplier = get_supplier_profile(db, supplier_id)
        order = get_order_for_update(db, order_id)
        if order.supplier_id != supplier_id:
            raise ForbiddenError("Not authorized to reassign this order")
        if order.status not in (OrderStatus.PENDING_REASSIGN, OrderStatus.APPROVED):
            raise InvalidStateError(f"Cannot reassign order with status {order.status}")

        last_leg = get_latest_leg(db, order.id, lock=True)
        if not last_leg or last_leg.status != LegStatus.REJECTED:
            raise InvalidStateError("Order can only be reassigned after the distributor rejects it")
        if last_leg.from_type != PartyType.SUPPLIER:
            raise InvalidStateError("Only supplier legs can be reassigned by the supplier")

        rejected_by = {
            leg.to_distributor_id for leg in order.legs
            if leg.from_type == PartyType.SUPPLIER and leg.status == LegStatus.REJECTED
        }
        if distributor_id in rejected_by:
            raise InvalidStateError("This distributor already rejected the order. Choose a different distributor")

        distributor = get_distributor_profile(db, distributor_id)
        get_supplier_transporter(db, transporter_id, supplier_id)

        leg = OrderLeg(
            order_id=order.id,
            leg_number=last_leg.leg_number + 1,
            from_type=PartyType.SUPPLIER,
            from_supplier_id=supplier_id,
            to_type=PartyType.DISTRIBUTOR,
            to_distributor_id=distributor.id,
            transporter_id=transporter_id,
            status=LegStatus.PENDING
        )
        db.add(leg)
        db.flush()

        order.status = OrderStatus.APPROVED
        add_tracking_event(
            db, order.id, supplier.user_id, "REASSIGNED",
            f"Order reassigned to distributor {distributor.business_name} after previous rejection.",
            to_user_id=distributor.user_id, leg_id=leg.id
        )

    logger.info(f"Order {order_id} reassigned to distributor {distributor_id} as leg #{leg.leg_number}")
    return {"order": order, "leg": leg}


def confirm_delivery(db: Session, order_id: int, customer_id: int) -> Order:
    """Customer confirms receipt of a customer-bound leg that is IN_TRANSIT."""
    with transaction(db):
        order = get_order_for_update(db, order_id)
        if order.customer_id != customer_id:
            raise ForbiddenError("Not authorized to confirm this order")
        if order.status in OrderStatus.TERMINAL:
            raise InvalidStateError(f"Cannot confirm delivery of order with status {order.status}")

        last_leg = get_latest_leg(db, order.id, lock=True)
        if not last_leg or last_leg.to_type != PartyType.CUSTOMER:
            raise InvalidStateError("Order is not out for delivery to the customer")
        if last_leg.status != LegStatus.IN_TRANSIT:
            raise InvalidStateError(f"Cannot confirm delivery of leg with status {last_leg.status}")

        last_leg.status = LegStatus.DELIVERED
        order.status = OrderStatus.DELIVERED
        add_tracking_event(
            db, order.id, customer_id, OrderStatus.DELIVERED,
            "Order delivered and confirmed by customer",
            to_user_id=order.supplier.user_id, leg_id=last_leg.id
        )

    logger.info(f"Order {order_id} delivery confirmed by customer {customer_id}")
    return order


def get_order_by_id(db: Session, order_id: int, viewer_user_id: Optional[int] = None) -> Order:
    """
    Fetch an order with its legs and tracking history.

    When viewer_user_id is given, only the customer, the supplier and
    distributors that appear on a leg may see the order.
    """
    order = get_order(db, order_id)
    if viewer_user_id is None:
        return order

    parties = {order.customer_id, order.supplier.user_id}
    for leg in order.legs:
        if leg.from_distributor:
            parties.add(leg.from_distributor.user_id)
        if leg.to_distributor:
            parties.add(leg.to_distributor.user_id)
    if viewer_user_id not in parties:
        raise ForbiddenError("Not authorized to view this order")
    return order
