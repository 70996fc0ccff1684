"""
Leg Service

Distributor side of custody: accepting or declining a hop, confirming
receipt, forwarding to the next custodian and shipping. A leg moves

    PENDING -> ACCEPTED -> IN_TRANSIT -> DELIVERED
    PENDING -> REJECTED

Customer-bound legs may ship straight from PENDING since the customer
never accepts explicitly.
"""

import logging
from typing import Optional, Tuple
from sqlalchemy.orm import Session

from database.connection import transaction
from database.crud import (
    get_distributor_profile, get_leg, get_leg_for_update, get_order_for_update,
    get_latest_leg, get_next_leg_number, get_distributor_transporter, add_tracking_event
)
from database.models import Order, OrderLeg, OrderStatus, LegStatus, PartyType
from fulfillment.errors import ForbiddenError, InvalidStateError, ValidationError

logger = logging.getLogger(__name__)


def _lock_leg(db: Session, leg_id: int) -> Tuple[Order, OrderLeg]:
    """Lock a leg and its order, order first to match the order-level operations."""
    order_id = get_leg(db, leg_id).order_id
    order = get_order_for_update(db, order_id)
    leg = get_leg_for_update(db, leg_id)
    if order.status in OrderStatus.TERMINAL:
        raise InvalidStateError(f"Order is already {order.status}")
    return order, leg


def _require_recipient(leg: OrderLeg, distributor_id: int):
    if leg.to_type != PartyType.DISTRIBUTOR or leg.to_distributor_id != distributor_id:
        raise ForbiddenError("This leg is not assigned to you")


def _require_sender(leg: OrderLeg, distributor_id: int):
    if leg.from_type != PartyType.DISTRIBUTOR or leg.from_distributor_id != distributor_id:
        raise ForbiddenError("You are not the sender of this leg")


def _recipient(order: Order, leg: OrderLeg) -> Tuple[Optional[int], str]:
    """(user id, label) of whoever receives the leg."""
    if leg.to_type == PartyType.CUSTOMER:
        return order.customer_id, "customer"
    return leg.to_distributor.user_id, f"distributor {leg.to_distributor.business_name}"


def accept_leg(db: Session, leg_id: int, distributor_id: int) -> OrderLeg:
    """Recipient distributor agrees to take custody."""
    with transaction(db):
        distributor = get_distributor_profile(db, distributor_id)
        order, leg = _lock_leg(db, leg_id)
        _require_recipient(leg, distributor_id)
        if leg.status != LegStatus.PENDING:
            raise InvalidStateError(f"Cannot accept leg with status {leg.status}")

        leg.status = LegStatus.ACCEPTED
        add_tracking_event(
            db, order.id, distributor.user_id, LegStatus.ACCEPTED,
            f"Distributor {distributor.business_name} accepted the delivery",
            to_user_id=leg.sender_user_id, leg_id=leg.id
        )

    logger.info(f"Leg {leg_id} of order {order.id} accepted by distributor {distributor_id}")
    return leg


def reject_leg(db: Session, leg_id: int, distributor_id: int, reason: Optional[str] = None) -> OrderLeg:
    """
    Recipient distributor declines custody.

    A declined supplier leg puts the order into PENDING_REASSIGN so the
    supplier can pick another distributor. A declined distributor leg leaves
    the order status alone; the sending distributor reassigns it.
    """
    with transaction(db):
        distributor = get_distributor_profile(db, distributor_id)
        order, leg = _lock_leg(db, leg_id)
        _require_recipient(leg, distributor_id)
        if leg.status != LegStatus.PENDING:
            raise InvalidStateError(f"Cannot reject leg with status {leg.status}")

        leg.status = LegStatus.REJECTED
        if leg.from_type == PartyType.SUPPLIER:
            order.status = OrderStatus.PENDING_REASSIGN

        add_tracking_event(
            db, order.id, distributor.user_id, LegStatus.REJECTED,
            reason or f"Distributor {distributor.business_name} rejected the delivery",
            to_user_id=leg.sender_user_id, leg_id=leg.id
        )

    logger.info(f"Leg {leg_id} of order {order.id} rejected by distributor {distributor_id}")
    return leg


def confirm_receipt(db: Session, leg_id: int, distributor_id: int) -> OrderLeg:
    """Recipient distributor confirms the goods arrived."""
    with transaction(db):
        distributor = get_distributor_profile(db, distributor_id)
        order, leg = _lock_leg(db, leg_id)
        _require_recipient(leg, distributor_id)
        if leg.status != LegStatus.IN_TRANSIT:
            raise InvalidStateError(f"Cannot confirm receipt of leg with status {leg.status}")

        leg.status = LegStatus.DELIVERED
        add_tracking_event(
            db, order.id, distributor.user_id, LegStatus.DELIVERED,
            f"Goods received by {distributor.business_name}",
            to_user_id=leg.sender_user_id, leg_id=leg.id
        )

    logger.info(f"Leg {leg_id} of order {order.id} received by distributor {distributor_id}")
    return leg


def forward_order(
    db: Session,
    order_id: int,
    distributor_id: int,
    to_type: str,
    transporter_id: int,
    to_distributor_id: Optional[int] = None
) -> OrderLeg:
    """
    Hand an order on to the next distributor or to the customer.

    The caller must hold the goods: the most recent leg is addressed to it
    and DELIVERED. The new leg starts PENDING.
    """
    if to_type not in (PartyType.DISTRIBUTOR, PartyType.CUSTOMER):
        raise ValidationError("to_type must be DISTRIBUTOR or CUSTOMER")

    with transaction(db):
        distributor = get_distributor_profile(db, distributor_id)
        order = get_order_for_update(db, order_id)
        if order.status in OrderStatus.TERMINAL:
            raise InvalidStateError(f"Order is already {order.status}")

        last_leg = get_latest_leg(db, order.id, lock=True)
        if not last_leg:
            raise InvalidStateError("Order has no custody legs yet")
        _require_recipient(last_leg, distributor_id)
        if last_leg.status != LegStatus.DELIVERED:
            raise InvalidStateError("Confirm receipt of the goods before forwarding")

        already_forwarded = db.query(OrderLeg).filter(
            OrderLeg.order_id == order.id,
            OrderLeg.from_distributor_id == distributor_id,
            OrderLeg.leg_number > last_leg.leg_number
        ).first()
        if already_forwarded:
            raise InvalidStateError("Order has already been forwarded")

        get_distributor_transporter(db, transporter_id, distributor_id)

        if to_type == PartyType.DISTRIBUTOR:
            if not to_distributor_id:
                raise ValidationError("to_distributor_id is required when forwarding to a distributor")
            if to_distributor_id == distributor_id:
                raise ValidationError("Cannot forward an order to yourself")
            get_distributor_profile(db, to_distributor_id, label="Target distributor")
        else:
            to_distributor_id = None

        leg = OrderLeg(
            order_id=order.id,
            leg_number=last_leg.leg_number + 1,
            from_type=PartyType.DISTRIBUTOR,
            from_distributor_id=distributor_id,
            to_type=to_type,
            to_distributor_id=to_distributor_id,
            transporter_id=transporter_id,
            status=LegStatus.PENDING
        )
        db.add(leg)
        db.flush()

        recipient_user_id, recipient_label = _recipient(order, leg)
        add_tracking_event(
            db, order.id, distributor.user_id, LegStatus.PENDING,
            f"Forwarded to {recipient_label}",
            to_user_id=recipient_user_id, leg_id=leg.id
        )

    logger.info(f"Order {order_id} forwarded by distributor {distributor_id} as leg #{leg.leg_number} to {to_type}")
    return leg


def ship_forward(db: Session, leg_id: int, distributor_id: int) -> OrderLeg:
    """
    Sending distributor dispatches a leg.

    Distributor-bound legs must have been accepted by the recipient;
    customer-bound legs ship from PENDING or ACCEPTED.
    """
    with transaction(db):
        distributor = get_distributor_profile(db, distributor_id)
        order, leg = _lock_leg(db, leg_id)
        _require_sender(leg, distributor_id)

        if leg.to_type == PartyType.DISTRIBUTOR and leg.status != LegStatus.ACCEPTED:
            raise InvalidStateError(f"Cannot ship leg with status {leg.status}. Distributor must accept first")
        if leg.to_type == PartyType.CUSTOMER and leg.status not in (LegStatus.PENDING, LegStatus.ACCEPTED):
            raise InvalidStateError(f"Cannot ship leg with status {leg.status}")

        leg.status = LegStatus.IN_TRANSIT
        if order.status == OrderStatus.APPROVED:
            order.status = OrderStatus.IN_PROGRESS

        recipient_user_id, recipient_label = _recipient(order, leg)
        add_tracking_event(
            db, order.id, distributor.user_id, LegStatus.IN_TRANSIT,
            f"Shipped to {recipient_label}",
            to_user_id=recipient_user_id, leg_id=leg.id
        )

    logger.info(f"Leg {leg_id} of order {order.id} shipped by distributor {distributor_id}")
    return leg


def reassign_distributor_leg(
    db: Session,
    leg_id: int,
    distributor_id: int,
    new_distributor_id: int,
    transporter_id: int
) -> OrderLeg:
    """
    Re-route a distributor leg that the recipient declined.

    The rejected leg must still be the order's most recent leg. The new
    target may be neither the caller nor a distributor that already
    declined this hop.
    """
    with transaction(db):
        distributor = get_distributor_profile(db, distributor_id)
        order, leg = _lock_leg(db, leg_id)
        _require_sender(leg, distributor_id)
        if leg.status != LegStatus.REJECTED:
            raise InvalidStateError("Only rejected legs can be reassigned")

        latest = get_latest_leg(db, order.id, lock=True)
        if latest.id != leg.id:
            raise InvalidStateError("This leg has already been reassigned")

        if new_distributor_id == distributor_id:
            raise ValidationError("Cannot assign a leg to yourself")
        declined_by = {
            other.to_distributor_id for other in order.legs
            if other.from_distributor_id == distributor_id and other.status == LegStatus.REJECTED
        }
        if new_distributor_id in declined_by:
            raise InvalidStateError("This distributor already rejected the delivery. Choose a different distributor")

        new_distributor = get_distributor_profile(db, new_distributor_id, label="New distributor")
        get_distributor_transporter(db, transporter_id, distributor_id)

        new_leg = OrderLeg(
            order_id=order.id,
            leg_number=get_next_leg_number(db, order.id),
            from_type=PartyType.DISTRIBUTOR,
            from_distributor_id=distributor_id,
            to_type=PartyType.DISTRIBUTOR,
            to_distributor_id=new_distributor.id,
            transporter_id=transporter_id,
            status=LegStatus.PENDING
        )
        db.add(new_leg)
        db.flush()

        add_tracking_event(
            db, order.id, distributor.user_id, LegStatus.PENDING,
            f"New leg created after rejection - assigned to {new_distributor.business_name} "
            f"by {distributor.business_name}",
            to_user_id=new_distributor.user_id, leg_id=new_leg.id
        )

    logger.info(f"Leg {leg_id} of order {order.id} reassigned to distributor {new_distributor_id} "
                f"as leg #{new_leg.leg_number}")
    return new_leg


def get_leg_by_id(db: Session, leg_id: int, viewer_user_id: Optional[int] = None) -> OrderLeg:
    """Fetch a leg; when a viewer is given it must be the sender or the recipient."""
    leg = get_leg(db, leg_id)
    if viewer_user_id is None:
        return leg

    parties = {leg.sender_user_id}
    if leg.to_type == PartyType.CUSTOMER:
        parties.add(leg.order.customer_id)
    elif leg.to_distributor:
        parties.add(leg.to_distributor.user_id)
    if viewer_user_id not in parties:
        raise ForbiddenError("Not authorized to view this leg")
    return leg
