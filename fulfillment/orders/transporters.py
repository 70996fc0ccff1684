"""
Transporter management for suppliers and distributors.
"""

import logging
from typing import Optional
from sqlalchemy.orm import Session

from database.connection import transaction
from database.crud import get_transporter
from database.models import Transporter, OrderLeg, LegStatus
from fulfillment.errors import ForbiddenError, InvalidStateError, ValidationError

logger = logging.getLogger(__name__)


def create_transporter(
    db: Session,
    name: str,
    phone: Optional[str] = None,
    supplier_id: Optional[int] = None,
    distributor_id: Optional[int] = None
) -> Transporter:
    """Register a transporter owned by exactly one supplier or distributor."""
    if not name or not name.strip():
        raise ValidationError("Transporter name is required")
    if (supplier_id is None) == (distributor_id is None):
        raise ValidationError("Transporter must belong to exactly one supplier or distributor")

    with transaction(db):
        transporter = Transporter(
            name=name.strip(),
            phone=phone,
            supplier_id=supplier_id,
            distributor_id=distributor_id
        )
        db.add(transporter)
        db.flush()

    owner = f"supplier {supplier_id}" if supplier_id else f"distributor {distributor_id}"
    logger.info(f"Transporter {transporter.id} registered for {owner}")
    return transporter


def list_transporters(db: Session, supplier_id: Optional[int] = None, distributor_id: Optional[int] = None):
    query = db.query(Transporter)
    if supplier_id is not None:
        query = query.filter(Transporter.supplier_id == supplier_id)
    if distributor_id is not None:
        query = query.filter(Transporter.distributor_id == distributor_id)
    return query.order_by(Transporter.id).all()


def delete_transporter(
    db: Session,
    transporter_id: int,
    supplier_id: Optional[int] = None,
    distributor_id: Optional[int] = None
) -> None:
    """
    Remove a transporter that has no shipments in flight.

    Raises:
        ForbiddenError: Caller does not own the transporter
        InvalidStateError: Transporter is on a PENDING, ACCEPTED or IN_TRANSIT leg
    """
    with transaction(db):
        transporter = get_transporter(db, transporter_id)
        owned = (
            (supplier_id is not None and transporter.supplier_id == supplier_id)
            or (distributor_id is not None and transporter.distributor_id == distributor_id)
        )
        if not owned:
            raise ForbiddenError("Transporter does not belong to you")

        active = db.query(OrderLeg).filter(
            OrderLeg.transporter_id == transporter_id,
            OrderLeg.status.in_(LegStatus.ACTIVE)
        ).count()
        if active:
            raise InvalidStateError(f"Transporter has {active} active deliveries and cannot be deleted")

        # Finished legs stay in the history without a carrier
        db.query(OrderLeg).filter(OrderLeg.transporter_id == transporter_id).update(
            {OrderLeg.transporter_id: None}, synchronize_session="fetch"
        )
        db.delete(transporter)

    logger.info(f"Transporter {transporter_id} deleted")
