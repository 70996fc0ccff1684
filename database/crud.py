"""
CRUD operations for Custody Ledger

Lookups used by the order, leg and verification services. The ``*_for_update``
variants take a row lock and must be called inside ``transaction()``.
"""

from typing import Optional
from sqlalchemy.orm import Session

from database.models import (
    User, SupplierProfile, DistributorProfile, Warehouse, Product, Inventory,
    Transporter, Order, OrderLeg, TrackingEvent
)
from fulfillment.errors import NotFoundError, ForbiddenError


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_supplier_profile(db: Session, supplier_id: int) -> SupplierProfile:
    """Get supplier profile or raise NotFoundError."""
    supplier = db.query(SupplierProfile).filter(SupplierProfile.id == supplier_id).first()
    if not supplier:
        raise NotFoundError("Supplier profile not found")
    return supplier


def get_supplier_profile_by_user(db: Session, user_id: int) -> Optional[SupplierProfile]:
    return db.query(SupplierProfile).filter(SupplierProfile.user_id == user_id).first()


def get_distributor_profile(db: Session, distributor_id: int, label: str = "Distributor") -> DistributorProfile:
    """Get distributor profile or raise NotFoundError."""
    distributor = db.query(DistributorProfile).filter(DistributorProfile.id == distributor_id).first()
    if not distributor:
        raise NotFoundError(f"{label} not found")
    return distributor


def get_warehouse_by_supplier(db: Session, supplier_id: int) -> Warehouse:
    warehouse = db.query(Warehouse).filter(Warehouse.supplier_id == supplier_id).first()
    if not warehouse:
        raise NotFoundError("Warehouse not found for supplier")
    return warehouse


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_inventory(db: Session, warehouse_id: int, product_id: int, lock: bool = False) -> Optional[Inventory]:
    query = db.query(Inventory).filter(
        Inventory.warehouse_id == warehouse_id,
        Inventory.product_id == product_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def get_transporter(db: Session, transporter_id: int) -> Transporter:
    transporter = db.query(Transporter).filter(Transporter.id == transporter_id).first()
    if not transporter:
        raise NotFoundError("Transporter not found")
    return transporter


def get_supplier_transporter(db: Session, transporter_id: int, supplier_id: int) -> Transporter:
    """Get a transporter owned by the supplier."""
    transporter = get_transporter(db, transporter_id)
    if transporter.supplier_id != supplier_id:
        raise ForbiddenError("Transporter does not belong to this supplier")
    return transporter


def get_distributor_transporter(db: Session, transporter_id: int, distributor_id: int) -> Transporter:
    """Get a transporter owned by the distributor."""
    transporter = get_transporter(db, transporter_id)
    if transporter.distributor_id != distributor_id:
        raise ForbiddenError("Transporter does not belong to this distributor")
    return transporter


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_order_for_update(db: Session, order_id: int) -> Order:
    """Get order with a row lock held until the transaction ends."""
    order = db.query(Order).filter(Order.id == order_id).with_for_update().populate_existing().first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_leg(db: Session, leg_id: int) -> OrderLeg:
    leg = db.query(OrderLeg).filter(OrderLeg.id == leg_id).first()
    if not leg:
        raise NotFoundError("Leg not found")
    return leg


def get_leg_for_update(db: Session, leg_id: int) -> OrderLeg:
    leg = db.query(OrderLeg).filter(OrderLeg.id == leg_id).with_for_update().populate_existing().first()
    if not leg:
        raise NotFoundError("Leg not found")
    return leg


def get_latest_leg(db: Session, order_id: int, lock: bool = False) -> Optional[OrderLeg]:
    """Most recent leg of an order (highest leg_number)."""
    query = db.query(OrderLeg).filter(OrderLeg.order_id == order_id).order_by(OrderLeg.leg_number.desc())
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def get_next_leg_number(db: Session, order_id: int) -> int:
    latest = get_latest_leg(db, order_id)
    return latest.leg_number + 1 if latest else 1


def add_tracking_event(
    db: Session,
    order_id: int,
    from_user_id: int,
    status: str,
    description: str,
    to_user_id: int = None,
    leg_id: int = None
) -> TrackingEvent:
    """Append a tracking event to the order history."""
    tracking_event = TrackingEvent(
        order_id=order_id,
        leg_id=leg_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        status=status,
        description=description
    )
    db.add(tracking_event)
    return tracking_event


def get_tracking_events(db: Session, order_id: int):
    return db.query(TrackingEvent).filter(
        TrackingEvent.order_id == order_id
    ).order_by(TrackingEvent.id).all()
