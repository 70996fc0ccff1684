"""
Stock Reservation

Stock is checked when an order is placed but only decremented when the
supplier approves it. Reserve and release run inside the caller's
transaction and lock the inventory row, so two approvals can never both
consume the last units.
"""

import logging
from sqlalchemy.orm import Session

from database.crud import get_inventory, get_warehouse_by_supplier
from database.models import Inventory
from fulfillment.errors import NotFoundError, InsufficientStockError

logger = logging.getLogger(__name__)


def check_availability(db: Session, supplier_id: int, product_id: int, quantity: int) -> Inventory:
    """
    Check that the supplier's warehouse holds enough of a product.

    Raises:
        NotFoundError: No warehouse or no inventory row for the product
        InsufficientStockError: Fewer than `quantity` units available
    """
    warehouse = get_warehouse_by_supplier(db, supplier_id)
    inventory = get_inventory(db, warehouse.id, product_id)
    if not inventory:
        raise NotFoundError("Product not available in supplier's warehouse")
    if inventory.quantity < quantity:
        raise InsufficientStockError(f"Insufficient stock. Available: {inventory.quantity}")
    return inventory


def reserve_stock(db: Session, supplier_id: int, product_id: int, quantity: int) -> Inventory:
    """Re-check stock under a row lock and decrement it."""
    warehouse = get_warehouse_by_supplier(db, supplier_id)
    inventory = get_inventory(db, warehouse.id, product_id, lock=True)
    if not inventory:
        raise NotFoundError("Product not available in supplier's warehouse")
    if inventory.quantity < quantity:
        raise InsufficientStockError(f"Insufficient stock. Available: {inventory.quantity}")

    inventory.quantity -= quantity
    logger.info(f"Reserved {quantity} of product {product_id} from warehouse {warehouse.id} "
                f"({inventory.quantity} left)")
    return inventory


def release_stock(db: Session, supplier_id: int, product_id: int, quantity: int) -> Inventory:
    """Return previously reserved units to the warehouse."""
    warehouse = get_warehouse_by_supplier(db, supplier_id)
    inventory = get_inventory(db, warehouse.id, product_id, lock=True)
    if not inventory:
        raise NotFoundError("Product not available in supplier's warehouse")

    inventory.quantity += quantity
    logger.info(f"Released {quantity} of product {product_id} back to warehouse {warehouse.id}")
    return inventory
