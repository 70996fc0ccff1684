"""
Order lifecycle and custody legs.
"""

from .order_service import (
    create_order,
    approve_order,
    reject_order,
    cancel_order,
    ship_order,
    reassign_order,
    confirm_delivery,
    get_order_by_id,
)
from .leg_service import (
    accept_leg,
    reject_leg,
    confirm_receipt,
    forward_order,
    ship_forward,
    reassign_distributor_leg,
    get_leg_by_id,
)
from .transporters import create_transporter, list_transporters, delete_transporter

__all__ = [
    "create_order",
    "approve_order",
    "reject_order",
    "cancel_order",
    "ship_order",
    "reassign_order",
    "confirm_delivery",
    "get_order_by_id",
    "accept_leg",
    "reject_leg",
    "confirm_receipt",
    "forward_order",
    "ship_forward",
    "reassign_distributor_leg",
    "get_leg_by_id",
    "create_transporter",
    "list_transporters",
    "delete_transporter",
]
