"""
Database package for Custody Ledger (PostgreSQL in production, SQLite for development)
"""

from .models import (
    Base,
    User,
    SupplierProfile,
    DistributorProfile,
    Warehouse,
    Product,
    Inventory,
    Transporter,
    Order,
    OrderLeg,
    TrackingEvent,
    OrderStatus,
    LegStatus,
    PartyType,
    Role,
)
from .connection import get_db, get_session, engine, SessionLocal, transaction, run_after_commit

__all__ = [
    "Base",
    "User",
    "SupplierProfile",
    "DistributorProfile",
    "Warehouse",
    "Product",
    "Inventory",
    "Transporter",
    "Order",
    "OrderLeg",
    "TrackingEvent",
    "OrderStatus",
    "LegStatus",
    "PartyType",
    "Role",
    "get_db",
    "get_session",
    "engine",
    "SessionLocal",
    "transaction",
    "run_after_commit",
]
