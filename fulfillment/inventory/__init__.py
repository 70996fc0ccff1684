"""
Warehouse stock checks and reservations.
"""

from .reservation import check_availability, reserve_stock, release_stock

__all__ = ["check_availability", "reserve_stock", "release_stock"]
