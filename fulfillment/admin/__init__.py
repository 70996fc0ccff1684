"""
Administrative operations.
"""

from .supplier_keys import provision_supplier_keys

__all__ = ["provision_supplier_keys"]
