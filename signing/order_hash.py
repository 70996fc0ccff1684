"""
Order Hashing Module

Creates the SHA-256 fingerprint of an order that the supplier signs. The
fingerprint covers every field that identifies what was sold, to whom and
where it goes, so any later change to those fields breaks the signature.
"""

import hashlib


def format_amount(amount) -> str:
    """Render a money amount with exactly two decimals."""
    return f"{float(amount):.2f}"


def canonicalise_order(order) -> str:
    """
    Build the canonical string for an order.

    Fields are joined with "|" in a fixed order:
    id, product_id, quantity, customer_id, supplier_id, total_amount,
    delivery_address.

    Example:
        >>> canonicalise_order(order)
        '7|3|2|11|1|100.00|12 Harbour Road'
    """
    return "|".join([
        str(order.id),
        str(order.product_id),
        str(order.quantity),
        str(order.customer_id),
        str(order.supplier_id),
        format_amount(order.total_amount),
        order.delivery_address or "",
    ])


def compute_order_hash(order) -> str:
    """
    Generate the SHA-256 hash of an order.

    Returns:
        64-character hexadecimal digest
    """
    canonical = canonicalise_order(order)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
