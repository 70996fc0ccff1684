"""
Custody Ledger fulfillment core: orders, custody legs, inventory and
QR authenticity verification.
"""
