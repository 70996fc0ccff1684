"""
HTTP service for the fulfillment core.
"""
