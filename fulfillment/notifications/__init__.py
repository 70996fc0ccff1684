"""
Outbound notifications.
"""
