"""
callsync: call-state synchronization backend for a multi-tenant telephony dashboard.
"""

__version__ = "0.1.0"
