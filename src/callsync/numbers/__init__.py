"""
Phone numbers owned by dashboard users: ownership lookups and voice enablement.
"""
