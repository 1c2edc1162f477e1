"""
Call records, lifecycle rules and call control actions.
"""
