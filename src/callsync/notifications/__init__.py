"""
Persisted audit notifications and their API.
"""
