"""
Authentication: bearer JWT validation and the authenticated user model.
"""
