"""
Real-time push fan-out to connected dashboard clients.
"""
