"""
Telephony provider integration: gateway, configuration and call events.
"""
