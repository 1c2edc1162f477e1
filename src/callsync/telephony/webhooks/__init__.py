"""
Provider voice webhooks: reconciliation of call events and the HTTP endpoint.
"""
