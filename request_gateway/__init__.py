"""
Client-side resilient request gateway.
"""
