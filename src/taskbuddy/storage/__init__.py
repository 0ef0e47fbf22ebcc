"""
Persistence gateways.
"""
