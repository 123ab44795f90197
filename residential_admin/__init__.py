"""
Residential Admin

REST backend for residential management: persons, roles, permissions,
authentication with server-side sessions, and an append-only audit trail.
"""

__version__ = "1.0.0"
