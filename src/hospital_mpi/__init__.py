"""
Hospital MPI Service

Resolves patient demographic records by national ID or passport number,
reconciling a local record store with the hospital's authoritative API.
"""

__version__ = "2.0.0"
