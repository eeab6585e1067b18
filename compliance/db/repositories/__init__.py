"""
Per-domain repository modules for database access.

Repositories add and flush; the calling service owns the transaction and
commits once the whole operation has succeeded.
"""
