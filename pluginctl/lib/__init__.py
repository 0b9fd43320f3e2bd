"""
Shared helpers: logging setup, typed errors, version ordering, file writes.
"""
