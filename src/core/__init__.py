"""Core domain package for rolling-roles.

Core contains rule matching, reconciliation, debouncing, and rate limiting
without any Discord or storage-specific code, keeping the business logic
portable.
"""
