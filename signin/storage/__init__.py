"""
Storage adapters for users, accounts and sessions.

The auth core only talks to the `AuthStorage` protocol; backends are picked by STORAGE_BACKEND.
"""
