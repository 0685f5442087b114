"""
TSN SDK Test Suite.

This package contains:
- unit/: Unit tests (no ledger, mocked transports where needed)
- integration/: Integration tests against the in-memory ledger
"""
