"""Shared test fixtures for authdb tests.

This package provides:
- FakePool / FakeConnection: scripted asyncpg stand-ins that count leases
- FakePostgresError: driver-shaped exceptions with sqlstate and detail
"""

__all__ = [
    "fake_pool",
]
