"""Pytest configuration and shared fixtures for authdb tests.

This module provides:
- Custom markers (unit, integration)
- Fake pool wiring for the executor, transaction and session tests
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path to allow imports from authdb and tests.fixtures
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from authdb.config import TableNameConfig
from authdb.db.executor import QueryExecutor
from authdb.db.pool import ConnectionSource
from authdb.db.session_queries import SessionAuthQueries
from authdb.db.transaction import TransactionController
from tests.fixtures.fake_pool import FakePool


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: mark test as a unit test (fast, isolated)"
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test (needs PostgreSQL via DATABASE_URL)"
    )


# ==================== Environment Fixtures ====================

@pytest.fixture(scope="function", autouse=True)
def isolate_environment():
    """Restore environment variables after each test."""
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ==================== Fake Database Fixtures ====================

@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def fake_conn(fake_pool):
    return fake_pool.connection


@pytest.fixture
def source(fake_pool) -> ConnectionSource:
    return ConnectionSource(fake_pool, default_force_release=False, acquire_timeout=5.0)


@pytest.fixture
def executor(source) -> QueryExecutor:
    return QueryExecutor(source)


@pytest.fixture
def controller(source) -> TransactionController:
    return TransactionController(source)


@pytest.fixture
def tables() -> TableNameConfig:
    return TableNameConfig(members="app_members", sessions="app_sessions")


@pytest.fixture
def session_queries(executor, tables) -> SessionAuthQueries:
    return SessionAuthQueries(executor, tables)
